import json

import pytest

from liveoil import (
    DeadOilTableStore,
    DeserializationError,
    LiveOilPVT,
    RegionTableStore,
    SerializationError,
    dump,
    load,
)
from liveoil.serialization import register_store_type
from liveoil.errors import ValidationError
from liveoil.tolerance import allclose


def test_live_oil_store_round_trip(two_region_store):
    data = dump(two_region_store)
    assert list(data) == ["PVTO"]
    assert len(data["PVTO"]["regions"]) == 2

    store = load(json.loads(json.dumps(data)))
    assert isinstance(store, RegionTableStore)
    assert store.table_count() == 2
    for region in range(2):
        for knot_index, (original, loaded) in enumerate(
            zip(two_region_store.saturated_curve(region), store.saturated_curve(region))
        ):
            assert loaded.solution_gor == original.solution_gor
            assert allclose(loaded.curve.pressures, original.curve.pressures)
            assert allclose(
                store.undersaturated_curve(region, knot_index).formation_volume_factors,
                two_region_store.undersaturated_curve(region, knot_index).formation_volume_factors,
            )


def test_loaded_store_evaluates_identically(two_region_store):
    store = load(dump(two_region_store))
    original = LiveOilPVT(two_region_store).inverse_formation_volume_factor(
        [75.0, 150.0, 250.0], None, [5.0, 100.0, 30.0]
    )
    loaded = LiveOilPVT(store).inverse_formation_volume_factor(
        [75.0, 150.0, 250.0], None, [5.0, 100.0, 30.0]
    )
    for first, second in zip(original, loaded):
        assert allclose(first, second)


def test_dead_oil_store_round_trip(dead_oil_store):
    data = dump(dead_oil_store)
    assert list(data) == ["PVDO"]
    store = load(data)
    assert isinstance(store, DeadOilTableStore)
    assert allclose(store.curve(0).viscosities, dead_oil_store.curve(0).viscosities)


def test_dump_unsupported_type():
    with pytest.raises(SerializationError):
        dump(object())  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "data",
    [
        {},
        {"PVTO": {}, "PVDO": {}},
        {"PVTG": {"regions": []}},
        {"PVTO": {"regions": []}},
        [("PVTO", {"regions": []})],
    ],
)
def test_load_invalid_data(data):
    with pytest.raises(DeserializationError):
        load(data)


def test_load_malformed_tables(two_region_store):
    data = dump(two_region_store)
    curve = data["PVTO"]["regions"][0]["knots"][1]["curve"]
    curve["formation_volume_factors"] = [-1.0]
    with pytest.raises(DeserializationError):
        load(data)


def test_register_store_type_rejects_taken_keyword():
    with pytest.raises(ValidationError):
        register_store_type("PVTO", DeadOilTableStore)
    register_store_type("PVTO", RegionTableStore)
