import logging

import numpy as np
import pytest

from liveoil import (
    Config,
    MalformedTableError,
    PressureCurve,
    RegionTable,
    RegionTableStoreBuilder,
    SaturatedKnot,
    ValidationError,
    complete_undersaturated_curves,
    with_precision,
)
from liveoil.tolerance import allclose


def test_table_count(two_region_store):
    assert two_region_store.table_count() == 2
    assert len(two_region_store) == 2


def test_saturated_curve_knots(two_region_store):
    knots = two_region_store.saturated_curve(0)
    assert [knot.solution_gor for knot in knots] == [10.0, 20.0, 40.0]
    assert [knot.bubble_point_pressure for knot in knots] == [50.0, 100.0, 200.0]


def test_undersaturated_curve_extends_saturated_sub_curve(two_region_store):
    curve = two_region_store.undersaturated_curve(0, 1)
    assert allclose(curve.pressures, [100.0, 200.0, 300.0])
    assert allclose(curve.formation_volume_factors, [1.15, 1.13, 1.11])
    assert allclose(curve.viscosities, [1.00, 1.05, 1.10])


def test_knot_without_undersaturated_rows_is_completed(two_region_store):
    curve = two_region_store.undersaturated_curve(0, 0)
    assert allclose(curve.pressures, [50.0, 150.0, 250.0])
    assert allclose(
        curve.formation_volume_factors,
        [1.10, 1.10 * 1.13 / 1.15, 1.10 * 1.11 / 1.15],
    )
    assert allclose(curve.viscosities, [1.20, 1.20 * 1.05, 1.20 * 1.10])


def test_completion_can_be_disabled():
    store = (
        RegionTableStoreBuilder(Config(complete_undersaturated_tables=False))
        .add_region_rows(
            [[10.0, 50.0, 1.10, 1.20], [20.0, 100.0, 1.15, 1.00]],
            undersaturated=[None, [[200.0, 1.13, 1.05]]],
        )
        .build()
    )
    assert len(store.undersaturated_curve(0, 0)) == 1


def test_completion_without_donor_logs_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="liveoil.tables.store"):
        store = (
            RegionTableStoreBuilder()
            .add_region_rows([[10.0, 50.0, 1.10, 1.20], [20.0, 100.0, 1.15, 1.00]])
            .build()
        )
    assert len(store.undersaturated_curve(0, 0)) == 1
    assert len(store.undersaturated_curve(0, 1)) == 1
    assert "no undersaturated data" in caplog.text


def test_complete_undersaturated_curves_skips_to_next_knot_with_data():
    builder = RegionTableStoreBuilder(Config(complete_undersaturated_tables=False))
    store = builder.add_region_rows(
        [
            [10.0, 50.0, 1.10, 1.20],
            [20.0, 100.0, 1.15, 1.00],
            [30.0, 150.0, 1.20, 0.90],
        ],
        undersaturated=[None, None, [[250.0, 1.18, 0.99]]],
    ).build()
    knots = store.saturated_curve(0)
    curves = store.region(0).undersaturated

    completed = complete_undersaturated_curves(knots, curves)
    assert allclose(completed[0].pressures, [50.0, 150.0])
    assert allclose(completed[1].pressures, [100.0, 200.0])
    assert allclose(completed[1].formation_volume_factors, [1.15, 1.15 * 1.18 / 1.20])
    assert completed[2] is curves[2]


def test_consecutive_rows_with_equal_ratio_form_one_knot():
    store = (
        RegionTableStoreBuilder()
        .add_region_rows(
            [
                [10.0, 50.0, 1.10, 1.20],
                [10.0, 100.0, 1.09, 1.25],
                [20.0, 100.0, 1.15, 1.00],
            ]
        )
        .build()
    )
    knots = store.saturated_curve(0)
    assert len(knots) == 2
    assert allclose(knots[0].curve.pressures, [50.0, 100.0])
    assert knots[1].bubble_point_pressure == 100.0


def test_single_point_region_is_valid():
    store = RegionTableStoreBuilder().add_region_rows([[5.0, 100.0, 1.05, 2.0]]).build()
    assert store.table_count() == 1
    assert len(store.saturated_curve(0)) == 1


def test_tables_are_read_only(two_region_store):
    curve = two_region_store.undersaturated_curve(0, 1)
    with pytest.raises(ValueError):
        curve.pressures[0] = 0.0
    packed = two_region_store.packed
    assert not packed.solution_gors.flags.writeable
    assert not packed.saturated.inverse_formation_volume_factors.flags.writeable


def test_packed_layout(two_region_store):
    packed = two_region_store.packed
    assert packed.region_offsets.tolist() == [0, 3, 4]
    assert allclose(packed.solution_gors, [10.0, 20.0, 40.0, 5.0])
    assert allclose(packed.bubble_point_pressures, [50.0, 100.0, 200.0, 100.0])
    assert packed.undersaturated.offsets.tolist() == [0, 3, 6, 8, 9]
    assert allclose(
        packed.saturated.inverse_formation_volume_factors,
        1.0 / np.array([1.10, 1.15, 1.25, 1.05]),
    )


def test_pressure_bounds(two_region_store):
    assert two_region_store.pressure_bounds == (50.0, 300.0)


def test_region_pressure_bounds(two_region_store):
    bounds = two_region_store.region_pressure_bounds
    assert bounds.shape == (2, 2)
    assert bounds.tolist() == [[50.0, 300.0], [100.0, 100.0]]


def test_region_out_of_range(two_region_store):
    with pytest.raises(ValidationError):
        two_region_store.region(2)
    with pytest.raises(ValidationError):
        two_region_store.undersaturated_curve(0, 3)


def test_build_without_regions():
    with pytest.raises(MalformedTableError):
        RegionTableStoreBuilder().build()


def test_empty_region():
    with pytest.raises(MalformedTableError, match="Region 0"):
        RegionTableStoreBuilder().add_region([], [], [], [])


def test_decreasing_solution_gor():
    with pytest.raises(MalformedTableError, match="Region 0"):
        RegionTableStoreBuilder().add_region_rows(
            [[20.0, 50.0, 1.10, 1.20], [10.0, 100.0, 1.15, 1.00]]
        )


def test_decreasing_bubble_point_pressure():
    with pytest.raises(MalformedTableError):
        RegionTableStoreBuilder().add_region_rows(
            [[10.0, 100.0, 1.10, 1.20], [20.0, 50.0, 1.15, 1.00]]
        )


def test_non_increasing_pressures_within_knot():
    with pytest.raises(MalformedTableError):
        RegionTableStoreBuilder().add_region_rows(
            [[10.0, 100.0, 1.10, 1.20], [10.0, 100.0, 1.09, 1.25]]
        )


def test_undersaturated_rows_below_sub_curve():
    with pytest.raises(MalformedTableError):
        RegionTableStoreBuilder().add_region_rows(
            [[10.0, 100.0, 1.10, 1.20]], undersaturated=[[[90.0, 1.11, 1.1]]]
        )


@pytest.mark.parametrize(
    "row",
    [[10.0, 100.0, 0.0, 1.20], [10.0, 100.0, 1.10, -1.0], [10.0, 100.0, np.nan, 1.0]],
)
def test_invalid_property_values(row):
    with pytest.raises(MalformedTableError):
        RegionTableStoreBuilder().add_region_rows([row])


def test_mismatched_column_lengths():
    with pytest.raises(MalformedTableError):
        RegionTableStoreBuilder().add_region([10.0, 20.0], [50.0, 100.0], [1.1], [1.2, 1.0])


def test_wrong_number_of_undersaturated_entries():
    with pytest.raises(MalformedTableError):
        RegionTableStoreBuilder().add_region_rows(
            [[10.0, 50.0, 1.10, 1.20], [20.0, 100.0, 1.15, 1.00]],
            undersaturated=[None],
        )


def test_wrong_row_shape():
    with pytest.raises(MalformedTableError):
        RegionTableStoreBuilder().add_region_rows([[10.0, 50.0, 1.10]])
    with pytest.raises(MalformedTableError):
        RegionTableStoreBuilder().add_region_rows(
            [[10.0, 50.0, 1.10, 1.20]], undersaturated=[[[200.0, 1.05]]]
        )


def test_pressure_curve_validation():
    with pytest.raises(MalformedTableError):
        PressureCurve(pressures=[], formation_volume_factors=[], viscosities=[])
    with pytest.raises(MalformedTableError):
        PressureCurve(pressures=[[1.0]], formation_volume_factors=[1.0], viscosities=[1.0])


def test_tables_follow_current_precision():
    with with_precision(np.float32):
        curve = PressureCurve(
            pressures=[100.0, 200.0],
            formation_volume_factors=[1.1, 1.2],
            viscosities=[1.0, 0.9],
        )
    assert curve.pressures.dtype == np.float32


def _region_with_offset_undersaturated_start(start: float, **tolerances) -> RegionTable:
    knot = SaturatedKnot(
        solution_gor=10.0,
        curve=PressureCurve(
            pressures=[100.0], formation_volume_factors=[1.10], viscosities=[1.20]
        ),
    )
    curve = PressureCurve(
        pressures=[start, 200.0],
        formation_volume_factors=[1.10, 1.08],
        viscosities=[1.20, 1.25],
    )
    return RegionTable(knots=[knot], undersaturated=[curve], **tolerances)


def test_undersaturated_start_below_bubble_point_uses_region_tolerances():
    with pytest.raises(MalformedTableError):
        _region_with_offset_undersaturated_start(99.995)

    region = _region_with_offset_undersaturated_start(99.995, relative_tolerance=1e-4)
    assert region.relative_tolerance == 1e-4
    assert float(region.undersaturated[0].pressures[0]) == 99.995


def test_builder_passes_config_tolerances_to_regions():
    config = Config(absolute_tolerance=1e-6, relative_tolerance=1e-4)
    store = (
        RegionTableStoreBuilder(config)
        .add_region_rows([[10.0, 100.0, 1.10, 1.20]], undersaturated=[[[200.0, 1.08, 1.25]]])
        .build()
    )
    region = store.region(0)
    assert region.absolute_tolerance == 1e-6
    assert region.relative_tolerance == 1e-4

    default_region = (
        RegionTableStoreBuilder().add_region_rows([[10.0, 100.0, 1.10, 1.20]]).build().region(0)
    )
    assert default_region.absolute_tolerance == 1e-8
    assert default_region.relative_tolerance == 1e-5
