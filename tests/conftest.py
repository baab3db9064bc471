import numpy as np
import pytest

from liveoil import (
    DeadOilPVT,
    DeadOilTableStore,
    LiveOilPVT,
    RegionTableStore,
    RegionTableStoreBuilder,
)


@pytest.fixture
def two_region_store() -> RegionTableStore:
    """
    Region 0: three knots, the lowest one without undersaturated rows.
    Region 1: a single knot with a single pressure point.
    """
    return (
        RegionTableStoreBuilder()
        .add_region_rows(
            [
                [10.0, 50.0, 1.10, 1.20],
                [20.0, 100.0, 1.15, 1.00],
                [40.0, 200.0, 1.25, 0.80],
            ],
            undersaturated=[
                None,
                [[200.0, 1.13, 1.05], [300.0, 1.11, 1.10]],
                [[300.0, 1.23, 0.85]],
            ],
        )
        .add_region_rows([[5.0, 100.0, 1.05, 2.0]])
        .build()
    )


@pytest.fixture
def live_oil(two_region_store) -> LiveOilPVT:
    return LiveOilPVT(two_region_store)


@pytest.fixture
def flat_bubble_point_store() -> RegionTableStore:
    """Three knots sharing the same saturated sub-curve, so every bubble point is 100."""
    pressures = [100.0, 200.0, 300.0]
    formation_volume_factors = [1.0, 1.1, 1.15]
    viscosities = [1.0, 0.9, 0.8]
    return (
        RegionTableStoreBuilder()
        .add_region(
            solution_gors=np.repeat([0.0, 50.0, 100.0], 3),
            pressures=pressures * 3,
            formation_volume_factors=formation_volume_factors * 3,
            viscosities=viscosities * 3,
        )
        .build()
    )


@pytest.fixture
def dead_oil_store() -> DeadOilTableStore:
    return DeadOilTableStore.from_rows(
        [
            [[100.0, 1.05, 2.0], [200.0, 1.03, 2.1], [300.0, 1.02, 2.2]],
            [[150.0, 1.20, 1.5]],
        ]
    )


@pytest.fixture
def dead_oil(dead_oil_store) -> DeadOilPVT:
    return DeadOilPVT(dead_oil_store)


@pytest.fixture
def surface_volumes():
    """Build (water, oil, gas) surface volumes giving the requested gas-oil ratios."""

    def make(ratios, oil: float = 1.0) -> np.ndarray:
        ratios = np.asarray(ratios, dtype=float)
        volumes = np.zeros((ratios.size, 3))
        volumes[:, 1] = oil
        volumes[:, 2] = ratios * oil
        return volumes

    return make
