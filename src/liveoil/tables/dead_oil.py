import logging
import typing

import attrs
import numpy as np
from typing_extensions import Self

from liveoil.errors import MalformedTableError, ValidationError
from liveoil.tables.store import PackedCurves, PressureCurve

logger = logging.getLogger(__name__)

__all__ = ["DeadOilTableStore"]


@attrs.frozen(eq=False)
class DeadOilTableStore:
    """
    Immutable dead oil (PVDO) tables for every PVT region.

    Each region holds a single (P, B, μ) curve. Dead oil carries no dissolved gas.
    """

    regions: typing.Tuple[PressureCurve, ...] = attrs.field(converter=tuple)
    """Pressure curve of each PVT region."""

    _packed: PackedCurves = attrs.field(init=False, repr=False)

    def __attrs_post_init__(self) -> None:
        if not self.regions:
            raise MalformedTableError("Table store must contain at least one region")
        object.__setattr__(self, "_packed", PackedCurves.from_curves(self.regions))

    @classmethod
    def from_rows(
        cls,
        tables: typing.Sequence[
            typing.Union[typing.Sequence[typing.Sequence[float]], np.typing.NDArray]
        ],
    ) -> Self:
        """
        Build the store from one `(m, 3)` array of (P, B, μ) rows per region.

        :raises MalformedTableError: If any region's rows are malformed
        """
        curves = []
        for region, rows in enumerate(tables):
            array = np.asarray(rows, dtype=np.float64)
            if array.ndim != 2 or array.shape[1] != 3:
                raise MalformedTableError(
                    f"Region {region}: rows must have 3 columns (P, B, μ), got shape {array.shape}"
                )
            try:
                curves.append(
                    PressureCurve(
                        pressures=array[:, 0],
                        formation_volume_factors=array[:, 1],
                        viscosities=array[:, 2],
                    )
                )
            except MalformedTableError as exc:
                raise MalformedTableError(f"Region {region}: {exc}") from exc

        store = cls(regions=curves)
        logger.info(f"Dead oil tables built: {store.table_count()} regions")
        return store

    def __len__(self) -> int:
        return len(self.regions)

    def table_count(self) -> int:
        """Number of PVT regions in the store."""
        return len(self.regions)

    def curve(self, region: int) -> PressureCurve:
        """Pressure curve of a PVT region."""
        if not 0 <= region < len(self.regions):
            raise ValidationError(
                f"PVT region {region} out of range [0, {len(self.regions) - 1}]"
            )
        return self.regions[region]

    @property
    def packed(self) -> PackedCurves:
        """Flattened tables consumed by the evaluation kernels."""
        return self._packed

    @property
    def pressure_bounds(self) -> typing.Tuple[float, float]:
        """Smallest and largest tabulated pressure over all regions."""
        pressures = self._packed.pressures
        return float(pressures.min()), float(pressures.max())

    @property
    def region_pressure_bounds(self) -> np.typing.NDArray[np.float64]:
        """Smallest and largest tabulated pressure of each region, shape `(regions, 2)`."""
        return np.array(
            [[curve.pressures[0], curve.pressures[-1]] for curve in self.regions],
            dtype=np.float64,
        )
