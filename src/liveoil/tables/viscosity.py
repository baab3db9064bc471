import typing

import attrs
import numpy as np

from liveoil.errors import MalformedTableError
from liveoil.tables.store import _as_readonly_grid
from liveoil.types import OneDimensionalGrid

__all__ = ["ViscosityTemperatureTable", "ViscosityReference"]


@attrs.frozen(eq=False)
class ViscosityTemperatureTable:
    """Oil viscosity as a function of temperature for one PVT region (OILVISCT)."""

    temperatures: OneDimensionalGrid = attrs.field(converter=_as_readonly_grid)
    viscosities: OneDimensionalGrid = attrs.field(converter=_as_readonly_grid)

    def __attrs_post_init__(self) -> None:
        if self.temperatures.size == 0:
            raise MalformedTableError("Viscosity temperature table is empty")
        if self.temperatures.size != self.viscosities.size:
            raise MalformedTableError(
                f"Mismatched column lengths: {self.temperatures.size} temperatures, "
                f"{self.viscosities.size} viscosities"
            )
        if not np.all(np.diff(self.temperatures) > 0):
            raise MalformedTableError("Temperatures must be strictly increasing")
        if not np.all(self.viscosities > 0):
            raise MalformedTableError("Viscosities must be positive")

    def __len__(self) -> int:
        return int(self.temperatures.size)


@attrs.frozen
class ViscosityReference:
    """Reference state at which the viscosity temperature tables were measured (VISCREF)."""

    pressure: float = attrs.field(converter=float)
    """Reference pressure."""

    solution_gor: float = attrs.field(
        default=0.0, converter=float, validator=attrs.validators.ge(0.0)
    )
    """Reference solution gas-oil ratio."""


ViscosityTemperatureTables = typing.Sequence[ViscosityTemperatureTable]
