import enum
import typing

import numpy as np
from typing_extensions import TypeAlias


__all__ = [
    "OneDimension",
    "TwoDimensions",
    "OneDimensionalGrid",
    "TwoDimensionalGrid",
    "FloatOrArray",
    "CellValues",
    "RegionIndices",
    "PhasePresence",
    "PVTKeyword",
    "PropertyWithDerivatives",
    "PropertyWithPressureDerivative",
]

OneDimension: TypeAlias = typing.Tuple[int]
"""1D index"""
TwoDimensions: TypeAlias = typing.Tuple[int, int]
"""2D indices"""

NDimension = typing.TypeVar("NDimension", bound=typing.Tuple[int, ...])
NDimensionalGrid = np.ndarray[NDimension, np.dtype[np.floating]]
FloatOrArray = typing.Union[float, np.typing.NDArray[np.floating]]

OneDimensionalGrid = NDimensionalGrid[OneDimension]
"""1D array of floats, e.g. a pressure column of a PVT table"""
TwoDimensionalGrid = NDimensionalGrid[TwoDimensions]
"""2D array of floats, e.g. surface volumes of shape (n_cells, n_phases)"""

CellValues = typing.Union[float, typing.Sequence[float], np.typing.NDArray]
"""Per-cell input values. Scalars are treated as a single cell."""

RegionIndices = typing.Optional[
    typing.Union[int, typing.Sequence[int], np.typing.NDArray[np.integer]]
]
"""Per-cell PVT region indices. `None` assigns every cell to region 0."""

PropertyWithDerivatives = typing.Tuple[
    OneDimensionalGrid, OneDimensionalGrid, OneDimensionalGrid
]
"""(value, d(value)/dp, d(value)/dr) per cell"""

PropertyWithPressureDerivative = typing.Tuple[OneDimensionalGrid, OneDimensionalGrid]
"""(value, d(value)/dp) per cell"""


class PhasePresence(enum.IntFlag):
    """
    Bit flags describing which phases are present in a cell.

    Oil is treated as saturated wherever `FREE_GAS` is set.
    """

    NONE = 0
    FREE_WATER = 1
    OIL = 2
    FREE_GAS = 4


PVTKeyword = typing.Literal["PVTO", "PVDO"]
"""
Deck keywords of the supported tabulated oil models

- "PVTO": live oil, (Rs, P, Bo, μo) with undersaturated branches
- "PVDO": dead oil, (P, Bo, μo)
"""
