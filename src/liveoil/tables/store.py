import logging
import typing

import attrs
import numpy as np
from typing_extensions import Self

from liveoil._precision import get_dtype
from liveoil.config import Config
from liveoil.constants import c
from liveoil.errors import MalformedTableError, ValidationError
from liveoil.tolerance import isclose
from liveoil.types import OneDimensionalGrid

logger = logging.getLogger(__name__)

__all__ = [
    "PressureCurve",
    "SaturatedKnot",
    "RegionTable",
    "PackedCurves",
    "PackedRegionTables",
    "RegionTableStore",
    "RegionTableStoreBuilder",
    "complete_undersaturated_curves",
]

UndersaturatedRows = typing.Optional[
    typing.Union[typing.Sequence[typing.Sequence[float]], np.typing.NDArray]
]


def _as_readonly_grid(value: typing.Any) -> OneDimensionalGrid:
    """Copy `value` into a read-only 1D array of the current precision."""
    array = np.atleast_1d(np.array(value, dtype=get_dtype(), copy=True))
    if array.ndim != 1:
        raise MalformedTableError(
            f"Table columns must be 1-dimensional, got shape {array.shape}"
        )
    array.setflags(write=False)
    return array


def _as_readonly_offsets(value: typing.Any) -> np.typing.NDArray[np.int64]:
    array = np.array(value, dtype=np.int64, copy=True)
    array.setflags(write=False)
    return array


@attrs.frozen(eq=False)
class PressureCurve:
    """
    Pressure-indexed sub-curve of a PVT table.

    Ordered (pressure, B, μ) points with strictly increasing pressures.
    """

    pressures: OneDimensionalGrid = attrs.field(converter=_as_readonly_grid)
    """Pressures of the curve points."""

    formation_volume_factors: OneDimensionalGrid = attrs.field(
        converter=_as_readonly_grid
    )
    """Oil formation volume factor B at each pressure (rm³/sm³)."""

    viscosities: OneDimensionalGrid = attrs.field(converter=_as_readonly_grid)
    """Oil viscosity μ at each pressure."""

    def __attrs_post_init__(self) -> None:
        size = self.pressures.size
        if size == 0:
            raise MalformedTableError("Pressure curve must contain at least one point")
        if (
            self.formation_volume_factors.size != size
            or self.viscosities.size != size
        ):
            raise MalformedTableError(
                "Mismatched column lengths: "
                f"{size} pressures, {self.formation_volume_factors.size} formation volume factors, "
                f"{self.viscosities.size} viscosities"
            )
        for name in ("pressures", "formation_volume_factors", "viscosities"):
            if not np.all(np.isfinite(getattr(self, name))):
                raise MalformedTableError(f"`{name}` must be finite")
        if not np.all(np.diff(self.pressures) > 0):
            raise MalformedTableError(
                f"Pressures must be strictly increasing, got {self.pressures.tolist()}"
            )
        if not np.all(self.formation_volume_factors > 0):
            raise MalformedTableError("Formation volume factors must be positive")
        if not np.all(self.viscosities > 0):
            raise MalformedTableError("Viscosities must be positive")

    def __len__(self) -> int:
        return int(self.pressures.size)

    @property
    def inverse_formation_volume_factors(self) -> OneDimensionalGrid:
        """b = 1/B at each pressure. This is the column that gets interpolated."""
        return 1.0 / self.formation_volume_factors

    @property
    def pressure_range(self) -> typing.Tuple[float, float]:
        return float(self.pressures[0]), float(self.pressures[-1])


@attrs.frozen(eq=False)
class SaturatedKnot:
    """A breakpoint of the saturated curve."""

    solution_gor: float = attrs.field(converter=float)
    """Solution gas-oil ratio Rs of the knot (sm³/sm³)."""

    curve: PressureCurve
    """Saturated oil behaviour for this Rs. Its first pressure is the bubble point."""

    @property
    def bubble_point_pressure(self) -> float:
        return float(self.curve.pressures[0])


@attrs.frozen(eq=False)
class RegionTable:
    """
    Live oil tables of one PVT region.

    One saturated knot per tabulated Rs, and one undersaturated curve per knot.
    The undersaturated curve starts at the knot's saturated sub-curve and extends
    above the bubble point.
    """

    knots: typing.Tuple[SaturatedKnot, ...] = attrs.field(converter=tuple)
    """Saturated curve knots, ordered by strictly increasing Rs."""

    undersaturated: typing.Tuple[PressureCurve, ...] = attrs.field(converter=tuple)
    """Undersaturated curve of each knot."""

    absolute_tolerance: float = attrs.field(
        factory=lambda: c.ABSOLUTE_TOLERANCE, kw_only=True, converter=float
    )
    """Absolute tolerance for comparing undersaturated curve starts with bubble points."""

    relative_tolerance: float = attrs.field(
        factory=lambda: c.RELATIVE_TOLERANCE, kw_only=True, converter=float
    )
    """Relative tolerance for comparing undersaturated curve starts with bubble points."""

    def __attrs_post_init__(self) -> None:
        if not self.knots:
            raise MalformedTableError("Region must contain at least one saturated knot")
        if len(self.undersaturated) != len(self.knots):
            raise MalformedTableError(
                f"Expected {len(self.knots)} undersaturated curves (one per knot), "
                f"got {len(self.undersaturated)}"
            )

        solution_gors = self.solution_gors
        if not np.all(np.diff(solution_gors) > 0):
            raise MalformedTableError(
                f"Solution gas-oil ratios must be strictly increasing, got {solution_gors.tolist()}"
            )
        bubble_point_pressures = self.bubble_point_pressures
        if not np.all(np.diff(bubble_point_pressures) >= 0):
            raise MalformedTableError(
                "Bubble point pressures must not decrease with increasing Rs, "
                f"got {bubble_point_pressures.tolist()}"
            )
        for index, (knot, curve) in enumerate(zip(self.knots, self.undersaturated)):
            start = float(curve.pressures[0])
            if start < knot.bubble_point_pressure and not isclose(
                start,
                knot.bubble_point_pressure,
                self.absolute_tolerance,
                self.relative_tolerance,
            ):
                raise MalformedTableError(
                    f"Undersaturated curve of knot {index} starts at {start}, "
                    f"below its bubble point pressure {knot.bubble_point_pressure}"
                )

    def __len__(self) -> int:
        return len(self.knots)

    @property
    def solution_gors(self) -> OneDimensionalGrid:
        return np.array([knot.solution_gor for knot in self.knots], dtype=get_dtype())

    @property
    def bubble_point_pressures(self) -> OneDimensionalGrid:
        return np.array(
            [knot.bubble_point_pressure for knot in self.knots], dtype=get_dtype()
        )


@attrs.frozen(eq=False)
class PackedCurves:
    """
    Ragged pressure curves flattened into contiguous arrays.

    Points of curve `i` occupy `[offsets[i], offsets[i + 1])` of each column.
    """

    offsets: np.typing.NDArray[np.int64] = attrs.field(converter=_as_readonly_offsets)
    pressures: OneDimensionalGrid = attrs.field(converter=_as_readonly_grid)
    inverse_formation_volume_factors: OneDimensionalGrid = attrs.field(
        converter=_as_readonly_grid
    )
    viscosities: OneDimensionalGrid = attrs.field(converter=_as_readonly_grid)

    @classmethod
    def from_curves(cls, curves: typing.Sequence[PressureCurve]) -> Self:
        offsets = np.zeros(len(curves) + 1, dtype=np.int64)
        offsets[1:] = np.cumsum([len(curve) for curve in curves])
        return cls(
            offsets=offsets,
            pressures=np.concatenate([curve.pressures for curve in curves]),
            inverse_formation_volume_factors=np.concatenate(
                [curve.inverse_formation_volume_factors for curve in curves]
            ),
            viscosities=np.concatenate([curve.viscosities for curve in curves]),
        )


@attrs.frozen(eq=False)
class PackedRegionTables:
    """
    Flat, kernel-ready layout of all regions of a `RegionTableStore`.

    Knots of region `r` occupy `[region_offsets[r], region_offsets[r + 1])`.
    `saturated` and `undersaturated` hold one curve per knot, in knot order.
    """

    region_offsets: np.typing.NDArray[np.int64] = attrs.field(
        converter=_as_readonly_offsets
    )
    solution_gors: OneDimensionalGrid = attrs.field(converter=_as_readonly_grid)
    bubble_point_pressures: OneDimensionalGrid = attrs.field(
        converter=_as_readonly_grid
    )
    saturated: PackedCurves
    undersaturated: PackedCurves

    @classmethod
    def from_regions(cls, regions: typing.Sequence[RegionTable]) -> Self:
        region_offsets = np.zeros(len(regions) + 1, dtype=np.int64)
        region_offsets[1:] = np.cumsum([len(region) for region in regions])
        knots = [knot for region in regions for knot in region.knots]
        return cls(
            region_offsets=region_offsets,
            solution_gors=[knot.solution_gor for knot in knots],
            bubble_point_pressures=[knot.bubble_point_pressure for knot in knots],
            saturated=PackedCurves.from_curves([knot.curve for knot in knots]),
            undersaturated=PackedCurves.from_curves(
                [curve for region in regions for curve in region.undersaturated]
            ),
        )


@attrs.frozen(eq=False)
class RegionTableStore:
    """
    Immutable live oil (PVTO) tables for every PVT region.

    Build with `RegionTableStoreBuilder`. Once built, nothing in the store can be
    modified, so it can be shared between evaluators and threads freely.
    """

    regions: typing.Tuple[RegionTable, ...] = attrs.field(converter=tuple)
    """Tables of each PVT region, indexed by region number."""

    _packed: PackedRegionTables = attrs.field(init=False, repr=False)

    def __attrs_post_init__(self) -> None:
        if not self.regions:
            raise MalformedTableError("Table store must contain at least one region")
        object.__setattr__(
            self, "_packed", PackedRegionTables.from_regions(self.regions)
        )

    def __len__(self) -> int:
        return len(self.regions)

    def table_count(self) -> int:
        """Number of PVT regions in the store."""
        return len(self.regions)

    def region(self, region: int) -> RegionTable:
        """
        Get the tables of a PVT region.

        :param region: Region index
        :return: `RegionTable` of the region
        :raises ValidationError: If `region` is out of range
        """
        if not 0 <= region < len(self.regions):
            raise ValidationError(
                f"PVT region {region} out of range [0, {len(self.regions) - 1}]"
            )
        return self.regions[region]

    def saturated_curve(self, region: int) -> typing.Tuple[SaturatedKnot, ...]:
        """Ordered knots of the saturated curve of a region."""
        return self.region(region).knots

    def undersaturated_curve(self, region: int, knot_index: int) -> PressureCurve:
        """
        Undersaturated pressure curve branching off a saturated knot.

        :param region: Region index
        :param knot_index: Index of the knot in the region's saturated curve
        :return: `PressureCurve` starting at the knot's saturated state
        """
        table = self.region(region)
        if not 0 <= knot_index < len(table):
            raise ValidationError(
                f"Knot index {knot_index} out of range [0, {len(table) - 1}] for region {region}"
            )
        return table.undersaturated[knot_index]

    @property
    def packed(self) -> PackedRegionTables:
        """Flattened tables consumed by the evaluation kernels."""
        return self._packed

    @property
    def pressure_bounds(self) -> typing.Tuple[float, float]:
        """Smallest and largest tabulated pressure over all regions."""
        packed = self._packed
        pressures = np.concatenate(
            [packed.saturated.pressures, packed.undersaturated.pressures]
        )
        return float(pressures.min()), float(pressures.max())

    @property
    def region_pressure_bounds(self) -> np.typing.NDArray[np.float64]:
        """Smallest and largest tabulated pressure of each region, shape `(regions, 2)`."""
        bounds = np.empty((len(self.regions), 2), dtype=np.float64)
        for index, table in enumerate(self.regions):
            curves = [knot.curve for knot in table.knots] + list(table.undersaturated)
            bounds[index, 0] = min(float(curve.pressures[0]) for curve in curves)
            bounds[index, 1] = max(float(curve.pressures[-1]) for curve in curves)
        return bounds


def _undersaturated_curve(
    knot: SaturatedKnot, rows: UndersaturatedRows
) -> PressureCurve:
    """Append the undersaturated rows of a knot to its saturated sub-curve."""
    if rows is None:
        return knot.curve
    array = np.asarray(rows, dtype=np.float64)
    if array.size == 0:
        return knot.curve
    if array.ndim == 1:
        array = array.reshape(1, -1)
    if array.ndim != 2 or array.shape[1] != 3:
        raise MalformedTableError(
            f"Undersaturated rows must have 3 columns (P, B, μ), got shape {array.shape}"
        )
    curve = knot.curve
    return PressureCurve(
        pressures=np.concatenate([curve.pressures, array[:, 0]]),
        formation_volume_factors=np.concatenate(
            [curve.formation_volume_factors, array[:, 1]]
        ),
        viscosities=np.concatenate([curve.viscosities, array[:, 2]]),
    )


def complete_undersaturated_curves(
    knots: typing.Sequence[SaturatedKnot],
    curves: typing.Sequence[PressureCurve],
    region: int = 0,
) -> typing.List[PressureCurve]:
    """
    Extend single-point undersaturated curves using the next knot that has data.

    A knot tabulated without undersaturated rows receives the pressure steps of the
    next higher knot with undersaturated data. B and μ follow that knot's relative
    changes, so the compressibility and viscosibility of the borrowed curve are kept.
    Knots without such a donor are returned unchanged.

    :param knots: Saturated knots of the region
    :param curves: Undersaturated curve of each knot
    :param region: Region index, used for logging only
    :return: Completed undersaturated curves
    """
    completed = list(curves)
    count = len(completed)
    donor = -1
    for index in range(count):
        if len(curves[index]) > 1:
            continue

        if donor <= index:
            donor = index + 1
            while donor < count and len(curves[donor]) < 2:
                donor += 1

        if donor >= count:
            if count > 1:
                logger.warning(
                    f"Region {region}: knot {index} (Rs={knots[index].solution_gor:.6g}) has no "
                    "undersaturated data and no higher knot to borrow it from. "
                    "Values are held constant above its bubble point."
                )
            continue

        source = curves[donor]
        current = completed[index]
        pressures = current.pressures[-1] + np.cumsum(np.diff(source.pressures))
        formation_volume_factors = current.formation_volume_factors[-1] * np.cumprod(
            source.formation_volume_factors[1:] / source.formation_volume_factors[:-1]
        )
        viscosities = current.viscosities[-1] * np.cumprod(
            source.viscosities[1:] / source.viscosities[:-1]
        )
        completed[index] = PressureCurve(
            pressures=np.concatenate([current.pressures, pressures]),
            formation_volume_factors=np.concatenate(
                [current.formation_volume_factors, formation_volume_factors]
            ),
            viscosities=np.concatenate([current.viscosities, viscosities]),
        )
        logger.debug(
            f"Region {region}: completed undersaturated curve of knot {index} from knot {donor}"
        )
    return completed


def _group_knots(
    solution_gors: np.typing.NDArray, config: Config
) -> typing.List[typing.Tuple[int, int]]:
    """Split saturated rows into runs of equal Rs. Each run is one knot."""
    groups = []
    start = 0
    for index in range(1, solution_gors.size):
        if not isclose(
            solution_gors[index],
            solution_gors[start],
            config.absolute_tolerance,
            config.relative_tolerance,
        ):
            groups.append((start, index))
            start = index
    groups.append((start, int(solution_gors.size)))
    return groups


class RegionTableStoreBuilder:
    """
    Collects per-region live oil tables and builds an immutable `RegionTableStore`.

    Example:
    ```python
    store = (
        RegionTableStoreBuilder()
        .add_region_rows(
            [[20.0, 50.0, 1.10, 1.2], [60.0, 150.0, 1.25, 0.9]],
            undersaturated=[None, [[250.0, 1.23, 1.0]]],
        )
        .build()
    )
    ```
    """

    def __init__(self, config: typing.Optional[Config] = None) -> None:
        self.config = config or Config()
        self._regions: typing.List[RegionTable] = []

    def __len__(self) -> int:
        return len(self._regions)

    def add_region(
        self,
        solution_gors: typing.Sequence[float],
        pressures: typing.Sequence[float],
        formation_volume_factors: typing.Sequence[float],
        viscosities: typing.Sequence[float],
        undersaturated: typing.Optional[typing.Sequence[UndersaturatedRows]] = None,
    ) -> Self:
        """
        Add the tables of the next PVT region from saturated columns.

        Consecutive rows with equal Rs form the pressure sub-curve of one knot. The
        first pressure of each knot is its bubble point pressure.

        :param solution_gors: Rs of each saturated row
        :param pressures: Pressure of each saturated row
        :param formation_volume_factors: B of each saturated row
        :param viscosities: μ of each saturated row
        :param undersaturated: One entry per knot: `(q, 3)` rows of (P, B, μ) above the
            knot's saturated sub-curve, or None for a knot without undersaturated data.
        :return: The builder, for chaining
        :raises MalformedTableError: If the region's tables are malformed
        """
        region = len(self._regions)
        try:
            table = self._build_region(
                region,
                solution_gors,
                pressures,
                formation_volume_factors,
                viscosities,
                undersaturated,
            )
        except MalformedTableError as exc:
            raise MalformedTableError(f"Region {region}: {exc}") from exc

        self._regions.append(table)
        logger.debug(
            f"Region {region}: {len(table)} knots, Rs ∈ [{table.knots[0].solution_gor:.4f}, "
            f"{table.knots[-1].solution_gor:.4f}]"
        )
        return self

    def add_region_rows(
        self,
        rows: typing.Union[typing.Sequence[typing.Sequence[float]], np.typing.NDArray],
        undersaturated: typing.Optional[typing.Sequence[UndersaturatedRows]] = None,
    ) -> Self:
        """
        Add the tables of the next PVT region from `(m, 4)` saturated rows of (Rs, P, B, μ).

        See `add_region` for `undersaturated`.
        """
        array = np.asarray(rows, dtype=np.float64)
        if array.ndim != 2 or array.shape[1] != 4:
            raise MalformedTableError(
                f"Region {len(self._regions)}: saturated rows must have 4 columns "
                f"(Rs, P, B, μ), got shape {array.shape}"
            )
        return self.add_region(
            array[:, 0], array[:, 1], array[:, 2], array[:, 3], undersaturated
        )

    def _build_region(
        self,
        region: int,
        solution_gors: typing.Sequence[float],
        pressures: typing.Sequence[float],
        formation_volume_factors: typing.Sequence[float],
        viscosities: typing.Sequence[float],
        undersaturated: typing.Optional[typing.Sequence[UndersaturatedRows]],
    ) -> RegionTable:
        columns = [
            np.atleast_1d(np.asarray(column, dtype=np.float64))
            for column in (solution_gors, pressures, formation_volume_factors, viscosities)
        ]
        sizes = {column.size for column in columns}
        if len(sizes) != 1:
            raise MalformedTableError(
                f"Mismatched column lengths: {[column.size for column in columns]}"
            )
        rs, p, fvf, mu = columns
        if rs.size == 0:
            raise MalformedTableError("No saturated entries")

        knots = [
            SaturatedKnot(
                solution_gor=rs[start],
                curve=PressureCurve(
                    pressures=p[start:stop],
                    formation_volume_factors=fvf[start:stop],
                    viscosities=mu[start:stop],
                ),
            )
            for start, stop in _group_knots(rs, self.config)
        ]

        if undersaturated is None:
            undersaturated = [None] * len(knots)
        if len(undersaturated) != len(knots):
            raise MalformedTableError(
                f"Expected undersaturated data for {len(knots)} knots, got {len(undersaturated)}"
            )
        curves = [
            _undersaturated_curve(knot, rows)
            for knot, rows in zip(knots, undersaturated)
        ]
        if self.config.complete_undersaturated_tables:
            curves = complete_undersaturated_curves(knots, curves, region=region)
        return RegionTable(
            knots=knots,
            undersaturated=curves,
            absolute_tolerance=self.config.absolute_tolerance,
            relative_tolerance=self.config.relative_tolerance,
        )

    def build(self) -> RegionTableStore:
        """
        Build the immutable table store from the regions added so far.

        :raises MalformedTableError: If no region was added
        """
        store = RegionTableStore(regions=tuple(self._regions))
        knot_count = sum(len(region) for region in store.regions)
        low, high = store.pressure_bounds
        logger.info(
            f"Live oil tables built: {store.table_count()} regions, {knot_count} knots, "
            f"P ∈ [{low:.4f}, {high:.4f}]"
        )
        return store
