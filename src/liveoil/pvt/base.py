import logging
import typing
from abc import ABC, abstractmethod

import numpy as np

from liveoil._precision import get_dtype
from liveoil.config import Config
from liveoil.constants import c
from liveoil.errors import ValidationError
from liveoil.tables.viscosity import ViscosityReference, ViscosityTemperatureTables
from liveoil.types import (
    CellValues,
    OneDimensionalGrid,
    PhasePresence,
    PropertyWithDerivatives,
    PropertyWithPressureDerivative,
    RegionIndices,
    TwoDimensionalGrid,
)

logger = logging.getLogger(__name__)

__all__ = ["PVTModel"]

OutputBuffers = typing.Optional[typing.Sequence[np.typing.NDArray]]


class PVTModel(ABC):
    """
    Tabulated oil PVT model evaluated over batches of cells.

    Every operation takes per-cell arrays of equal length `n` and an optional array of
    PVT region indices (`None` places every cell in region 0). Results are written into
    the caller's `out` arrays when given, which must be 1-dimensional, of length `n`,
    floating point and writeable. They are never resized. Missing outputs are allocated.

    Pressures or ratios outside the tabulated range are clamped to the table edges,
    never rejected. Temperatures are accepted for signature symmetry with thermal
    models; the tables are isothermal.
    """

    keyword: typing.ClassVar[str]
    """Deck keyword of the tables backing the model."""

    def __init__(self, config: typing.Optional[Config] = None) -> None:
        self.config = config or Config()
        self.viscosity_temperature_tables: typing.Optional[ViscosityTemperatureTables] = None
        self.viscosity_reference: typing.Optional[ViscosityReference] = None

    @abstractmethod
    def table_count(self) -> int:
        """Number of PVT regions."""
        ...

    @property
    @abstractmethod
    def pressure_bounds(self) -> typing.Tuple[float, float]:
        """Smallest and largest tabulated pressure over all regions."""
        ...

    @property
    @abstractmethod
    def region_pressure_bounds(self) -> np.typing.NDArray[np.float64]:
        """Smallest and largest tabulated pressure of each region, shape `(regions, 2)`."""
        ...

    def set_viscosity_temperature_tables(
        self,
        tables: ViscosityTemperatureTables,
        reference: typing.Optional[ViscosityReference] = None,
    ) -> None:
        """
        Attach the temperature dependence tables of the oil viscosity.

        The tables are only stored; nothing is recomputed.

        :param tables: One `ViscosityTemperatureTable` per PVT region (OILVISCT)
        :param reference: Reference state of the tables (VISCREF)
        """
        self.viscosity_temperature_tables = tables
        self.viscosity_reference = reference

    @abstractmethod
    def viscosity(
        self,
        pressure: CellValues,
        temperature: typing.Optional[CellValues],
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        *,
        regions: RegionIndices = None,
        out: typing.Optional[np.typing.NDArray] = None,
    ) -> OneDimensionalGrid:
        """
        Oil viscosity as a function of pressure, temperature and surface volumes.

        :param pressure: Cell pressures
        :param temperature: Cell temperatures (no effect)
        :param surface_volumes: `(n, num_phases)` surface volumes of each cell
        :param regions: Cell PVT region indices
        :param out: Output array for μ
        :return: μ
        """
        ...

    @abstractmethod
    def viscosity_and_derivatives(
        self,
        pressure: CellValues,
        temperature: typing.Optional[CellValues],
        solution_gor: CellValues,
        *,
        phase_presence: typing.Optional[typing.Any] = None,
        regions: RegionIndices = None,
        out: OutputBuffers = None,
    ) -> PropertyWithDerivatives:
        """
        Oil viscosity and its pressure and ratio derivatives.

        Without `phase_presence` the oil is taken as saturated wherever the ratio is at
        or above the saturated ratio at the cell pressure. With `phase_presence`, cells
        flagged with free gas are saturated and all others undersaturated.

        :param pressure: Cell pressures
        :param temperature: Cell temperatures (no effect)
        :param solution_gor: Cell dissolved gas-oil ratios
        :param phase_presence: Per-cell `PhasePresence` flags, or booleans marking free gas
        :param regions: Cell PVT region indices
        :param out: Output arrays for (μ, dμ/dp, dμ/dr)
        :return: (μ, dμ/dp, dμ/dr)
        """
        ...

    @abstractmethod
    def formation_volume_factor(
        self,
        pressure: CellValues,
        temperature: typing.Optional[CellValues],
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        *,
        regions: RegionIndices = None,
        out: typing.Optional[np.typing.NDArray] = None,
    ) -> OneDimensionalGrid:
        """Oil formation volume factor B as a function of pressure, temperature and surface volumes."""
        ...

    @abstractmethod
    def formation_volume_factor_and_derivative(
        self,
        pressure: CellValues,
        temperature: typing.Optional[CellValues],
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        *,
        regions: RegionIndices = None,
        out: OutputBuffers = None,
    ) -> PropertyWithPressureDerivative:
        """Oil formation volume factor B and dB/dp."""
        ...

    @abstractmethod
    def inverse_formation_volume_factor(
        self,
        pressure: CellValues,
        temperature: typing.Optional[CellValues],
        solution_gor: CellValues,
        *,
        phase_presence: typing.Optional[typing.Any] = None,
        regions: RegionIndices = None,
        out: OutputBuffers = None,
    ) -> PropertyWithDerivatives:
        """
        b = 1/B and its pressure and ratio derivatives.

        Branch selection follows `viscosity_and_derivatives`.
        """
        ...

    @abstractmethod
    def saturated_solution_gor(
        self,
        pressure: CellValues,
        *,
        regions: RegionIndices = None,
        out: OutputBuffers = None,
    ) -> PropertyWithPressureDerivative:
        """Solution gas-oil ratio at saturation and its pressure derivative."""
        ...

    def saturated_vaporized_oil_ratio(
        self,
        pressure: CellValues,
        *,
        regions: RegionIndices = None,
        out: OutputBuffers = None,
    ) -> PropertyWithPressureDerivative:
        """
        Vaporized oil-gas ratio at saturation and its pressure derivative.

        Oil models track no oil in the gas phase: always `c.NO_VAPORIZED_OIL_RATIO`
        with a zero derivative.
        """
        pressures = self._pressures(pressure)
        self._regions(regions, pressures)
        rv, d_rv = self._outputs(out, pressures.size, 2)
        rv[:] = c.NO_VAPORIZED_OIL_RATIO
        d_rv[:] = 0.0
        return rv, d_rv

    @abstractmethod
    def solution_factor(
        self,
        pressure: CellValues,
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        *,
        regions: RegionIndices = None,
        out: typing.Optional[np.typing.NDArray] = None,
    ) -> OneDimensionalGrid:
        """Dissolved gas-oil ratio R as a function of pressure and surface volumes."""
        ...

    @abstractmethod
    def solution_factor_and_derivative(
        self,
        pressure: CellValues,
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        *,
        regions: RegionIndices = None,
        out: OutputBuffers = None,
    ) -> PropertyWithPressureDerivative:
        """Dissolved gas-oil ratio R and dR/dp."""
        ...

    def _pressures(self, pressure: CellValues) -> OneDimensionalGrid:
        pressures = np.ascontiguousarray(np.atleast_1d(pressure), dtype=get_dtype())
        if pressures.ndim != 1:
            raise ValidationError(
                f"`pressure` must be 1-dimensional, got shape {pressures.shape}"
            )
        return pressures

    def _cell_values(
        self, values: CellValues, name: str, size: int
    ) -> OneDimensionalGrid:
        array = np.atleast_1d(np.asarray(values, dtype=get_dtype()))
        if array.ndim != 1 or array.size not in (1, size):
            raise ValidationError(
                f"`{name}` must hold one value per cell ({size}), got shape {array.shape}"
            )
        return np.ascontiguousarray(np.broadcast_to(array, (size,)))

    def _temperatures(
        self, temperature: typing.Optional[CellValues], size: int
    ) -> None:
        if temperature is not None:
            self._cell_values(temperature, "temperature", size)

    def _surface_volumes(
        self,
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        size: int,
    ) -> TwoDimensionalGrid:
        num_phases = self.config.phase_usage.num_phases
        array = np.asarray(surface_volumes, dtype=get_dtype())
        if array.ndim == 1 and array.size == num_phases:
            array = np.broadcast_to(array, (size, num_phases))
        if array.shape != (size, num_phases):
            raise ValidationError(
                f"`surface_volumes` must have shape ({size}, {num_phases}), got {array.shape}"
            )
        return np.ascontiguousarray(array)

    def _regions(
        self, regions: RegionIndices, pressures: OneDimensionalGrid
    ) -> np.typing.NDArray[np.int64]:
        size = pressures.size
        if regions is None:
            indices = np.zeros(size, dtype=np.int64)
            if self.config.warn_on_extrapolation:
                self._warn_extrapolation(pressures, indices)
            return indices

        indices = np.atleast_1d(np.asarray(regions))
        if indices.ndim != 1 or indices.size not in (1, size):
            raise ValidationError(
                f"`regions` must hold one index per cell ({size}), got shape {indices.shape}"
            )
        if not np.issubdtype(indices.dtype, np.integer):
            raise ValidationError(
                f"`regions` must hold integers, got dtype {indices.dtype}"
            )
        count = self.table_count()
        if np.any(indices < 0) or np.any(indices >= count):
            raise ValidationError(
                f"PVT region indices must lie in [0, {count - 1}], got "
                f"[{indices.min()}, {indices.max()}]"
            )
        indices = np.ascontiguousarray(np.broadcast_to(indices.astype(np.int64), (size,)))
        if self.config.warn_on_extrapolation:
            self._warn_extrapolation(pressures, indices)
        return indices

    def _saturation_flags(
        self, phase_presence: typing.Optional[typing.Any], size: int
    ) -> typing.Tuple[np.typing.NDArray[np.bool_], bool]:
        """Per-cell saturated flags, and whether they should override branch detection."""
        if phase_presence is None:
            return np.zeros(0, dtype=np.bool_), False

        flags = np.atleast_1d(np.asarray(phase_presence))
        if flags.ndim != 1 or flags.size not in (1, size):
            raise ValidationError(
                f"`phase_presence` must hold one entry per cell ({size}), got shape {flags.shape}"
            )
        if flags.dtype == np.bool_:
            saturated = flags
        elif np.issubdtype(flags.dtype, np.integer):
            saturated = (flags.astype(np.int64) & int(PhasePresence.FREE_GAS)) != 0
        else:
            raise ValidationError(
                f"`phase_presence` must hold `PhasePresence` flags or booleans, got dtype {flags.dtype}"
            )
        return np.ascontiguousarray(np.broadcast_to(saturated, (size,))), True

    def _outputs(
        self, out: OutputBuffers, size: int, count: int
    ) -> typing.List[np.typing.NDArray]:
        if out is None:
            return [np.empty(size, dtype=get_dtype()) for _ in range(count)]

        if isinstance(out, np.ndarray):
            out = [out]
        if len(out) != count:
            raise ValidationError(f"Expected {count} output arrays, got {len(out)}")
        for buffer in out:
            if not isinstance(buffer, np.ndarray):
                raise ValidationError(
                    f"Output buffers must be numpy arrays, got {type(buffer).__name__}"
                )
            if buffer.shape != (size,):
                raise ValidationError(
                    f"Output buffers must have shape ({size},), got {buffer.shape}"
                )
            if buffer.dtype not in (np.float32, np.float64):
                raise ValidationError(
                    f"Output buffers must be float32 or float64, got dtype {buffer.dtype}"
                )
            if not buffer.flags.writeable:
                raise ValidationError("Output buffers must be writeable")
        return list(out)

    def _warn_extrapolation(
        self, pressures: OneDimensionalGrid, indices: np.typing.NDArray[np.int64]
    ) -> None:
        """Log a warning if any pressure falls outside the tabulated range of its region."""
        if pressures.size == 0:
            return
        bounds = self.region_pressure_bounds[indices]
        outside = (pressures < bounds[:, 0]) | (pressures > bounds[:, 1])
        if np.any(outside):
            regions = np.unique(indices[outside])
            logger.warning(
                f"Pressure extrapolation in {int(outside.sum())} cell(s) of region(s) {regions.tolist()}: "
                f"queried P ∈ [{pressures[outside].min():.4f}, {pressures[outside].max():.4f}]. "
                "Values are clamped to the table edges."
            )
