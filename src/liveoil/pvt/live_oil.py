import logging
import typing

import numpy as np

from liveoil.config import Config
from liveoil.pvt import kernels
from liveoil.pvt.base import OutputBuffers, PVTModel
from liveoil.tables.store import RegionTableStore
from liveoil.types import (
    CellValues,
    OneDimensionalGrid,
    PropertyWithDerivatives,
    PropertyWithPressureDerivative,
    RegionIndices,
    TwoDimensionalGrid,
)

logger = logging.getLogger(__name__)

__all__ = ["LiveOilPVT"]


class LiveOilPVT(PVTModel):
    """
    Live oil PVT model backed by PVTO tables.

    Saturated cells follow the saturated curve at the cell pressure. Undersaturated
    cells are interpolated between the undersaturated curves of the two knots
    bracketing their dissolved gas ratio. The inverse formation volume factor b = 1/B
    is interpolated and B is derived from it.

    Example:
    ```python
    pvt = LiveOilPVT(store)
    b, db_dp, db_drs = pvt.inverse_formation_volume_factor(
        pressure=[150.0, 250.0], temperature=None, solution_gor=[40.0, 40.0]
    )
    ```
    """

    keyword = "PVTO"

    def __init__(
        self, tables: RegionTableStore, config: typing.Optional[Config] = None
    ) -> None:
        super().__init__(config)
        self.tables = tables

    def table_count(self) -> int:
        return self.tables.table_count()

    @property
    def pressure_bounds(self) -> typing.Tuple[float, float]:
        return self.tables.pressure_bounds

    @property
    def region_pressure_bounds(self) -> np.typing.NDArray[np.float64]:
        return self.tables.region_pressure_bounds

    def _evaluate(
        self,
        column: str,
        pressures: OneDimensionalGrid,
        ratios: OneDimensionalGrid,
        regions: np.typing.NDArray[np.int64],
        phase_presence: typing.Optional[typing.Any],
        value: np.typing.NDArray,
        d_pressure: np.typing.NDArray,
        d_ratio: np.typing.NDArray,
    ) -> None:
        """Run the live oil kernel for one tabulated column ("inverse_formation_volume_factors" or "viscosities")."""
        saturated, use_saturated = self._saturation_flags(
            phase_presence, pressures.size
        )
        packed = self.tables.packed
        logger.debug(f"Evaluating live oil {column} for {pressures.size} cells")
        kernels.evaluate_live_oil(
            pressures,
            ratios,
            saturated,
            use_saturated,
            regions,
            packed.region_offsets,
            packed.solution_gors,
            packed.bubble_point_pressures,
            packed.saturated.offsets,
            packed.saturated.pressures,
            getattr(packed.saturated, column),
            packed.undersaturated.offsets,
            packed.undersaturated.pressures,
            getattr(packed.undersaturated, column),
            self.config.absolute_tolerance,
            self.config.relative_tolerance,
            value,
            d_pressure,
            d_ratio,
        )

    def _surface_ratios(
        self,
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        size: int,
    ) -> OneDimensionalGrid:
        volumes = self._surface_volumes(surface_volumes, size)
        usage = self.config.phase_usage
        return np.ascontiguousarray(
            kernels.surface_volume_ratio(volumes, usage.liquid, usage.vapour),
            dtype=volumes.dtype,
        )

    def viscosity(
        self,
        pressure: CellValues,
        temperature: typing.Optional[CellValues],
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        *,
        regions: RegionIndices = None,
        out: typing.Optional[np.typing.NDArray] = None,
    ) -> OneDimensionalGrid:
        pressures = self._pressures(pressure)
        size = pressures.size
        self._temperatures(temperature, size)
        ratios = self._surface_ratios(surface_volumes, size)
        indices = self._regions(regions, pressures)
        (mu,) = self._outputs(out, size, 1)
        d_pressure, d_ratio = self._outputs(None, size, 2)
        self._evaluate(
            "viscosities", pressures, ratios, indices, None, mu, d_pressure, d_ratio
        )
        return mu

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
        pressures = self._pressures(pressure)
        size = pressures.size
        self._temperatures(temperature, size)
        ratios = self._cell_values(solution_gor, "solution_gor", size)
        indices = self._regions(regions, pressures)
        mu, d_mu_dp, d_mu_dr = self._outputs(out, size, 3)
        self._evaluate(
            "viscosities",
            pressures,
            ratios,
            indices,
            phase_presence,
            mu,
            d_mu_dp,
            d_mu_dr,
        )
        return mu, d_mu_dp, d_mu_dr

    def formation_volume_factor(
        self,
        pressure: CellValues,
        temperature: typing.Optional[CellValues],
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        *,
        regions: RegionIndices = None,
        out: typing.Optional[np.typing.NDArray] = None,
    ) -> OneDimensionalGrid:
        pressures = self._pressures(pressure)
        size = pressures.size
        self._temperatures(temperature, size)
        ratios = self._surface_ratios(surface_volumes, size)
        indices = self._regions(regions, pressures)
        (fvf,) = self._outputs(out, size, 1)
        d_pressure, d_ratio = self._outputs(None, size, 2)
        self._evaluate(
            "inverse_formation_volume_factors",
            pressures,
            ratios,
            indices,
            None,
            fvf,
            d_pressure,
            d_ratio,
        )
        np.reciprocal(fvf, out=fvf)
        return fvf

    def formation_volume_factor_and_derivative(
        self,
        pressure: CellValues,
        temperature: typing.Optional[CellValues],
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        *,
        regions: RegionIndices = None,
        out: OutputBuffers = None,
    ) -> PropertyWithPressureDerivative:
        pressures = self._pressures(pressure)
        size = pressures.size
        self._temperatures(temperature, size)
        ratios = self._surface_ratios(surface_volumes, size)
        indices = self._regions(regions, pressures)
        fvf, d_fvf_dp = self._outputs(out, size, 2)
        (d_ratio,) = self._outputs(None, size, 1)
        self._evaluate(
            "inverse_formation_volume_factors",
            pressures,
            ratios,
            indices,
            None,
            fvf,
            d_fvf_dp,
            d_ratio,
        )
        # B = 1/b, dB/dp = -B² db/dp
        np.reciprocal(fvf, out=fvf)
        d_fvf_dp *= -(fvf * fvf)
        return fvf, d_fvf_dp

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
        pressures = self._pressures(pressure)
        size = pressures.size
        self._temperatures(temperature, size)
        ratios = self._cell_values(solution_gor, "solution_gor", size)
        indices = self._regions(regions, pressures)
        b, d_b_dp, d_b_dr = self._outputs(out, size, 3)
        self._evaluate(
            "inverse_formation_volume_factors",
            pressures,
            ratios,
            indices,
            phase_presence,
            b,
            d_b_dp,
            d_b_dr,
        )
        return b, d_b_dp, d_b_dr

    def saturated_solution_gor(
        self,
        pressure: CellValues,
        *,
        regions: RegionIndices = None,
        out: OutputBuffers = None,
    ) -> PropertyWithPressureDerivative:
        pressures = self._pressures(pressure)
        size = pressures.size
        indices = self._regions(regions, pressures)
        rs, d_rs_dp = self._outputs(out, size, 2)
        packed = self.tables.packed
        kernels.evaluate_saturated_ratio(
            pressures,
            indices,
            packed.region_offsets,
            packed.solution_gors,
            packed.bubble_point_pressures,
            self.config.absolute_tolerance,
            self.config.relative_tolerance,
            rs,
            d_rs_dp,
        )
        return rs, d_rs_dp

    def solution_factor(
        self,
        pressure: CellValues,
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        *,
        regions: RegionIndices = None,
        out: typing.Optional[np.typing.NDArray] = None,
    ) -> OneDimensionalGrid:
        rs, _ = self._solution_factor(pressure, surface_volumes, regions, out, 1)
        return rs

    def solution_factor_and_derivative(
        self,
        pressure: CellValues,
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        *,
        regions: RegionIndices = None,
        out: OutputBuffers = None,
    ) -> PropertyWithPressureDerivative:
        return self._solution_factor(pressure, surface_volumes, regions, out, 2)

    def _solution_factor(
        self,
        pressure: CellValues,
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        regions: RegionIndices,
        out: OutputBuffers,
        count: int,
    ) -> PropertyWithPressureDerivative:
        pressures = self._pressures(pressure)
        size = pressures.size
        volumes = self._surface_volumes(surface_volumes, size)
        indices = self._regions(regions, pressures)
        outputs = self._outputs(out, size, count)
        if count == 1:
            outputs += self._outputs(None, size, 1)
        rs, d_rs_dp = outputs

        usage = self.config.phase_usage
        packed = self.tables.packed
        kernels.evaluate_solution_factor(
            pressures,
            np.ascontiguousarray(volumes[:, usage.vapour]),
            np.ascontiguousarray(volumes[:, usage.liquid]),
            indices,
            packed.region_offsets,
            packed.solution_gors,
            packed.bubble_point_pressures,
            self.config.absolute_tolerance,
            self.config.relative_tolerance,
            rs,
            d_rs_dp,
        )
        return rs, d_rs_dp
