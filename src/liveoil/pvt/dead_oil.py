import logging
import typing

import numpy as np

from liveoil.config import Config
from liveoil.pvt import kernels
from liveoil.pvt.base import OutputBuffers, PVTModel
from liveoil.tables.dead_oil import DeadOilTableStore
from liveoil.types import (
    CellValues,
    OneDimensionalGrid,
    PropertyWithDerivatives,
    PropertyWithPressureDerivative,
    RegionIndices,
    TwoDimensionalGrid,
)

logger = logging.getLogger(__name__)

__all__ = ["DeadOilPVT"]


class DeadOilPVT(PVTModel):
    """
    Dead oil PVT model backed by PVDO tables.

    Properties depend on pressure only. The oil never holds dissolved gas, so every
    ratio, and every derivative with respect to one, is zero.
    """

    keyword = "PVDO"

    def __init__(
        self, tables: DeadOilTableStore, config: typing.Optional[Config] = None
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
        regions: np.typing.NDArray[np.int64],
        value: np.typing.NDArray,
        d_pressure: np.typing.NDArray,
    ) -> None:
        packed = self.tables.packed
        logger.debug(f"Evaluating dead oil {column} for {pressures.size} cells")
        kernels.evaluate_curves(
            pressures,
            regions,
            packed.offsets,
            packed.pressures,
            getattr(packed, column),
            self.config.absolute_tolerance,
            self.config.relative_tolerance,
            value,
            d_pressure,
        )

    def _pressure_only(
        self,
        column: str,
        pressure: CellValues,
        temperature: typing.Optional[CellValues],
        regions: RegionIndices,
        out: OutputBuffers,
        count: int,
        size_check: typing.Optional[typing.Callable[[int], typing.Any]] = None,
    ) -> typing.List[np.typing.NDArray]:
        pressures = self._pressures(pressure)
        size = pressures.size
        self._temperatures(temperature, size)
        if size_check is not None:
            size_check(size)
        indices = self._regions(regions, pressures)
        outputs = self._outputs(out, size, count)
        if count == 1:
            outputs += self._outputs(None, size, 1)
        self._evaluate(column, pressures, indices, outputs[0], outputs[1])
        return outputs

    def viscosity(
        self,
        pressure: CellValues,
        temperature: typing.Optional[CellValues],
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        *,
        regions: RegionIndices = None,
        out: typing.Optional[np.typing.NDArray] = None,
    ) -> OneDimensionalGrid:
        mu, _ = self._pressure_only(
            "viscosities",
            pressure,
            temperature,
            regions,
            out,
            1,
            lambda size: self._surface_volumes(surface_volumes, size),
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
        mu, d_mu_dp, d_mu_dr = self._pressure_only(
            "viscosities",
            pressure,
            temperature,
            regions,
            out,
            3,
            lambda size: self._cell_values(solution_gor, "solution_gor", size),
        )
        d_mu_dr[:] = 0.0
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
        fvf, _ = self._pressure_only(
            "inverse_formation_volume_factors",
            pressure,
            temperature,
            regions,
            out,
            1,
            lambda size: self._surface_volumes(surface_volumes, size),
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
        fvf, d_fvf_dp = self._pressure_only(
            "inverse_formation_volume_factors",
            pressure,
            temperature,
            regions,
            out,
            2,
            lambda size: self._surface_volumes(surface_volumes, size),
        )
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
        b, d_b_dp, d_b_dr = self._pressure_only(
            "inverse_formation_volume_factors",
            pressure,
            temperature,
            regions,
            out,
            3,
            lambda size: self._cell_values(solution_gor, "solution_gor", size),
        )
        d_b_dr[:] = 0.0
        return b, d_b_dp, d_b_dr

    def saturated_solution_gor(
        self,
        pressure: CellValues,
        *,
        regions: RegionIndices = None,
        out: OutputBuffers = None,
    ) -> PropertyWithPressureDerivative:
        pressures = self._pressures(pressure)
        self._regions(regions, pressures)
        rs, d_rs_dp = self._outputs(out, pressures.size, 2)
        rs[:] = 0.0
        d_rs_dp[:] = 0.0
        return rs, d_rs_dp

    def solution_factor(
        self,
        pressure: CellValues,
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        *,
        regions: RegionIndices = None,
        out: typing.Optional[np.typing.NDArray] = None,
    ) -> OneDimensionalGrid:
        pressures = self._pressures(pressure)
        self._surface_volumes(surface_volumes, pressures.size)
        self._regions(regions, pressures)
        (rs,) = self._outputs(out, pressures.size, 1)
        rs[:] = 0.0
        return rs

    def solution_factor_and_derivative(
        self,
        pressure: CellValues,
        surface_volumes: typing.Union[TwoDimensionalGrid, typing.Sequence[typing.Sequence[float]]],
        *,
        regions: RegionIndices = None,
        out: OutputBuffers = None,
    ) -> PropertyWithPressureDerivative:
        pressures = self._pressures(pressure)
        self._surface_volumes(surface_volumes, pressures.size)
        self._regions(regions, pressures)
        rs, d_rs_dp = self._outputs(out, pressures.size, 2)
        rs[:] = 0.0
        d_rs_dp[:] = 0.0
        return rs, d_rs_dp
