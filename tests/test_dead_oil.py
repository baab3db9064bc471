import numpy as np
import pytest

from liveoil import DeadOilTableStore, MalformedTableError, ValidationError
from liveoil.tolerance import allclose


def test_tabulated_points_are_reproduced(dead_oil):
    volumes = np.array([[0.0, 1.0, 0.0]] * 3)
    fvf = dead_oil.formation_volume_factor([100.0, 200.0, 300.0], None, volumes)
    assert allclose(fvf, [1.05, 1.03, 1.02])
    mu = dead_oil.viscosity([100.0, 200.0, 300.0], None, volumes)
    assert allclose(mu, [2.0, 2.1, 2.2])


def test_interpolates_inverse_formation_volume_factor(dead_oil):
    b, d_b_dp, d_b_dr = dead_oil.inverse_formation_volume_factor([150.0], None, [50.0])
    assert b[0] == pytest.approx(0.5 * (1 / 1.05 + 1 / 1.03))
    assert d_b_dp[0] == pytest.approx((1 / 1.03 - 1 / 1.05) / 100.0)
    assert d_b_dr[0] == 0.0


def test_formation_volume_factor_derivative(dead_oil):
    volumes = np.array([[0.0, 1.0, 0.0]])
    b, d_b_dp, _ = dead_oil.inverse_formation_volume_factor([150.0], None, [0.0])
    fvf, d_fvf_dp = dead_oil.formation_volume_factor_and_derivative([150.0], None, volumes)
    assert fvf[0] == pytest.approx(1.0 / b[0])
    assert d_fvf_dp[0] == pytest.approx(-fvf[0] ** 2 * d_b_dp[0])


def test_ratio_has_no_effect(dead_oil):
    low, _, _ = dead_oil.viscosity_and_derivatives([250.0], None, [0.0])
    high, _, d_mu_dr = dead_oil.viscosity_and_derivatives([250.0], None, [500.0])
    assert low[0] == high[0]
    assert d_mu_dr[0] == 0.0


def test_no_dissolved_gas(dead_oil):
    rs, d_rs = dead_oil.saturated_solution_gor([100.0, 250.0])
    assert rs.tolist() == [0.0, 0.0]
    assert d_rs.tolist() == [0.0, 0.0]

    volumes = np.array([[0.0, 1.0, 100.0], [0.0, 1.0, 0.0]])
    r, d_r = dead_oil.solution_factor_and_derivative([100.0, 250.0], volumes)
    assert r.tolist() == [0.0, 0.0]
    assert d_r.tolist() == [0.0, 0.0]
    assert dead_oil.solution_factor([100.0, 250.0], volumes).tolist() == [0.0, 0.0]

    rv, _ = dead_oil.saturated_vaporized_oil_ratio([100.0])
    assert rv[0] == 0.0


def test_clamped_outside_table(dead_oil):
    b, d_b_dp, _ = dead_oil.inverse_formation_volume_factor([50.0, 500.0], None, [0.0, 0.0])
    assert b[0] == pytest.approx(1 / 1.05)
    assert b[1] == pytest.approx(1 / 1.02)
    assert d_b_dp.tolist() == [0.0, 0.0]


def test_single_point_region(dead_oil):
    b, d_b_dp, _ = dead_oil.inverse_formation_volume_factor(
        [50.0, 500.0], None, [0.0, 0.0], regions=[1, 1]
    )
    assert allclose(b, [1 / 1.20, 1 / 1.20])
    assert d_b_dp.tolist() == [0.0, 0.0]


def test_outputs_are_written_in_place(dead_oil):
    out = (np.empty(1), np.empty(1), np.empty(1))
    result = dead_oil.viscosity_and_derivatives([150.0], None, [0.0], out=out)
    assert all(first is second for first, second in zip(result, out))
    assert out[0][0] == pytest.approx(2.05)


def test_region_out_of_range(dead_oil):
    with pytest.raises(ValidationError):
        dead_oil.inverse_formation_volume_factor([150.0], None, [0.0], regions=[2])
    with pytest.raises(ValidationError):
        dead_oil.tables.curve(5)


def test_store_validation():
    with pytest.raises(MalformedTableError):
        DeadOilTableStore.from_rows([])
    with pytest.raises(MalformedTableError, match="Region 0"):
        DeadOilTableStore.from_rows([[[200.0, 1.03, 2.1], [100.0, 1.05, 2.0]]])
    with pytest.raises(MalformedTableError):
        DeadOilTableStore.from_rows([[[100.0, 1.05]]])


def test_store_accessors(dead_oil_store):
    assert dead_oil_store.table_count() == 2
    assert dead_oil_store.pressure_bounds == (100.0, 300.0)
    assert dead_oil_store.packed.offsets.tolist() == [0, 3, 4]
    assert len(dead_oil_store.curve(1)) == 1
