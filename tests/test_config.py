import numpy as np
import pytest

from liveoil import (
    Config,
    Constants,
    ValidationError,
    c,
    get_dtype,
    set_dtype,
    use_32bit_precision,
    use_64bit_precision,
    with_precision,
)
from liveoil.config import PhaseUsage


def test_defaults():
    config = Config()
    assert config.absolute_tolerance == 1e-8
    assert config.relative_tolerance == 1e-5
    assert config.complete_undersaturated_tables is True
    assert config.warn_on_extrapolation is False
    assert config.phase_usage == PhaseUsage(aqua=0, liquid=1, vapour=2, num_phases=3)


@pytest.mark.parametrize("tolerance", [-1e-8, 0.1])
def test_invalid_tolerances(tolerance):
    with pytest.raises(ValueError):
        Config(absolute_tolerance=tolerance)
    with pytest.raises(ValueError):
        Config(relative_tolerance=tolerance)


def test_config_is_frozen():
    config = Config()
    with pytest.raises(AttributeError):
        config.absolute_tolerance = 1.0  # type: ignore[misc]


def test_phase_usage_validation():
    with pytest.raises(ValidationError):
        PhaseUsage(aqua=0, liquid=1, vapour=1)
    with pytest.raises(ValidationError):
        PhaseUsage(aqua=0, liquid=1, vapour=2, num_phases=2)
    with pytest.raises(ValueError):
        PhaseUsage(num_phases=4)

    usage = PhaseUsage(aqua=2, liquid=0, vapour=1, num_phases=2)
    assert usage.liquid == 0


def test_defaults_follow_constants_context():
    constants = Constants()
    constants.ABSOLUTE_TOLERANCE = 1e-6
    with constants():
        assert c.ABSOLUTE_TOLERANCE == 1e-6
        assert Config().absolute_tolerance == 1e-6
    assert c.ABSOLUTE_TOLERANCE == 1e-8
    assert Config().absolute_tolerance == 1e-8


def test_constant_metadata():
    constant = c["NO_VAPORIZED_OIL_RATIO"]
    assert constant.value == 0.0
    assert constant.unit == "sm³/sm³"


def test_precision_context():
    assert get_dtype() == np.float64
    with with_precision(np.float32):
        assert get_dtype() == np.float32
    assert get_dtype() == np.float64


def test_precision_setters():
    try:
        use_32bit_precision()
        assert get_dtype() == np.float32
    finally:
        use_64bit_precision()
    assert get_dtype() == np.float64


@pytest.mark.parametrize("dtype", [np.float16, np.longdouble, np.int64, "not-a-dtype"])
def test_unsupported_precision(dtype):
    if dtype is np.longdouble and np.dtype(dtype) == np.float64:
        pytest.skip("longdouble is double precision on this platform")
    with pytest.raises(ValidationError):
        with with_precision(dtype):
            pass
    with pytest.raises(ValidationError):
        set_dtype(dtype)
    assert get_dtype() == np.float64
