from contextlib import contextmanager
from contextvars import ContextVar

import numpy as np

from liveoil.errors import ValidationError


__all__ = [
    "get_dtype",
    "set_dtype",
    "with_precision",
    "use_64bit_precision",
    "use_32bit_precision",
    "get_floating_point_info",
]

_liveoil_dtype: ContextVar[np.typing.DTypeLike] = ContextVar(
    "_liveoil_dtype", default=np.float64
)


def _check_dtype(dtype: np.typing.DTypeLike) -> None:
    """Only single and double precision are supported by the compiled kernels."""
    try:
        resolved = np.dtype(dtype)
    except TypeError as exc:
        raise ValidationError(f"Invalid precision data type {dtype!r}") from exc
    if resolved not in (np.float32, np.float64):
        raise ValidationError(
            f"Precision must be float32 or float64, got {resolved}"
        )


def get_dtype() -> np.typing.DTypeLike:
    """
    Get the current data type used for stored tables and allocated outputs.

    :return: The current data type.
    """
    return _liveoil_dtype.get()


def set_dtype(dtype: np.typing.DTypeLike) -> None:
    """
    Set the default data type for liveoil computations.

    :param dtype: The data type to set as default.
    """
    _check_dtype(dtype)
    _liveoil_dtype.set(dtype)


@contextmanager
def with_precision(dtype: np.typing.DTypeLike):
    """
    Context manager to temporarily set the data type, and hence the precision for liveoil computations.

    :param dtype: The data type to set within the context.
    """
    _check_dtype(dtype)
    token = _liveoil_dtype.set(dtype)
    try:
        yield
    finally:
        _liveoil_dtype.reset(token)


def use_64bit_precision() -> None:
    """
    Set the default data type to float64 for liveoil computations.

    Default precision for liveoil.
    """
    set_dtype(np.float64)


def use_32bit_precision() -> None:
    """
    Set the default data type to float32 for liveoil computations.

    Tolerant comparisons at the default 1e-8 absolute tolerance are not
    meaningful in single precision; loosen the tolerances in `Config` as well.
    """
    set_dtype(np.float32)


def get_floating_point_info() -> np.finfo[np.floating]:
    """
    Get the floating point information for the current data type.

    :return: The floating point information.
    """
    dtype = get_dtype()
    return np.finfo(dtype)  # type: ignore
