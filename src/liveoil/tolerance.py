"""
Tolerant floating point equality.

Two values compare equal when their difference is within an absolute
tolerance, or, failing that, within a relative tolerance of the sum of
their magnitudes.
"""

import typing

import numba
import numpy as np

from liveoil.constants import c


__all__ = ["isclose", "allclose"]


@numba.njit(cache=True)
def isclose(
    a: float,
    b: float,
    absolute_tolerance: float = 1e-8,
    relative_tolerance: float = 1e-5,
) -> bool:
    """
    Check whether two floats are equal within tolerance.

    :param a: First value
    :param b: Second value
    :param absolute_tolerance: Largest difference always accepted as equal
    :param relative_tolerance: Largest difference, as a fraction of `|a| + |b|`, accepted as equal
    :return: True if `a` and `b` compare equal
    """
    if a == b:
        return True
    difference = abs(a - b)
    if difference <= absolute_tolerance:
        return True
    return difference <= (abs(a) + abs(b)) * relative_tolerance


def allclose(
    first: typing.Union[typing.Sequence[float], np.typing.NDArray],
    second: typing.Union[typing.Sequence[float], np.typing.NDArray],
    absolute_tolerance: typing.Optional[float] = None,
    relative_tolerance: typing.Optional[float] = None,
) -> bool:
    """
    Check whether two float sequences are elementwise equal within tolerance.

    Sequences of different shapes are never equal.

    :param first: First sequence
    :param second: Second sequence
    :param absolute_tolerance: Absolute tolerance. Defaults to `c.ABSOLUTE_TOLERANCE`.
    :param relative_tolerance: Relative tolerance. Defaults to `c.RELATIVE_TOLERANCE`.
    :return: True if every pair of elements compares equal
    """
    a = np.asarray(first, dtype=np.float64)
    b = np.asarray(second, dtype=np.float64)
    if a.shape != b.shape:
        return False
    if np.array_equal(a, b):
        return True

    atol = c.ABSOLUTE_TOLERANCE if absolute_tolerance is None else absolute_tolerance
    rtol = c.RELATIVE_TOLERANCE if relative_tolerance is None else relative_tolerance
    with np.errstate(invalid="ignore"):
        difference = np.abs(a - b)
        close = (a == b) | (difference <= atol)
        close |= difference <= (np.abs(a) + np.abs(b)) * rtol
    return bool(np.all(close))
