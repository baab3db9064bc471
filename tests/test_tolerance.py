import numpy as np

from liveoil.tolerance import allclose, isclose


def test_isclose_identical_values():
    assert isclose(1.0, 1.0)
    assert isclose(0.0, -0.0)


def test_isclose_within_absolute_tolerance():
    assert isclose(0.0, 5e-9)
    assert not isclose(0.0, 1e-7)


def test_isclose_within_relative_tolerance():
    # 0.005 <= 1e-5 * 2000.005
    assert isclose(1000.0, 1000.005)
    assert not isclose(1.0, 1.001)


def test_isclose_custom_tolerances():
    assert isclose(1.0, 1.001, 1e-2, 0.0)
    assert not isclose(1.0, 1.001, 1e-4, 1e-5)


def test_allclose_sequences():
    assert allclose([1.0, 2.0, 3.0], [1.0, 2.0 + 1e-9, 3.0])
    assert not allclose([1.0, 2.0, 3.0], [1.0, 2.1, 3.0])


def test_allclose_different_lengths_are_unequal():
    assert not allclose([1.0, 2.0], [1.0, 2.0, 3.0])


def test_allclose_empty_sequences():
    assert allclose([], np.array([]))


def test_allclose_custom_tolerances():
    assert allclose([1.0], [1.5], absolute_tolerance=1.0)
    assert not allclose([1.0], [1.5], absolute_tolerance=0.1, relative_tolerance=0.0)
