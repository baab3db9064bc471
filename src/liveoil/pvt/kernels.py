"""
Compiled table lookup kernels.

Curves are stored flattened: the points of curve `i` occupy `[offsets[i], offsets[i + 1])`.
Every lookup clamps at the table edges (flat extrapolation, zero slope) and reports
exact, piecewise constant slopes inside the table.
"""

import numba
import numpy as np

from liveoil.tolerance import isclose

__all__ = [
    "locate",
    "interpolate_curve",
    "interpolate_family",
    "saturated_ratio",
    "evaluate_saturated_ratio",
    "evaluate_live_oil",
    "evaluate_solution_factor",
    "evaluate_curves",
    "surface_volume_ratio",
]


@numba.njit(cache=True)
def locate(xs, start, stop, x, atol, rtol):
    """
    Find the segment of `xs[start:stop]` bracketing `x`.

    `xs` must be non-decreasing and hold at least two points in the range.
    Returns the absolute index `i` of the segment's left point, the weight
    `w` of `x` within `[xs[i], xs[i + 1]]`, and whether `x` lies within the table.
    Outside the table `w` is clamped to 0 or 1. A point equal to an interior
    breakpoint opens the segment to its right; a point equal to the last
    breakpoint closes the last segment.

    :param xs: Breakpoints
    :param start: First index of the range
    :param stop: One past the last index of the range
    :param x: Query value
    :param atol: Absolute tolerance for breakpoint matching
    :param rtol: Relative tolerance for breakpoint matching
    :return: (i, w, inside)
    """
    if x < xs[start] and not isclose(x, xs[start], atol, rtol):
        return start, 0.0, False

    # Last index whose breakpoint is at or below x
    lo = start
    hi = stop - 1
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if xs[mid] <= x or isclose(xs[mid], x, atol, rtol):
            lo = mid
        else:
            hi = mid - 1

    if lo >= stop - 1:
        i = stop - 2
        inside = isclose(x, xs[stop - 1], atol, rtol) and xs[stop - 1] > xs[i]
        return i, 1.0, inside

    if isclose(x, xs[lo], atol, rtol):
        return lo, 0.0, True
    return lo, (x - xs[lo]) / (xs[lo + 1] - xs[lo]), True


@numba.njit(cache=True)
def interpolate_curve(xs, ys, start, stop, x, atol, rtol):
    """
    Piecewise linear interpolation of `ys` over `xs` within `[start, stop)`.

    :return: (value, slope). The slope is zero outside the table and for single point curves.
    """
    if stop - start == 1:
        return ys[start], 0.0

    i, w, inside = locate(xs, start, stop, x, atol, rtol)
    y0 = ys[i]
    y1 = ys[i + 1]
    value = y0 + w * (y1 - y0)
    width = xs[i + 1] - xs[i]
    if not inside or width <= 0.0:
        return value, 0.0
    return value, (y1 - y0) / width


@numba.njit(cache=True)
def interpolate_family(
    knot_ratios, first_knot, stop_knot, offsets, xs, ys, x, ratio, atol, rtol
):
    """
    Bilinear interpolation over a family of curves, one per knot.

    Each bracketing knot's curve is interpolated at `x`; the two results are then
    interpolated linearly at `ratio` between the knots' ratios.

    :return: (value, d(value)/dx, d(value)/d(ratio))
    """
    if stop_knot - first_knot == 1:
        value, slope = interpolate_curve(
            xs, ys, offsets[first_knot], offsets[first_knot + 1], x, atol, rtol
        )
        return value, slope, 0.0

    k, w, inside = locate(knot_ratios, first_knot, stop_knot, ratio, atol, rtol)
    v0, d0 = interpolate_curve(xs, ys, offsets[k], offsets[k + 1], x, atol, rtol)
    v1, d1 = interpolate_curve(xs, ys, offsets[k + 1], offsets[k + 2], x, atol, rtol)
    value = v0 + w * (v1 - v0)
    d_x = d0 + w * (d1 - d0)
    if not inside:
        return value, d_x, 0.0
    return value, d_x, (v1 - v0) / (knot_ratios[k + 1] - knot_ratios[k])


@numba.njit(cache=True)
def saturated_ratio(
    knot_ratios, bubble_point_pressures, first_knot, stop_knot, pressure, atol, rtol
):
    """
    Solution ratio at saturation, interpolated over the knots' bubble point pressures.

    :return: (rs_sat, d(rs_sat)/dp)
    """
    return interpolate_curve(
        bubble_point_pressures,
        knot_ratios,
        first_knot,
        stop_knot,
        pressure,
        atol,
        rtol,
    )


@numba.njit(cache=True)
def evaluate_saturated_ratio(
    pressure,
    regions,
    region_offsets,
    knot_ratios,
    bubble_point_pressures,
    atol,
    rtol,
    out_value,
    out_d_pressure,
):
    for cell in range(pressure.shape[0]):
        region = regions[cell]
        value, slope = saturated_ratio(
            knot_ratios,
            bubble_point_pressures,
            region_offsets[region],
            region_offsets[region + 1],
            pressure[cell],
            atol,
            rtol,
        )
        out_value[cell] = value
        out_d_pressure[cell] = slope


@numba.njit(cache=True)
def evaluate_live_oil(
    pressure,
    ratio,
    saturated,
    use_saturated,
    regions,
    region_offsets,
    knot_ratios,
    bubble_point_pressures,
    saturated_offsets,
    saturated_pressures,
    saturated_values,
    undersaturated_offsets,
    undersaturated_pressures,
    undersaturated_values,
    atol,
    rtol,
    out_value,
    out_d_pressure,
    out_d_ratio,
):
    """
    Evaluate one tabulated live oil quantity and its derivatives for every cell.

    When `use_saturated` is False the branch is detected per cell: the oil is
    saturated when its ratio is at or above the saturated ratio at the cell's
    pressure. Otherwise `saturated[cell]` decides.

    Saturated cells evaluate the saturated family at the saturated ratio, so the
    ratio derivative is zero and the pressure derivative follows the saturation
    curve. Undersaturated cells evaluate the undersaturated family at their own ratio.
    """
    for cell in range(pressure.shape[0]):
        region = regions[cell]
        first_knot = region_offsets[region]
        stop_knot = region_offsets[region + 1]
        p = pressure[cell]
        r = ratio[cell]

        rs_sat, d_rs_sat = saturated_ratio(
            knot_ratios, bubble_point_pressures, first_knot, stop_knot, p, atol, rtol
        )
        if use_saturated:
            is_saturated = saturated[cell]
        else:
            is_saturated = r >= rs_sat or isclose(r, rs_sat, atol, rtol)

        if is_saturated:
            value, d_p, d_r = interpolate_family(
                knot_ratios,
                first_knot,
                stop_knot,
                saturated_offsets,
                saturated_pressures,
                saturated_values,
                p,
                rs_sat,
                atol,
                rtol,
            )
            out_value[cell] = value
            out_d_pressure[cell] = d_p + d_r * d_rs_sat
            out_d_ratio[cell] = 0.0
        else:
            value, d_p, d_r = interpolate_family(
                knot_ratios,
                first_knot,
                stop_knot,
                undersaturated_offsets,
                undersaturated_pressures,
                undersaturated_values,
                p,
                r,
                atol,
                rtol,
            )
            out_value[cell] = value
            out_d_pressure[cell] = d_p
            out_d_ratio[cell] = d_r


@numba.njit(cache=True)
def evaluate_solution_factor(
    pressure,
    gas,
    oil,
    regions,
    region_offsets,
    knot_ratios,
    bubble_point_pressures,
    atol,
    rtol,
    out_value,
    out_d_pressure,
):
    """
    Dissolved gas ratio of each cell given its surface volumes.

    The ratio is the smaller of the available gas per unit oil and the saturated
    ratio at the cell's pressure. Cells without gas dissolve none.
    """
    for cell in range(pressure.shape[0]):
        if gas[cell] == 0.0:
            out_value[cell] = 0.0
            out_d_pressure[cell] = 0.0
            continue

        region = regions[cell]
        rs_sat, d_rs_sat = saturated_ratio(
            knot_ratios,
            bubble_point_pressures,
            region_offsets[region],
            region_offsets[region + 1],
            pressure[cell],
            atol,
            rtol,
        )
        max_ratio = gas[cell] / oil[cell] if oil[cell] != 0.0 else 0.0
        if rs_sat < max_ratio:
            out_value[cell] = rs_sat
            out_d_pressure[cell] = d_rs_sat
        else:
            out_value[cell] = max_ratio
            out_d_pressure[cell] = 0.0


@numba.njit(cache=True)
def evaluate_curves(
    pressure, regions, offsets, xs, ys, atol, rtol, out_value, out_d_pressure
):
    """Interpolate each cell's region curve at the cell's pressure."""
    for cell in range(pressure.shape[0]):
        region = regions[cell]
        value, slope = interpolate_curve(
            xs, ys, offsets[region], offsets[region + 1], pressure[cell], atol, rtol
        )
        out_value[cell] = value
        out_d_pressure[cell] = slope


def surface_volume_ratio(
    surface_volumes: np.typing.NDArray, liquid: int, vapour: int
) -> np.typing.NDArray:
    """Gas per unit oil surface volume of each cell. Zero where there is no oil."""
    oil = surface_volumes[:, liquid]
    gas = surface_volumes[:, vapour]
    ratio = np.zeros(oil.shape[0], dtype=np.result_type(oil.dtype, np.float64))
    np.divide(gas, oil, out=ratio, where=oil != 0.0)
    return ratio
