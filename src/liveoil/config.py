import typing

import attrs

from liveoil.constants import c
from liveoil.errors import ValidationError

__all__ = ["Config", "PhaseUsage"]


@attrs.frozen
class PhaseUsage:
    """Positions of the phases within a per-cell surface volume vector."""

    aqua: int = attrs.field(
        default=attrs.Factory(lambda: c.AQUA_POSITION),
        validator=attrs.validators.ge(0),
    )
    """Index of the water surface volume."""
    liquid: int = attrs.field(
        default=attrs.Factory(lambda: c.LIQUID_POSITION),
        validator=attrs.validators.ge(0),
    )
    """Index of the oil surface volume."""
    vapour: int = attrs.field(
        default=attrs.Factory(lambda: c.VAPOUR_POSITION),
        validator=attrs.validators.ge(0),
    )
    """Index of the gas surface volume."""
    num_phases: int = attrs.field(
        default=attrs.Factory(lambda: c.NUM_PHASES),
        validator=attrs.validators.and_(attrs.validators.ge(2), attrs.validators.le(3)),
    )
    """Length of the surface volume vector of a cell."""

    def __attrs_post_init__(self) -> None:
        positions: typing.List[int] = [self.liquid, self.vapour]
        if self.num_phases == 3:
            positions.append(self.aqua)
        if len(set(positions)) != len(positions):
            raise ValidationError(f"Phase positions must be distinct, got {positions}")
        if max(positions) >= self.num_phases:
            raise ValidationError(
                f"Phase positions {positions} exceed the number of phases ({self.num_phases})"
            )


@attrs.frozen
class Config:
    """PVT table construction and evaluation settings."""

    absolute_tolerance: float = attrs.field(
        default=attrs.Factory(lambda: c.ABSOLUTE_TOLERANCE),
        validator=attrs.validators.and_(
            attrs.validators.ge(0.0), attrs.validators.le(1e-2)
        ),
    )
    """
    Absolute tolerance of the tolerant equality used for breakpoint detection
    and the saturated/undersaturated boundary (default is 1e-8).
    """
    relative_tolerance: float = attrs.field(
        default=attrs.Factory(lambda: c.RELATIVE_TOLERANCE),
        validator=attrs.validators.and_(
            attrs.validators.ge(0.0), attrs.validators.le(1e-2)
        ),
    )
    """
    Relative tolerance, as a fraction of the summed magnitudes, of the tolerant
    equality (default is 1e-5).
    """
    complete_undersaturated_tables: bool = True
    """
    Whether knots without undersaturated data borrow the relative compressibility
    and viscosibility of the next higher knot that has some.

    When disabled, such knots hold their saturated values constant above the bubble point.
    """
    warn_on_extrapolation: bool = False
    """
    Whether to log a warning when queried pressures fall outside the tabulated range.

    Out-of-range queries are always clamped. Disabled by default to avoid log spam.
    """
    phase_usage: PhaseUsage = attrs.field(factory=PhaseUsage)
    """Layout of the per-cell surface volume vectors."""
