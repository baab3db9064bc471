class LiveOilError(Exception):
    """Base class for all liveoil-related errors."""

    pass


class ValidationError(LiveOilError, ValueError):
    """Raised when input data fails validation checks."""

    pass


class MalformedTableError(ValidationError):
    """
    Raised when PVT table data cannot be used to build a table store.

    Covers empty regions, non-monotonic breakpoints and mismatched column lengths.
    """

    pass


class SerializationError(LiveOilError):
    """Raised when a table store cannot be serialized."""

    pass


class DeserializationError(LiveOilError):
    """Raised when a table store cannot be rebuilt from serialized data."""

    pass
