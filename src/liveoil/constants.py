"""Numerical constants and phase layout defaults"""

from contextvars import ContextVar
import typing

import attrs


__all__ = ["Constant", "Constants", "c", "ConstantsContext", "get_constant"]


@attrs.frozen(slots=True)
class Constant:
    """
    A constant value with optional description and metadata.

    This class wraps a constant value and provides additional context about
    what the constant represents, its units, and any other relevant information.
    """

    value: typing.Any
    """The actual value of the constant."""

    description: typing.Optional[str] = None
    """Optional description of what this constant represents."""

    unit: typing.Optional[str] = None
    """Optional unit of measurement for this constant."""

    def __str__(self) -> str:
        """Return a human-readable string representation of the `Constant`."""
        return f"{self.value}{self.unit or ''}"

    def __repr__(self) -> str:
        """Return a string representation of the `Constant`."""
        parts = [f"value={self.value}"]
        if self.description:
            parts.append(f"description='{self.description}'")
        if self.unit:
            parts.append(f"unit='{self.unit}'")
        return f"Constant({', '.join(parts)})"


DEFAULT_CONSTANTS: typing.Dict[str, typing.Union[typing.Any, Constant]] = {
    # Tolerant equality
    "ABSOLUTE_TOLERANCE": Constant(
        value=1e-8,
        description="Absolute difference below which two floats compare equal",
    ),
    "RELATIVE_TOLERANCE": Constant(
        value=1e-5,
        description="Fraction of the summed magnitudes below which two floats compare equal",
    ),
    # Surface volume layout
    "NUM_PHASES": Constant(
        value=3, description="Number of phases in a surface volume vector"
    ),
    "AQUA_POSITION": Constant(
        value=0, description="Index of the water phase in a surface volume vector"
    ),
    "LIQUID_POSITION": Constant(
        value=1, description="Index of the oil phase in a surface volume vector"
    ),
    "VAPOUR_POSITION": Constant(
        value=2, description="Index of the gas phase in a surface volume vector"
    ),
    # Saturated vaporized oil ratio returned by models without vaporized oil
    "NO_VAPORIZED_OIL_RATIO": Constant(
        value=0.0,
        description="Saturated vaporized oil-gas ratio reported by oil-only models",
        unit="sm³/sm³",
    ),
}


class Constants:
    """
    Numerical constants used by the PVT table evaluators.

    All constants are stored in an internal dictionary and can be accessed via dot notation.
    Use __getattr__ for value access and __getitem__ for `Constant` object access.
    """

    __slots__ = ("_store",)

    def __new__(cls) -> "Constants":
        instance = super().__new__(cls)
        instance._store = {}
        return instance

    def __init__(self) -> None:
        """Initialize the constants store with default values."""
        for name, value in DEFAULT_CONSTANTS.items():
            if isinstance(value, Constant):
                self._store[name] = value
            else:
                self._store[name] = Constant(value=value)

    def __getattr__(self, name: str) -> typing.Any:
        """Get a constant's value using dot notation.

        :param name: Name of the constant
        :return: Value of the constant (unwrapped from Constant object)
        :raises AttributeError: If the constant does not exist
        """
        if name.startswith("_"):
            return object.__getattribute__(self, name)

        try:
            constant = self._store[name]
            return constant.value if isinstance(constant, Constant) else constant
        except KeyError:
            raise AttributeError(
                f"'{type(self).__name__}' object has no attribute '{name}'"
            ) from None

    def __getitem__(self, name: str) -> Constant:
        """Get the Constant object (with metadata) using bracket notation.

        :param name: Name of the constant
        :return: Constant object with value, description, and unit
        :raises KeyError: If the constant does not exist
        """
        return self._store[name]

    def __setattr__(self, name: str, value: typing.Union[typing.Any, Constant]) -> None:
        """Set a constant value using dot notation.

        :param name: Name of the constant
        :param value: Value to set (raw value or Constant object)
        """
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        elif isinstance(value, Constant):
            self._store[name] = value
        else:
            self._store[name] = Constant(value=value)

    def __contains__(self, name: str) -> bool:
        return name in self._store

    def get(self, name: str, default: typing.Any = None) -> typing.Any:
        """Get a constant's value with a default fallback.

        :param name: Name of the constant
        :param default: Default value if constant doesn't exist
        :return: Value of the constant or default
        """
        constant = self._store.get(name)
        if constant is None:
            return default
        return constant.value if isinstance(constant, Constant) else constant

    def get_constant(
        self, name: str, default: typing.Optional[Constant] = None
    ) -> typing.Optional[Constant]:
        """Get a `Constant` object with a default fallback."""
        return self._store.get(name, default)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(constants={len(self._store)})"

    def __len__(self) -> int:
        return len(self._store)

    def __call__(self) -> "ConstantsContext":
        """
        Create a context manager that temporarily overrides the constants
        accessed through the global proxy `liveoil.c` with this `Constants` instance.

        :return: `ConstantsContext` for temporary overrides
        """
        return ConstantsContext(self)


_constants_context: ContextVar[Constants] = ContextVar(
    "constants_context", default=Constants()
)


class ConstantsContext:
    """
    Context manager for temporary global `Constants` overrides.

    Upon exiting the context, the previous `Constants` instance is restored.
    """

    def __init__(self, constants: Constants) -> None:
        self._new_constants = constants
        self._token = None

    def __enter__(self) -> Constants:
        self._token = _constants_context.set(self._new_constants)
        return self._new_constants

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        if self._token is not None:
            _constants_context.reset(self._token)


class _ConstantsProxy:
    """
    Proxy class to access the current context's `Constants` instance.

    Override the current `Constants` instance using the `ConstantsContext` context manager.
    """

    @property
    def _constants(self) -> Constants:
        return _constants_context.get()

    def __getattr__(self, name: str) -> typing.Any:
        return getattr(self._constants, name)

    def __getitem__(self, name: str) -> Constant:
        return self._constants[name]


c = _ConstantsProxy()
"""Global proxy to access numerical constants."""


def get_constant(name: str) -> typing.Optional[Constant]:
    """Get a `Constant` object by name from the global constants.

    :param name: Name of the constant
    :return: `Constant` object or None if not found
    """
    return c._constants.get_constant(name)
