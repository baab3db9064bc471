"""
Conversion of table stores to and from plain mappings.

Dumped stores are keyed by the deck keyword of their tables:

```python
data = dump(store)          # {"PVTO": {"regions": [...]}}
store = load(data)
```

Arrays are dumped as lists of floats, so the result can go straight to JSON.
"""

import logging
from collections.abc import Mapping
import threading
import typing

import cattrs
import numpy as np

from liveoil._precision import get_dtype
from liveoil.errors import DeserializationError, SerializationError, ValidationError
from liveoil.tables.dead_oil import DeadOilTableStore
from liveoil.tables.store import PressureCurve, RegionTable, RegionTableStore

logger = logging.getLogger(__name__)

__all__ = ["converter", "dump", "load", "register_store_type"]

TableStore = typing.Union[RegionTableStore, DeadOilTableStore]

_STORE_TYPES: typing.Dict[str, typing.Type[typing.Any]] = {}
"""Registry of store types by deck keyword."""
_store_types_lock = threading.Lock()


converter = cattrs.Converter()


def _is_array_type(typ: typing.Any) -> bool:
    """Check if a type is `np.ndarray` or a parametrized alias of it."""
    return typ is np.ndarray or typing.get_origin(typ) is np.ndarray


def _unstructure_array(array: np.typing.NDArray) -> typing.List[float]:
    return np.asarray(array).tolist()


def _structure_array(data: typing.Any, _: typing.Any) -> np.typing.NDArray:
    return np.asarray(data, dtype=get_dtype())


converter.register_unstructure_hook_func(_is_array_type, _unstructure_array)
converter.register_structure_hook_func(_is_array_type, _structure_array)


def _unstructure_region_table_store(
    store: RegionTableStore,
) -> typing.Dict[str, typing.Any]:
    return {
        "regions": [
            converter.unstructure(region, RegionTable) for region in store.regions
        ]
    }


def _structure_region_table_store(
    data: typing.Mapping[str, typing.Any], _: typing.Any
) -> RegionTableStore:
    return RegionTableStore(
        regions=[converter.structure(region, RegionTable) for region in data["regions"]]
    )


def _unstructure_dead_oil_table_store(
    store: DeadOilTableStore,
) -> typing.Dict[str, typing.Any]:
    return {
        "regions": [
            converter.unstructure(curve, PressureCurve) for curve in store.regions
        ]
    }


def _structure_dead_oil_table_store(
    data: typing.Mapping[str, typing.Any], _: typing.Any
) -> DeadOilTableStore:
    return DeadOilTableStore(
        regions=[converter.structure(curve, PressureCurve) for curve in data["regions"]]
    )


converter.register_unstructure_hook(RegionTableStore, _unstructure_region_table_store)
converter.register_structure_hook(RegionTableStore, _structure_region_table_store)
converter.register_unstructure_hook(
    DeadOilTableStore, _unstructure_dead_oil_table_store
)
converter.register_structure_hook(DeadOilTableStore, _structure_dead_oil_table_store)


def register_store_type(
    keyword: str, typ: typing.Type[typing.Any], override: bool = False
) -> None:
    """
    Register a table store type under a deck keyword.

    The type must be convertible by `converter`.

    :param keyword: Key under which stores of this type are dumped
    :param typ: Store type
    :param override: Whether to replace an existing registration
    :raises ValidationError: If the keyword is taken by another type and `override` is False
    """
    keyword = keyword.strip().upper()
    if not keyword:
        raise ValidationError("Store keyword must be a non-empty string.")
    with _store_types_lock:
        existing = _STORE_TYPES.get(keyword)
        if existing is not None and existing is not typ and not override:
            raise ValidationError(
                f"Keyword {keyword!r} is already registered for {existing.__name__}"
            )
        _STORE_TYPES[keyword] = typ


register_store_type("PVTO", RegionTableStore)
register_store_type("PVDO", DeadOilTableStore)


def dump(store: TableStore) -> typing.Dict[str, typing.Any]:
    """
    Dump a table store to a mapping keyed by its deck keyword.

    :param store: Store to dump
    :return: `{keyword: data}`
    :raises SerializationError: If the store cannot be dumped
    """
    with _store_types_lock:
        keyword = next(
            (key for key, typ in _STORE_TYPES.items() if type(store) is typ), None
        )
    if keyword is None:
        raise SerializationError(f"Unsupported table store type: {type(store)!r}")

    try:
        data = converter.unstructure(store, type(store))
    except Exception as exc:
        raise SerializationError(
            f"Failed to dump {type(store).__name__} tables"
        ) from exc
    logger.debug(f"Dumped {keyword} tables with {store.table_count()} regions")
    return {keyword: data}


def load(data: typing.Mapping[str, typing.Any]) -> TableStore:
    """
    Rebuild a table store from a mapping produced by `dump`.

    :param data: `{keyword: data}`
    :return: The rebuilt store
    :raises DeserializationError: If the data is invalid or its tables are malformed
    """
    if not isinstance(data, Mapping) or len(data) != 1:
        raise DeserializationError(
            "Invalid data format for deserialization. Expected a single keyword entry."
        )

    keyword, value = next(iter(data.items()))
    with _store_types_lock:
        typ = _STORE_TYPES.get(str(keyword).strip().upper())
    if typ is None:
        raise DeserializationError(f"Unsupported table store keyword: {keyword!r}")

    try:
        return converter.structure(value, typ)
    except Exception as exc:
        raise DeserializationError(f"Failed to load {keyword} tables") from exc
