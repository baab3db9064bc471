import logging
import threading
import typing

import numpy as np

from liveoil.config import Config
from liveoil.errors import ValidationError
from liveoil.pvt.base import PVTModel
from liveoil.pvt.dead_oil import DeadOilPVT
from liveoil.pvt.live_oil import LiveOilPVT
from liveoil.tables.dead_oil import DeadOilTableStore
from liveoil.tables.store import RegionTableStore, RegionTableStoreBuilder
from liveoil.types import PVTKeyword

logger = logging.getLogger(__name__)

__all__ = ["build_pvt_model", "register_pvt_model", "live_oil_tables"]

_PVT_MODELS: typing.Dict[str, typing.Type[PVTModel]] = {}
"""Registry of PVT model types by deck keyword."""
_pvt_models_lock = threading.Lock()


def register_pvt_model(
    model_cls: typing.Type[PVTModel], override: bool = False
) -> typing.Type[PVTModel]:
    """
    Register a PVT model type under its `keyword`.

    Usable as a class decorator.

    :param model_cls: `PVTModel` subclass with a `keyword` class attribute
    :param override: Whether to replace an existing registration
    :return: `model_cls`
    :raises ValidationError: If the keyword is missing or taken and `override` is False
    """
    if not issubclass(model_cls, PVTModel):
        raise ValidationError(f"Class {model_cls.__name__} is not a PVTModel subclass")
    keyword = getattr(model_cls, "keyword", None)
    if not keyword:
        raise ValidationError(f"Class {model_cls.__name__} does not define a `keyword`")

    with _pvt_models_lock:
        if not override and keyword in _PVT_MODELS and _PVT_MODELS[keyword] is not model_cls:
            raise ValidationError(
                f"Keyword {keyword!r} is already registered for {_PVT_MODELS[keyword].__name__}"
            )
        _PVT_MODELS[keyword] = model_cls
    return model_cls


register_pvt_model(LiveOilPVT)
register_pvt_model(DeadOilPVT)


def live_oil_tables(
    tables: typing.Sequence[
        typing.Union[typing.Sequence[typing.Sequence[float]], np.typing.NDArray]
    ],
    undersaturated: typing.Optional[typing.Sequence[typing.Any]] = None,
    config: typing.Optional[Config] = None,
) -> RegionTableStore:
    """
    Build a live oil table store from `(m, 4)` saturated rows of (Rs, P, B, μ) per region.

    :param tables: Saturated rows of each region
    :param undersaturated: Per region, the per-knot undersaturated rows accepted by
        `RegionTableStoreBuilder.add_region_rows`, or None
    :param config: Table construction settings
    :return: The built `RegionTableStore`
    """
    if undersaturated is not None and len(undersaturated) != len(tables):
        raise ValidationError(
            f"Expected undersaturated data for {len(tables)} regions, got {len(undersaturated)}"
        )
    builder = RegionTableStoreBuilder(config)
    for region, rows in enumerate(tables):
        builder.add_region_rows(
            rows, None if undersaturated is None else undersaturated[region]
        )
    return builder.build()


def build_pvt_model(
    keyword: typing.Union[PVTKeyword, str],
    tables: typing.Any,
    config: typing.Optional[Config] = None,
) -> PVTModel:
    """
    Build the PVT model matching a deck keyword.

    `tables` is either a built store or the raw region rows: `(m, 4)` rows of
    (Rs, P, B, μ) per region for "PVTO", `(m, 3)` rows of (P, B, μ) per region for "PVDO".

    Example:
    ```python
    pvt = build_pvt_model("PVDO", [[[100.0, 1.05, 2.0], [300.0, 1.02, 2.2]]])
    ```

    :param keyword: "PVTO" or "PVDO"
    :param tables: Table store, or raw rows per region
    :param config: Evaluation settings
    :return: The PVT model
    :raises ValidationError: If the keyword is unknown or the tables do not match it
    """
    key = str(keyword).strip().upper()
    with _pvt_models_lock:
        model_cls = _PVT_MODELS.get(key)
    if model_cls is None:
        raise ValidationError(
            f"Unknown PVT keyword {keyword!r}. Supported keywords: {sorted(_PVT_MODELS)}"
        )

    if model_cls is LiveOilPVT and not isinstance(tables, RegionTableStore):
        if isinstance(tables, DeadOilTableStore):
            raise ValidationError("PVTO model requires live oil tables, got dead oil tables")
        tables = live_oil_tables(tables, config=config)
    elif model_cls is DeadOilPVT and not isinstance(tables, DeadOilTableStore):
        if isinstance(tables, RegionTableStore):
            raise ValidationError("PVDO model requires dead oil tables, got live oil tables")
        tables = DeadOilTableStore.from_rows(tables)

    model = model_cls(tables, config=config)
    logger.debug(f"Built {key} PVT model with {model.table_count()} regions")
    return model
