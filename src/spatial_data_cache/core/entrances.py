"""Entrance resolution and the serialized entrance-id list."""

import logging
from typing import TYPE_CHECKING, Iterable, Optional, Protocol, Union

from pydantic import TypeAdapter, ValidationError

if TYPE_CHECKING:
    from spatial_data_cache.core.entity import SpatialEntity

logger = logging.getLogger(__name__)

_ids_adapter = TypeAdapter(list[str])


class EntranceResolver(Protocol):
    """Looks up entities by key in a shared spatial index.

    A miss returns None; callers treat it as a normal outcome.
    """

    def resolve(self, key: str) -> Optional["SpatialEntity"]: ...


def encode_entrance_ids(ids: Iterable[str]) -> str:
    return _ids_adapter.dump_json(list(ids)).decode()


def decode_entrance_ids(payload: Optional[Union[str, bytes]]) -> Optional[list[str]]:
    """Decode a JSON array of string ids, or None if absent or malformed."""
    if payload is None:
        return None
    try:
        return _ids_adapter.validate_json(payload)
    except ValidationError as exc:
        logger.debug("Discarding malformed entrance id payload: %s", exc.errors()[:1])
        return None
