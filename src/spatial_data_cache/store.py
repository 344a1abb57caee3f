"""Keyed entity store.

Holds entities by key, doubles as the entrance resolver for everything it
holds, and snapshots persisted fields to JSON. Derived attributes (see
`SpatialEntity.ignored_properties`) are never written.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Iterable, Iterator, Optional, Protocol

from pydantic import ValidationError

from spatial_data_cache.core.entity import SpatialEntity

logger = logging.getLogger(__name__)


def _default_path() -> Path:
    return Path.home() / ".cache" / "spatial-data-cache" / "entities.json"


class KeyedStore(Protocol):
    def get(self, key: str) -> Optional[SpatialEntity]: ...

    def put(self, entity: SpatialEntity) -> None: ...


class InMemoryEntityStore:
    def __init__(self, entities: Iterable[SpatialEntity] = ()):
        self._entities: dict[str, SpatialEntity] = {}
        self._lock = threading.Lock()
        for entity in entities:
            self.put(entity)

    def put(self, entity: SpatialEntity) -> None:
        """Insert or replace by key, binding this store as the entity's resolver."""
        entity.bind_resolver(self)
        with self._lock:
            self._entities[entity.key] = entity

    def get(self, key: str) -> Optional[SpatialEntity]:
        with self._lock:
            return self._entities.get(key)

    def resolve(self, key: str) -> Optional[SpatialEntity]:
        return self.get(key)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entities)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entities)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entities

    def __iter__(self) -> Iterator[SpatialEntity]:
        with self._lock:
            return iter(list(self._entities.values()))

    def save(self, path: str | Path | None = None) -> Path:
        """Write every entity's persisted fields to a JSON snapshot."""
        save_path = Path(path) if path else _default_path()
        save_path.parent.mkdir(parents=True, exist_ok=True)

        with self._lock:
            records = [entity.to_record() for entity in self._entities.values()]

        with open(save_path, "w") as f:
            json.dump({"entities": records}, f, indent=2, ensure_ascii=False)

        logger.info("Saved %d entities to %s", len(records), save_path)
        return save_path

    def load(self, path: str | Path | None = None) -> int:
        """Add entities from a JSON snapshot, replacing any with the same key.

        Records that fail validation are skipped. Returns the number loaded.
        """
        load_path = Path(path) if path else _default_path()
        if not load_path.exists():
            raise FileNotFoundError(f"Entity snapshot not found at {load_path}")

        try:
            with open(load_path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid entity snapshot {load_path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("entities"), list):
            raise ValueError(f"Invalid entity snapshot {load_path}: missing 'entities' list")

        loaded = 0
        for record in data["entities"]:
            try:
                entity = SpatialEntity.from_record(record)
            except ValidationError as exc:
                key = record.get("key") if isinstance(record, dict) else None
                logger.warning(
                    "Skipping invalid entity record %r (%d validation errors)", key, exc.error_count()
                )
                continue
            self.put(entity)
            loaded += 1

        logger.info("Loaded %d entities from %s", loaded, load_path)
        return loaded
