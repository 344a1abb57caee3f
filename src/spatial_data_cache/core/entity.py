"""Spatial data result entity.

A persisted point of interest (building, road, bus stop, ...) built from a
decoded map feature or from caller supplied location parameters. Geometry
and entrances are derived lazily from serialized fields and cached for the
lifetime of the object.
"""

import copy
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, PrivateAttr

from spatial_data_cache.core.entrances import (
    EntranceResolver,
    decode_entrance_ids,
    encode_entrance_ids,
)
from spatial_data_cache.core.geometry import (
    AreaGeometry,
    Geometry,
    PointGeometry,
    decode_geometry,
    encode_geometry,
)
from spatial_data_cache.core.models import MapFeature
from spatial_data_cache.models import (
    Coordinate,
    LocalizedText,
    LocationParameters,
    MetadataKeys,
    SuperCategory,
)

logger = logging.getLogger(__name__)


def _new_key() -> str:
    return str(uuid.uuid4()).upper()


class SpatialEntity(BaseModel):
    key: str = Field(default_factory=_new_key)
    last_selected: Optional[datetime] = None
    # Default display name
    name: str = ""
    # Localized names in insertion order, e.g. en: "Louvre Museum", fr: "Musée du Louvre"
    names: list[LocalizedText] = Field(default_factory=list)
    # Feature type used to localize names of roads, walking paths and bus stops
    name_tag: Optional[str] = None
    # OSM "ref": route numbers, highway exits, branch numbers
    ref: Optional[str] = None
    super_category: SuperCategory = SuperCategory.UNDEFINED
    amenity: str = ""
    phone: Optional[str] = None
    address_line: Optional[str] = None
    street_name: Optional[str] = None
    is_roundabout: bool = False
    coordinate: Coordinate = Coordinate(lat=0.0, lon=0.0)
    centroid: Coordinate = Coordinate(lat=0.0, lon=0.0)
    serialized_geometry: Optional[str] = None
    serialized_entrance_ids: Optional[str] = None
    external_link_url: Optional[str] = None
    external_data: Optional[str] = None

    # Single-assignment cells: None until computed, then a 1-tuple holding
    # the result (which may itself be None).
    _geometry_cell: Optional[tuple[Any]] = PrivateAttr(default=None)
    _entrances_cell: Optional[tuple[Any]] = PrivateAttr(default=None)
    _resolver: Optional[EntranceResolver] = PrivateAttr(default=None)
    _lock: Any = PrivateAttr(default_factory=threading.RLock)

    @staticmethod
    def ignored_properties() -> tuple[str, ...]:
        """Derived attributes that are recomputed and never persisted."""
        return ("geometry", "coordinates", "entrances")

    # --- Construction ---

    @classmethod
    def from_location_parameters(
        cls, identifier: str, parameters: LocationParameters
    ) -> "SpatialEntity":
        return cls(
            key=identifier,
            name=parameters.name,
            coordinate=parameters.coordinate,
            centroid=parameters.coordinate,
            super_category=SuperCategory.UNDEFINED,
            amenity="",
            address_line=parameters.address,
        )

    @classmethod
    def from_feature(
        cls,
        feature: MapFeature,
        key: Optional[str] = None,
        resolver: Optional[EntranceResolver] = None,
        metadata_keys: Optional[MetadataKeys] = None,
    ) -> Optional["SpatialEntity"]:
        """Build an entity from a decoded map feature.

        The key is `key` if given, else the feature's first OSM id. Returns
        None when neither yields a non-empty key.
        """
        if key is None and feature.osm_ids:
            key = feature.osm_ids[0]
        if not key:
            logger.debug("Feature %r has no usable key; skipping", feature.name)
            return None

        keys = metadata_keys or MetadataKeys()
        props = feature.properties

        fields: dict[str, Any] = {
            "key": key,
            "super_category": feature.super_category,
            "amenity": feature.value,
            "names": [
                LocalizedText(language=language, text=text)
                for language, text in (feature.names or {}).items()
            ],
            "centroid": feature.geometry.centroid(),
            "is_roundabout": feature.is_roundabout,
        }
        if feature.name is not None:
            fields["name"] = feature.name
        if feature.name_tag:
            fields["name_tag"] = feature.name_tag
        if feature.ref:
            fields["ref"] = feature.ref

        if isinstance(feature.geometry, PointGeometry):
            fields["coordinate"] = feature.geometry.coordinate
        else:
            fields["serialized_geometry"] = encode_geometry(feature.geometry)
            if feature.entrance_ids:
                fields["serialized_entrance_ids"] = encode_entrance_ids(feature.entrance_ids)

        if keys.website in props:
            fields["external_link_url"] = props[keys.website]
        if keys.phone in props:
            fields["phone"] = props[keys.phone]
        if keys.street in props:
            street = props[keys.street]
            fields["street_name"] = street
            if keys.house_number in props:
                fields["address_line"] = f"{props[keys.house_number]} {street}"

        entity = cls(**fields)
        if not isinstance(feature.geometry, PointGeometry):
            # Already parsed; spare the first geometry access a decode
            entity._geometry_cell = (feature.geometry,)
        if resolver is not None:
            entity.bind_resolver(resolver)
        return entity

    @classmethod
    def from_record(cls, record: dict) -> "SpatialEntity":
        return cls.model_validate(record)

    def to_record(self) -> dict:
        return self.model_dump(mode="json")

    # --- Value semantics ---
    # Equality and copies cover persisted fields only. Copies start with
    # empty caches and a fresh lock, and share the bound resolver.

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SpatialEntity):
            return NotImplemented
        return self.to_record() == other.to_record()

    def _clone(self, values: dict) -> "SpatialEntity":
        clone = type(self).model_construct(_fields_set=set(self.model_fields_set), **values)
        clone.bind_resolver(self._resolver)
        return clone

    def __copy__(self) -> "SpatialEntity":
        return self._clone(dict(self.__dict__))

    def __deepcopy__(self, memo: Optional[dict] = None) -> "SpatialEntity":
        return self._clone(copy.deepcopy(self.__dict__, memo))

    def __getstate__(self) -> dict[str, Any]:
        state = super().__getstate__()
        state["__pydantic_private__"] = None
        return state

    def __setstate__(self, state: dict[str, Any]) -> None:
        super().__setstate__(state)
        # Rebuild the private defaults (caches, lock) dropped by __getstate__
        self.model_post_init(None)

    def bind_resolver(self, resolver: Optional[EntranceResolver]) -> None:
        """Attach the index used to resolve entrances.

        Entrances resolved through a previous resolver are discarded.
        """
        with self._lock:
            self._resolver = resolver
            self._entrances_cell = None

    def mark_selected(self, when: Optional[datetime] = None) -> None:
        self.last_selected = when or datetime.now(timezone.utc)

    # --- Derived properties ---

    @property
    def geometry(self) -> Optional[Geometry]:
        """Parsed geometry, or a point at `coordinate` when none was serialized.

        Returns None only when the serialized payload cannot be parsed.
        """
        cell = self._geometry_cell
        if cell is not None:
            return cell[0]
        with self._lock:
            if self._geometry_cell is None:
                if self.serialized_geometry is None:
                    geometry = PointGeometry(coordinate=self.coordinate)
                else:
                    geometry = decode_geometry(self.serialized_geometry)
                self._geometry_cell = (geometry,)
            return self._geometry_cell[0]

    @property
    def coordinates(self):
        geometry = self.geometry
        if geometry is None:
            return None
        return geometry.coordinates

    @property
    def entrances(self) -> Optional[list["SpatialEntity"]]:
        """Resolved entrance entities, in stored order.

        Only entities with an area geometry have entrances. Ids the resolver
        does not know are dropped.
        """
        cell = self._entrances_cell
        if cell is not None:
            return cell[0]
        with self._lock:
            if self._entrances_cell is None:
                self._entrances_cell = (self._resolve_entrances(),)
            return self._entrances_cell[0]

    def _resolve_entrances(self) -> Optional[list["SpatialEntity"]]:
        if not isinstance(self.geometry, AreaGeometry):
            return None
        entrance_ids = decode_entrance_ids(self.serialized_entrance_ids)
        if entrance_ids is None:
            return None

        resolved = []
        for entrance_id in entrance_ids:
            entrance = self._resolver.resolve(entrance_id) if self._resolver else None
            if entrance is None:
                logger.debug("Entrance %s of %s not found in index", entrance_id, self.key)
                continue
            resolved.append(entrance)
        return resolved

    # --- Queries ---

    def contains(self, location: Coordinate) -> bool:
        """Whether `location` lies inside the entity.

        Only meaningful for area geometries such as buildings; point
        entities always return False.
        """
        geometry = self.geometry
        if geometry is None:
            return False
        return geometry.within_area(location)

    def localized_name(self, language: str) -> str:
        """Name in `language`, else the default name.

        `name_tag` is not consulted here: turning a tag such as "bus_stop"
        into display text needs a string catalog, which lives with the
        presentation layer. It is kept on the entity for that layer.
        """
        for localized in self.names:
            if localized.language == language:
                return localized.text
        return self.name

    def __str__(self) -> str:
        return f"{{Name: {self.name}, ID: {self.key}}}"
