"""Pydantic input models for the entity constructors."""

from typing import Optional

from pydantic import BaseModel, Field

from spatial_data_cache.core.geometry import Geometry
from spatial_data_cache.models import SuperCategory


class MapFeature(BaseModel):
    """A decoded map feature as produced by the upstream tile decoder.

    `names` maps language codes to localized names. `properties` holds the
    raw OSM tags that did not map onto a dedicated field.
    """
    osm_ids: list[str] = Field(default_factory=list)
    super_category: SuperCategory = SuperCategory.UNDEFINED
    value: str = ""
    name: Optional[str] = None
    names: Optional[dict[str, str]] = None
    name_tag: Optional[str] = None
    ref: Optional[str] = None
    geometry: Geometry
    is_roundabout: bool = False
    properties: dict[str, str] = Field(default_factory=dict)
    entrance_ids: Optional[list[str]] = None
