"""Pydantic domain models for coordinates, localized names and entity metadata."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class LocalizedText(BaseModel):
    """A single (language, text) pair.

    `language` is a lowercase ISO 639-1 code, or a lowercase ISO 639-2 code
    when no ISO 639-1 code exists.
    """
    model_config = ConfigDict(frozen=True)

    language: str
    text: str


class SuperCategory(str, Enum):
    UNDEFINED = "undefined"
    ENTRANCES = "entrances"
    ENTRANCE_LISTS = "entrance_lists"
    ROADS = "roads"
    PATHS = "paths"
    INTERSECTIONS = "intersections"
    LANDMARKS = "landmarks"
    PLACES = "places"
    MOBILITY = "mobility"
    INFORMATION = "information"
    OBJECTS = "objects"
    SAFETY = "safety"
    AMENITY = "amenity"


class MetadataKeys(BaseModel):
    """Feature property keys copied onto entity metadata."""
    model_config = ConfigDict(frozen=True)

    website: str = "blind:website:en"
    phone: str = "phone"
    street: str = "addr:street"
    house_number: str = "addr:housenumber"


class LocationParameters(BaseModel):
    name: str
    coordinate: Coordinate
    address: Optional[str] = None

