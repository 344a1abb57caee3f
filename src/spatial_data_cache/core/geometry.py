"""Point and area geometries with centroid and containment tests.

Areas are one or more rings of coordinates. Ring arithmetic is planar in
degrees, with longitude as x and latitude as y. Rings combine with even-odd
semantics: a ring nested inside an odd number of other rings is a hole. This
covers GeoJSON polygons (outer ring plus holes) and multipolygons alike.

Geometries serialize to GeoJSON geometry JSON (positions are [lon, lat]).
"""

import logging
from typing import Annotated, Literal, Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from spatial_data_cache.models import Coordinate

logger = logging.getLogger(__name__)

# Degrees. Points closer than this to a ring edge are on the boundary.
EDGE_TOLERANCE = 1e-12
# Square degrees. Rings smaller than this are skipped when weighting centroids.
MIN_RING_AREA = 1e-18


def _ring_array(ring) -> np.ndarray:
    """Return an (N, 2) array of (lon, lat) with any closing vertex dropped."""
    pts = np.array([[c.lon, c.lat] for c in ring], dtype=float)
    if len(pts) > 1 and np.array_equal(pts[0], pts[-1]):
        pts = pts[:-1]
    return pts


def _signed_area(pts: np.ndarray) -> float:
    """Shoelace area, positive for counter-clockwise rings."""
    if len(pts) < 3:
        return 0.0
    x, y = pts[:, 0], pts[:, 1]
    xn, yn = np.roll(x, -1), np.roll(y, -1)
    return float(np.sum(x * yn - xn * y) / 2.0)


def _ring_centroid(pts: np.ndarray, signed_area: float) -> tuple[float, float]:
    x, y = pts[:, 0], pts[:, 1]
    xn, yn = np.roll(x, -1), np.roll(y, -1)
    cross = x * yn - xn * y
    cx = np.sum((x + xn) * cross) / (6.0 * signed_area)
    cy = np.sum((y + yn) * cross) / (6.0 * signed_area)
    return float(cx), float(cy)


def _on_boundary(pts: np.ndarray, px: float, py: float) -> bool:
    """Test whether (px, py) lies on any edge of the ring."""
    x1, y1 = pts[:, 0], pts[:, 1]
    x2, y2 = np.roll(x1, -1), np.roll(y1, -1)
    dx, dy = x2 - x1, y2 - y1
    length = np.hypot(dx, dy)
    cross = dx * (py - y1) - dy * (px - x1)

    with np.errstate(divide="ignore", invalid="ignore"):
        dist = np.where(length > 0, np.abs(cross) / length, np.hypot(px - x1, py - y1))

    within_x = (px >= np.minimum(x1, x2) - EDGE_TOLERANCE) & (px <= np.maximum(x1, x2) + EDGE_TOLERANCE)
    within_y = (py >= np.minimum(y1, y2) - EDGE_TOLERANCE) & (py <= np.maximum(y1, y2) + EDGE_TOLERANCE)
    return bool(np.any((dist <= EDGE_TOLERANCE) & within_x & within_y))


def _ray_crossings_odd(pts: np.ndarray, px: float, py: float) -> bool:
    """Ray-casting parity test for a single ring."""
    if len(pts) < 3:
        return False
    x1, y1 = pts[:, 0], pts[:, 1]
    x2, y2 = np.roll(x1, -1), np.roll(y1, -1)

    straddles = (y1 > py) != (y2 > py)
    with np.errstate(divide="ignore", invalid="ignore"):
        x_at = (x2 - x1) * (py - y1) / (y2 - y1) + x1
    hits = straddles & (px < x_at)
    return bool(np.count_nonzero(hits) % 2)


class PointGeometry(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["point"] = "point"
    coordinate: Coordinate

    @property
    def coordinates(self) -> Coordinate:
        return self.coordinate

    def centroid(self) -> Coordinate:
        return self.coordinate

    def within_area(self, location: Coordinate) -> bool:
        """Points have no area, so nothing is ever within one."""
        return False


class AreaGeometry(BaseModel):
    """One or more coordinate rings enclosing an area.

    Rings may be given open or closed (last vertex repeating the first).
    Containment is inclusive: a location on any ring edge is within the area.
    """
    model_config = ConfigDict(frozen=True)

    type: Literal["area"] = "area"
    rings: tuple[tuple[Coordinate, ...], ...] = Field(min_length=1)

    @field_validator("rings")
    @classmethod
    def rings_must_not_be_empty(
        cls, v: tuple[tuple[Coordinate, ...], ...]
    ) -> tuple[tuple[Coordinate, ...], ...]:
        for i, ring in enumerate(v):
            if len(ring) == 0:
                raise ValueError(f"Ring {i} has no coordinates")
        return v

    @property
    def coordinates(self) -> tuple[tuple[Coordinate, ...], ...]:
        return self.rings

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """(south, west, north, east) over every ring."""
        lats = [c.lat for ring in self.rings for c in ring]
        lons = [c.lon for ring in self.rings for c in ring]
        return min(lats), min(lons), max(lats), max(lons)

    @property
    def area(self) -> float:
        """Even-odd area in square degrees; holes subtract."""
        rings = [_ring_array(r) for r in self.rings]
        return sum(weight for weight, _ in self._weighted_rings(rings))

    def _depth(self, rings: list[np.ndarray], index: int) -> int:
        px, py = rings[index][0]
        return sum(
            1 for j, other in enumerate(rings)
            if j != index and _ray_crossings_odd(other, px, py)
        )

    def _weighted_rings(self, rings: list[np.ndarray]):
        """Yield (signed weight, (cx, cy)) for each non-degenerate ring."""
        for i, pts in enumerate(rings):
            if len(np.unique(pts, axis=0)) < 3:
                continue
            signed = _signed_area(pts)
            if abs(signed) < MIN_RING_AREA:
                continue
            weight = abs(signed) if self._depth(rings, i) % 2 == 0 else -abs(signed)
            yield weight, _ring_centroid(pts, signed)

    def centroid(self) -> Coordinate:
        rings = [_ring_array(r) for r in self.rings]

        total = 0.0
        sum_x = 0.0
        sum_y = 0.0
        for weight, (cx, cy) in self._weighted_rings(rings):
            total += weight
            sum_x += weight * cx
            sum_y += weight * cy

        if abs(total) < MIN_RING_AREA:
            # Every ring is degenerate: fall back to the vertex mean
            mean = np.vstack(rings).mean(axis=0)
            return Coordinate(lat=float(mean[1]), lon=float(mean[0]))
        return Coordinate(lat=sum_y / total, lon=sum_x / total)

    def within_area(self, location: Coordinate) -> bool:
        px, py = location.lon, location.lat
        south, west, north, east = self.bounds
        if not (south - EDGE_TOLERANCE <= py <= north + EDGE_TOLERANCE
                and west - EDGE_TOLERANCE <= px <= east + EDGE_TOLERANCE):
            return False

        rings = [_ring_array(r) for r in self.rings]
        if any(_on_boundary(pts, px, py) for pts in rings):
            return True
        return sum(_ray_crossings_odd(pts, px, py) for pts in rings) % 2 == 1


Geometry = Annotated[Union[PointGeometry, AreaGeometry], Field(discriminator="type")]


# --- GeoJSON payload codec ---

Position = Annotated[list[float], Field(min_length=2, max_length=3)]


class _PointPayload(BaseModel):
    type: Literal["Point"]
    coordinates: Position


class _PolygonPayload(BaseModel):
    type: Literal["Polygon"]
    coordinates: list[list[Position]]


class _MultiPolygonPayload(BaseModel):
    type: Literal["MultiPolygon"]
    coordinates: list[list[list[Position]]]


_payload_adapter = TypeAdapter(
    Annotated[
        Union[_PointPayload, _PolygonPayload, _MultiPolygonPayload],
        Field(discriminator="type"),
    ]
)


def _to_ring(positions: list[list[float]]) -> tuple[Coordinate, ...]:
    return tuple(Coordinate(lat=p[1], lon=p[0]) for p in positions)


def encode_geometry(geometry: Geometry) -> str:
    """Serialize a geometry to GeoJSON geometry JSON."""
    if isinstance(geometry, PointGeometry):
        c = geometry.coordinate
        payload = _PointPayload(type="Point", coordinates=[c.lon, c.lat])
    else:
        payload = _PolygonPayload(
            type="Polygon",
            coordinates=[[[c.lon, c.lat] for c in ring] for ring in geometry.rings],
        )
    return payload.model_dump_json()


def decode_geometry(payload: Optional[Union[str, bytes]]) -> Optional[Geometry]:
    """Parse GeoJSON geometry JSON.

    Returns None when the payload is absent, malformed, out of coordinate
    range, or of a type other than Point, Polygon or MultiPolygon.
    MultiPolygon member rings are flattened, in order, into one area.
    """
    if payload is None:
        return None
    try:
        wire = _payload_adapter.validate_json(payload)
        if isinstance(wire, _PointPayload):
            lon, lat = wire.coordinates[0], wire.coordinates[1]
            return PointGeometry(coordinate=Coordinate(lat=lat, lon=lon))
        if isinstance(wire, _PolygonPayload):
            polygons = [wire.coordinates]
        else:
            polygons = wire.coordinates
        return AreaGeometry(
            rings=tuple(_to_ring(ring) for polygon in polygons for ring in polygon)
        )
    except ValidationError as exc:
        logger.debug("Discarding malformed geometry payload: %s", exc.errors()[:1])
        return None
