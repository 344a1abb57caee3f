"""Tests for point/area geometries and the GeoJSON payload codec."""
import logging

import pytest
from pydantic import ValidationError

from spatial_data_cache.core.geometry import (
    AreaGeometry,
    PointGeometry,
    decode_geometry,
    encode_geometry,
)
from spatial_data_cache.models import Coordinate


def square(south: float, west: float, size: float, closed: bool = True) -> list[Coordinate]:
    ring = [
        Coordinate(lat=south, lon=west),
        Coordinate(lat=south, lon=west + size),
        Coordinate(lat=south + size, lon=west + size),
        Coordinate(lat=south + size, lon=west),
    ]
    if closed:
        ring.append(ring[0])
    return ring


class TestPointGeometry:
    def test_centroid_is_the_point(self):
        c = Coordinate(lat=48.8606, lon=2.3376)
        assert PointGeometry(coordinate=c).centroid() == c

    def test_within_area_always_false(self):
        c = Coordinate(lat=48.8606, lon=2.3376)
        p = PointGeometry(coordinate=c)
        assert p.within_area(c) is False
        assert p.within_area(Coordinate(lat=0.0, lon=0.0)) is False

    def test_coordinates_is_the_point(self):
        c = Coordinate(lat=1.0, lon=2.0)
        assert PointGeometry(coordinate=c).coordinates == c


class TestAreaValidation:
    def test_requires_at_least_one_ring(self):
        with pytest.raises(ValidationError):
            AreaGeometry(rings=[])

    def test_rings_must_not_be_empty(self):
        with pytest.raises(ValidationError):
            AreaGeometry(rings=[square(0, 0, 1), []])

    def test_is_immutable(self):
        area = AreaGeometry(rings=[square(0, 0, 1)])
        with pytest.raises(ValidationError):
            area.rings = ()

    def test_bounds(self):
        area = AreaGeometry(rings=[square(10, 20, 2)])
        assert area.bounds == (10, 20, 12, 22)


class TestAreaCentroid:
    def test_square_centroid_is_center(self):
        c = AreaGeometry(rings=[square(0, 0, 1)]).centroid()
        assert c.lat == pytest.approx(0.5)
        assert c.lon == pytest.approx(0.5)

    def test_open_ring_matches_closed_ring(self):
        open_c = AreaGeometry(rings=[square(3, 4, 2, closed=False)]).centroid()
        closed_c = AreaGeometry(rings=[square(3, 4, 2)]).centroid()
        assert open_c.lat == pytest.approx(closed_c.lat)
        assert open_c.lon == pytest.approx(closed_c.lon)

    def test_winding_direction_does_not_matter(self):
        ring = square(0, 0, 2)
        cw = AreaGeometry(rings=[list(reversed(ring))]).centroid()
        assert cw.lat == pytest.approx(1.0)
        assert cw.lon == pytest.approx(1.0)

    def test_triangle_centroid(self):
        ring = [
            Coordinate(lat=0, lon=0),
            Coordinate(lat=0, lon=3),
            Coordinate(lat=3, lon=0),
        ]
        c = AreaGeometry(rings=[ring]).centroid()
        assert c.lat == pytest.approx(1.0)
        assert c.lon == pytest.approx(1.0)

    def test_rings_weighted_by_area(self):
        # 2x2 square at origin (area 4) and 1x1 square at lon 10 (area 1)
        c = AreaGeometry(rings=[square(0, 0, 2), square(0, 10, 1)]).centroid()
        assert c.lon == pytest.approx((4 * 1.0 + 1 * 10.5) / 5)
        assert c.lat == pytest.approx((4 * 1.0 + 1 * 0.5) / 5)

    def test_hole_is_subtracted(self):
        # 4x4 outer with an off-center 1x1 hole in the lower-left quadrant
        c = AreaGeometry(rings=[square(0, 0, 4), square(0.5, 0.5, 1)]).centroid()
        assert c.lat == pytest.approx((16 * 2.0 - 1 * 1.0) / 15)
        assert c.lon == pytest.approx((16 * 2.0 - 1 * 1.0) / 15)

    def test_degenerate_rings_are_skipped(self):
        rings = [
            [Coordinate(lat=50.0, lon=50.0)],
            [Coordinate(lat=20, lon=20), Coordinate(lat=20, lon=21)],
            square(0, 0, 2),
        ]
        c = AreaGeometry(rings=rings).centroid()
        assert c.lat == pytest.approx(1.0)
        assert c.lon == pytest.approx(1.0)

    def test_all_degenerate_falls_back_to_vertex_mean(self):
        rings = [
            [Coordinate(lat=0, lon=0)],
            [Coordinate(lat=2, lon=2), Coordinate(lat=2, lon=4)],
        ]
        c = AreaGeometry(rings=rings).centroid()
        assert c.lat == pytest.approx(4 / 3)
        assert c.lon == pytest.approx(2.0)

    def test_collinear_ring_falls_back_to_vertex_mean(self):
        ring = [Coordinate(lat=0, lon=0), Coordinate(lat=1, lon=1), Coordinate(lat=2, lon=2)]
        c = AreaGeometry(rings=[ring]).centroid()
        assert c.lat == pytest.approx(1.0)
        assert c.lon == pytest.approx(1.0)

    def test_centroid_is_deterministic(self):
        area = AreaGeometry(rings=[square(0, 0, 4), square(1, 1, 1)])
        assert area.centroid() == area.centroid()


class TestAreaMeasure:
    def test_area_of_square(self):
        assert AreaGeometry(rings=[square(0, 0, 2)]).area == pytest.approx(4.0)

    def test_area_with_hole(self):
        assert AreaGeometry(rings=[square(0, 0, 4), square(1, 1, 2)]).area == pytest.approx(12.0)


class TestWithinArea:
    def setup_method(self):
        self.area = AreaGeometry(rings=[square(0, 0, 1)])

    def test_center_is_inside(self):
        assert self.area.within_area(Coordinate(lat=0.5, lon=0.5)) is True

    def test_far_point_is_outside(self):
        assert self.area.within_area(Coordinate(lat=10.0, lon=10.0)) is False

    def test_point_beside_ring_is_outside(self):
        assert self.area.within_area(Coordinate(lat=0.5, lon=1.5)) is False

    def test_edge_is_inside(self):
        assert self.area.within_area(Coordinate(lat=0.0, lon=0.5)) is True
        assert self.area.within_area(Coordinate(lat=0.5, lon=1.0)) is True

    def test_vertex_is_inside(self):
        assert self.area.within_area(Coordinate(lat=1.0, lon=1.0)) is True

    def test_boundary_result_is_repeatable(self):
        p = Coordinate(lat=1.0, lon=0.25)
        results = {self.area.within_area(p) for _ in range(10)}
        assert results == {True}

    def test_hole_excludes_points(self):
        donut = AreaGeometry(rings=[square(0, 0, 4), square(1, 1, 2)])
        assert donut.within_area(Coordinate(lat=2.0, lon=2.0)) is False
        assert donut.within_area(Coordinate(lat=0.5, lon=0.5)) is True

    def test_hole_edge_is_inside(self):
        donut = AreaGeometry(rings=[square(0, 0, 4), square(1, 1, 2)])
        assert donut.within_area(Coordinate(lat=1.0, lon=2.0)) is True

    def test_disjoint_rings(self):
        area = AreaGeometry(rings=[square(0, 0, 1), square(0, 2, 1)])
        assert area.within_area(Coordinate(lat=0.5, lon=2.5)) is True
        assert area.within_area(Coordinate(lat=0.5, lon=1.5)) is False

    def test_concave_ring(self):
        # U shape opening north: notch between lon 1 and 2 above lat 1
        ring = [
            Coordinate(lat=0, lon=0),
            Coordinate(lat=0, lon=3),
            Coordinate(lat=3, lon=3),
            Coordinate(lat=3, lon=2),
            Coordinate(lat=1, lon=2),
            Coordinate(lat=1, lon=1),
            Coordinate(lat=3, lon=1),
            Coordinate(lat=3, lon=0),
        ]
        area = AreaGeometry(rings=[ring])
        assert area.within_area(Coordinate(lat=2.0, lon=1.5)) is False
        assert area.within_area(Coordinate(lat=2.0, lon=0.5)) is True
        assert area.within_area(Coordinate(lat=0.5, lon=1.5)) is True


class TestEncodeGeometry:
    def test_point_is_geojson(self):
        import json
        payload = json.loads(encode_geometry(PointGeometry(coordinate=Coordinate(lat=48.85, lon=2.35))))
        assert payload == {"type": "Point", "coordinates": [2.35, 48.85]}

    def test_area_is_geojson_polygon(self):
        import json
        payload = json.loads(encode_geometry(AreaGeometry(rings=[square(0, 0, 1)])))
        assert payload["type"] == "Polygon"
        assert len(payload["coordinates"]) == 1
        assert payload["coordinates"][0][1] == [1.0, 0.0]

    def test_area_round_trip(self):
        area = AreaGeometry(rings=[square(47.6, -122.3, 0.01), square(47.602, -122.298, 0.002)])
        assert decode_geometry(encode_geometry(area)) == area

    def test_point_round_trip(self):
        point = PointGeometry(coordinate=Coordinate(lat=-33.8568, lon=151.2153))
        assert decode_geometry(encode_geometry(point)) == point


class TestDecodeGeometry:
    def test_none_payload(self):
        assert decode_geometry(None) is None

    def test_point(self):
        g = decode_geometry('{"type": "Point", "coordinates": [2.35, 48.85]}')
        assert isinstance(g, PointGeometry)
        assert g.coordinate == Coordinate(lat=48.85, lon=2.35)

    def test_position_with_altitude(self):
        g = decode_geometry('{"type": "Point", "coordinates": [2.35, 48.85, 35.0]}')
        assert g.coordinate == Coordinate(lat=48.85, lon=2.35)

    def test_polygon_with_hole(self):
        g = decode_geometry(
            '{"type": "Polygon", "coordinates": ['
            '[[0, 0], [4, 0], [4, 4], [0, 4], [0, 0]],'
            '[[1, 1], [2, 1], [2, 2], [1, 2], [1, 1]]]}'
        )
        assert isinstance(g, AreaGeometry)
        assert len(g.rings) == 2

    def test_multipolygon_rings_are_flattened_in_order(self):
        g = decode_geometry(
            '{"type": "MultiPolygon", "coordinates": ['
            '[[[0, 0], [1, 0], [1, 1], [0, 0]]],'
            '[[[5, 5], [6, 5], [6, 6], [5, 5]], [[5.1, 5.1], [5.2, 5.1], [5.2, 5.2], [5.1, 5.1]]]]}'
        )
        assert isinstance(g, AreaGeometry)
        assert len(g.rings) == 3
        assert g.rings[1][0] == Coordinate(lat=5, lon=5)

    def test_invalid_json(self):
        assert decode_geometry("{not json") is None

    def test_unsupported_type(self):
        assert decode_geometry('{"type": "LineString", "coordinates": [[0, 0], [1, 1]]}') is None

    def test_empty_polygon(self):
        assert decode_geometry('{"type": "Polygon", "coordinates": []}') is None

    def test_empty_ring(self):
        assert decode_geometry('{"type": "Polygon", "coordinates": [[]]}') is None

    def test_out_of_range_coordinate(self):
        assert decode_geometry('{"type": "Point", "coordinates": [0, 95]}') is None

    def test_short_position(self):
        assert decode_geometry('{"type": "Point", "coordinates": [1]}') is None

    def test_malformed_payload_logs_debug(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="spatial_data_cache.core.geometry"):
            assert decode_geometry('{"type": "Polygon"}') is None
        assert any(
            r.name == "spatial_data_cache.core.geometry" and r.levelno == logging.DEBUG
            for r in caplog.records
        )
