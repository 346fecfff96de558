import math

import pytest

from solaroptimizer.geometry.geometry_utils import (calculate_roof_azimuth, calculate_optimal_azimuth,
                                                    calculate_optimal_tilt, estimate_roof_pitch,
                                                    get_orientation_from_azimuth, calculate_polygon_area,
                                                    calculate_polygon_centroid, calculate_panel_positions,
                                                    calculate_distance,
                                                    EARTH_RADIUS_M, METERS_PER_DEGREE_LAT)
from solaroptimizer.solar_interface import Coordinate, Orientation, RoofType
from tests.test_utils import ADELAIDE, rectangular_roof


class TestOptimalOrientation:

    def test_southern_hemisphere_faces_north(self):
        assert calculate_optimal_azimuth(-34.9) == 0.0
        assert calculate_optimal_tilt(-34.9) == pytest.approx(34.9)

    def test_northern_hemisphere_faces_south(self):
        assert calculate_optimal_azimuth(40.7) == 180.0
        assert calculate_optimal_tilt(40.7) == pytest.approx(40.7)

    def test_equator(self):
        assert calculate_optimal_azimuth(0.0) == 180.0
        assert calculate_optimal_tilt(0.0) == 0.0


class TestRoofAzimuth:

    @pytest.mark.parametrize("polygon", [None, [], [ADELAIDE]])
    def test_too_few_points(self, polygon):
        assert calculate_roof_azimuth(polygon) is None

    @pytest.mark.parametrize("end,expected", [
        (Coordinate(-34.9275, 138.6007), 0.0),  # North
        (Coordinate(-34.9285, 138.6017), 90.0),  # East
        (Coordinate(-34.9295, 138.6007), 180.0),  # South
        (Coordinate(-34.9285, 138.5997), 270.0),  # West
    ])
    def test_two_points(self, end, expected):
        assert calculate_roof_azimuth([ADELAIDE, end]) == pytest.approx(expected)

    def test_longest_edge_of_rectangle(self):
        # Long sides run east-west; the first of the two (SW -> SE) wins
        assert calculate_roof_azimuth(rectangular_roof(east_m=10.0, north_m=6.0)) == pytest.approx(90.0)
        assert calculate_roof_azimuth(rectangular_roof(east_m=6.0, north_m=10.0)) == pytest.approx(0.0)

    def test_closing_edge_is_considered(self):
        sw, se, ne, nw = rectangular_roof(east_m=4.0, north_m=12.0)
        # The SW -> NE diagonal only exists as the closing edge of the triangle
        assert calculate_roof_azimuth([ne, nw, sw]) == pytest.approx(18.435, abs=0.01)
        # Two points are a single edge, never closed
        assert calculate_roof_azimuth([nw, sw]) == pytest.approx(180.0)

    def test_result_range(self):
        azimuth = calculate_roof_azimuth([Coordinate(0.0, 0.0), Coordinate(0.001, -0.00001)])
        assert 0.0 <= azimuth < 360.0


@pytest.mark.parametrize("roof_type,expected", [
    ("flat", 5.0),
    ("tile", 22.5),
    ("metal", 20.0),
    ("TILE", 22.5),
    ("Flat", 5.0),
    ("slate", 20.0),
    ("", 20.0),
    (RoofType.METAL, 20.0),
    (RoofType.UNKNOWN, 20.0),
])
def test_estimate_roof_pitch(roof_type, expected):
    assert estimate_roof_pitch(roof_type) == expected


def test_roof_type_parse():
    assert RoofType.parse(" Metal ") == RoofType.METAL
    assert RoofType.parse("thatch") == RoofType.UNKNOWN
    assert RoofType.parse(None) == RoofType.UNKNOWN
    assert RoofType.parse(RoofType.FLAT) == RoofType.FLAT


@pytest.mark.parametrize("azimuth,expected", [
    (0.0, Orientation.NORTH),
    (22.4, Orientation.NORTH),
    (22.5, Orientation.NORTH_EAST),
    (67.5, Orientation.EAST),
    (90.0, Orientation.EAST),
    (135.0, Orientation.SOUTH_EAST),
    (180.0, Orientation.SOUTH),
    (202.5, Orientation.SOUTH_WEST),
    (270.0, Orientation.WEST),
    (300.0, Orientation.NORTH_WEST),
    (337.5, Orientation.NORTH),
    (359.9, Orientation.NORTH),
    (360.0, Orientation.NORTH),
    (405.0, Orientation.NORTH_EAST),
    (-90.0, Orientation.WEST),
])
def test_get_orientation_from_azimuth(azimuth, expected):
    assert get_orientation_from_azimuth(azimuth) == expected


class TestDistance:

    def test_same_point(self):
        assert calculate_distance(ADELAIDE, ADELAIDE) == 0.0

    def test_one_degree_of_latitude(self):
        north = Coordinate(ADELAIDE.latitude + 1.0, ADELAIDE.longitude)
        assert calculate_distance(ADELAIDE, north) == pytest.approx(EARTH_RADIUS_M * math.pi / 180)

    def test_symmetric(self):
        melbourne = Coordinate(-37.8136, 144.9631)
        assert calculate_distance(ADELAIDE, melbourne) == pytest.approx(calculate_distance(melbourne, ADELAIDE))
        assert calculate_distance(ADELAIDE, melbourne) == pytest.approx(654_000, rel=0.01)

    def test_roof_edge_lengths(self):
        sw, se, ne, nw = rectangular_roof(east_m=10.0, north_m=6.0)
        assert calculate_distance(sw, se) == pytest.approx(10.0, rel=0.005)
        assert calculate_distance(se, ne) == pytest.approx(6.0, rel=0.005)


class TestPolygonHelpers:

    def test_area_of_rectangle(self):
        assert calculate_polygon_area(rectangular_roof(east_m=10.0, north_m=6.0)) == pytest.approx(60.0, rel=0.01)

    def test_area_ignores_winding(self):
        roof = rectangular_roof()
        assert calculate_polygon_area(roof) == pytest.approx(calculate_polygon_area(roof[::-1]))

    def test_area_needs_three_points(self):
        assert calculate_polygon_area(rectangular_roof()[:2]) == 0.0

    def test_centroid(self):
        roof = rectangular_roof()
        centroid = calculate_polygon_centroid(roof)
        assert centroid.latitude == pytest.approx((roof[0].latitude + roof[2].latitude) / 2)
        assert centroid.longitude == pytest.approx((roof[0].longitude + roof[2].longitude) / 2)
        assert calculate_polygon_centroid([]) == Coordinate(0.0, 0.0)


class TestPanelPositions:

    def test_panel_count_and_corners(self):
        panels = calculate_panel_positions(ADELAIDE, rows=3, columns=4, spacing=0.05, azimuth=0.0)
        assert len(panels) == 12
        assert all(len(corners) == 4 for corners in panels)

    def test_unrotated_panel_size(self):
        (corners,) = calculate_panel_positions(ADELAIDE, rows=1, columns=1, spacing=0.05, azimuth=0.0)
        top_left, top_right, bottom_right, bottom_left = corners
        lat_span_m = (top_left.latitude - bottom_left.latitude) * METERS_PER_DEGREE_LAT
        assert lat_span_m == pytest.approx(1.7)
        assert top_right.longitude > top_left.longitude
        assert bottom_right.latitude == pytest.approx(bottom_left.latitude)

    def test_rotated_panel_swaps_axes(self):
        (corners,) = calculate_panel_positions(ADELAIDE, rows=1, columns=1, spacing=0.05, azimuth=90.0)
        lats = [c.latitude for c in corners]
        lat_span_m = (max(lats) - min(lats)) * METERS_PER_DEGREE_LAT
        assert lat_span_m == pytest.approx(1.0)

    def test_grid_is_centred(self):
        panels = calculate_panel_positions(ADELAIDE, rows=2, columns=2, spacing=0.05, azimuth=30.0)
        corners = [c for panel in panels for c in panel]
        centre = calculate_polygon_centroid(corners)
        assert centre.latitude == pytest.approx(ADELAIDE.latitude, abs=1e-9)
        assert centre.longitude == pytest.approx(ADELAIDE.longitude, abs=1e-9)
