"""Tests for geographic helpers and display formatting."""
from __future__ import annotations

import pytest

from common.geo import (
    BRIDGE_CENTER,
    LatLon,
    bearing_deg,
    direction_of_travel,
    distance_to_landmark,
    estimated_minutes_to_landmark,
    format_distance,
    format_eta,
    format_heading,
    format_speed,
    haversine_nm,
    is_approaching,
    normalize_heading,
    wrap_angle_deg,
)


class TestDistance:
    def test_same_point_is_zero(self):
        assert haversine_nm(42.9982, -82.4230, 42.9982, -82.4230) == 0

    def test_one_degree_latitude_is_about_sixty_nm(self):
        assert haversine_nm(42.0, -82.0, 43.0, -82.0) == pytest.approx(60.04, abs=0.05)

    def test_distance_is_symmetric(self):
        a = haversine_nm(43.02, -82.42, 42.98, -82.44)
        b = haversine_nm(42.98, -82.44, 43.02, -82.42)
        assert a == pytest.approx(b)

    def test_distance_to_bridge(self):
        assert distance_to_landmark(43.02, -82.42) == pytest.approx(1.32, abs=0.02)

    def test_distance_to_other_landmark(self):
        assert distance_to_landmark(10.0, 20.0, LatLon(10.0, 20.0)) == 0


class TestBearing:
    @pytest.mark.parametrize(
        "lat2, lon2, expected",
        [(43.0, -82.0, 0.0), (42.0, -81.0, 90.0), (41.0, -82.0, 180.0), (42.0, -83.0, 270.0)],
    )
    def test_cardinal_bearings(self, lat2, lon2, expected):
        assert bearing_deg(42.0, -82.0, lat2, lon2) == pytest.approx(expected, abs=0.5)

    def test_wrap_angle(self):
        assert wrap_angle_deg(190) == -170
        assert wrap_angle_deg(-190) == 170
        assert wrap_angle_deg(45) == 45

    def test_normalize_heading(self):
        assert normalize_heading(370) == 10
        assert normalize_heading(-10) == 350


class TestDirectionOfTravel:
    @pytest.mark.parametrize("cog", [0, 10, 44, 316, 359, 360])
    def test_northerly_courses(self, cog):
        assert direction_of_travel(cog, BRIDGE_CENTER.lat) == "northbound"

    @pytest.mark.parametrize("cog", [136, 180, 224])
    def test_southerly_courses(self, cog):
        assert direction_of_travel(cog, BRIDGE_CENTER.lat) == "southbound"

    def test_crosswise_course_north_of_bridge_is_southbound(self):
        assert direction_of_travel(90, BRIDGE_CENTER.lat + 0.01) == "southbound"

    def test_crosswise_course_south_of_bridge_is_northbound(self):
        assert direction_of_travel(270, BRIDGE_CENTER.lat - 0.01) == "northbound"

    def test_unavailable_course_reads_as_southbound(self):
        assert direction_of_travel(511, BRIDGE_CENTER.lat - 0.01) == "southbound"

    @pytest.mark.parametrize("cog", [45, 135, 225, 315])
    def test_boundary_courses_north_of_bridge_are_southbound(self, cog):
        assert direction_of_travel(cog, BRIDGE_CENTER.lat + 0.01) == "southbound"

    @pytest.mark.parametrize("cog", [45, 135, 225, 315])
    def test_boundary_courses_south_of_bridge_are_northbound(self, cog):
        assert direction_of_travel(cog, BRIDGE_CENTER.lat - 0.01) == "northbound"


class TestApproach:
    def test_north_of_bridge_heading_south_is_approaching(self):
        assert is_approaching(43.02, -82.42, 180, 8)

    def test_south_of_bridge_heading_north_is_approaching(self):
        assert is_approaching(42.98, -82.42, 0, 8)

    def test_moving_away_is_not_approaching(self):
        assert not is_approaching(43.02, -82.42, 0, 8)

    def test_slow_vessel_is_not_approaching(self):
        assert not is_approaching(43.02, -82.42, 180, 0.2)

    def test_out_of_range_is_not_approaching(self):
        assert not is_approaching(44.0, -82.42, 180, 8)

    def test_eta_minutes(self):
        assert estimated_minutes_to_landmark(2.0, 8.0) == pytest.approx(15.0)
        assert estimated_minutes_to_landmark(2.0, 0.1) is None


class TestFormatting:
    def test_format_distance(self):
        assert format_distance(0.05) == "< 0.1 NM"
        assert format_distance(1.26) == "1.3 NM"

    def test_format_speed(self):
        assert format_speed(8) == "8.0 kn"

    def test_format_heading(self):
        assert format_heading(511) == "N/A"
        assert format_heading(179.6) == "180°"

    @pytest.mark.parametrize(
        "minutes, expected",
        [(None, "N/A"), (0.5, "< 1 min"), (15.2, "~15 min"), (125, "~2h 5m")],
    )
    def test_format_eta(self, minutes, expected):
        assert format_eta(minutes) == expected
