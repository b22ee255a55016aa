"""Geographic helpers for tracking vessels around the Blue Water Bridge.

All distances are in nautical miles and all angles in degrees.
"""
from __future__ import annotations

import math
from typing import Literal, NamedTuple

EARTH_RADIUS_NM = 3440.065


class LatLon(NamedTuple):
    lat: float
    lon: float


# Blue Water Bridge (Sarnia, ON / Port Huron, MI)
BRIDGE_CENTER = LatLon(42.9982, -82.4230)

# [[lat_min, lon_min], [lat_max, lon_max]] covering the St. Clair River
# from south of the bridge up into Lake Huron.
AIS_BOUNDING_BOX: list[list[float]] = [[42.90, -82.55], [43.10, -82.30]]

CLOSE_APPROACH_DISTANCE_NM = 0.5
MAX_TRACKING_DISTANCE_NM = 10.0
MIN_MOVING_SPEED_KNOTS = 0.5

HEADING_NOT_AVAILABLE = 511

Direction = Literal["northbound", "southbound"]


def haversine_nm(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_NM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_to_landmark(lat: float, lon: float, landmark: LatLon = BRIDGE_CENTER) -> float:
    return haversine_nm(lat, lon, landmark.lat, landmark.lon)


def bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dlambda = math.radians(lon2 - lon1)

    y = math.sin(dlambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlambda)
    brng = math.degrees(math.atan2(y, x))
    return (brng + 360) % 360


def wrap_angle_deg(angle: float) -> float:
    return (angle + 180) % 360 - 180


def normalize_heading(cog: float) -> float:
    return ((cog % 360) + 360) % 360


def direction_of_travel(cog: float, lat: float, landmark_lat: float = BRIDGE_CENTER.lat) -> Direction:
    """
    Classify a vessel as north- or southbound from its course over ground.

    Courses strictly within 45 degrees of due north or due south are
    classified directly. Anything else, including exactly 45, 135, 225 and
    315, falls back to which side of the landmark the vessel is on: a vessel
    north of it is assumed to be heading south, and vice versa. This is a
    rough heuristic for a river running north-south, not a true-track
    inference.

    The 511 "unavailable" marker gets no special handling. It normalizes to
    151 degrees and so always reads as southbound.
    """
    heading = normalize_heading(cog)
    if heading > 315 or heading < 45:
        return "northbound"
    if 135 < heading < 225:
        return "southbound"
    return "southbound" if lat > landmark_lat else "northbound"


def is_approaching(
    lat: float,
    lon: float,
    cog: float,
    sog: float,
    landmark: LatLon = BRIDGE_CENTER,
) -> bool:
    """True when a moving vessel within tracking range is heading toward the landmark."""
    if sog < MIN_MOVING_SPEED_KNOTS:
        return False
    if distance_to_landmark(lat, lon, landmark) > MAX_TRACKING_DISTANCE_NM:
        return False

    heading = normalize_heading(cog)
    if lat > landmark.lat and 135 < heading < 225:
        return True
    if lat < landmark.lat and (heading > 315 or heading < 45):
        return True
    return False


def estimated_minutes_to_landmark(distance_nm: float, sog: float) -> float | None:
    if sog < MIN_MOVING_SPEED_KNOTS:
        return None
    return distance_nm / sog * 60


def format_distance(distance_nm: float) -> str:
    if distance_nm < 0.1:
        return "< 0.1 NM"
    return f"{distance_nm:.1f} NM"


def format_speed(sog: float) -> str:
    return f"{sog:.1f} kn"


def format_heading(heading: float) -> str:
    if heading == HEADING_NOT_AVAILABLE:
        return "N/A"
    return f"{round(heading)}°"


def format_eta(minutes: float | None) -> str:
    if minutes is None:
        return "N/A"
    if minutes < 1:
        return "< 1 min"
    if minutes < 60:
        return f"~{round(minutes)} min"
    hours = int(minutes // 60)
    mins = round(minutes % 60)
    return f"~{hours}h {mins}m"
