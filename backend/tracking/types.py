"""Types for bridge crossing detection."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field

from common.geo import BRIDGE_CENTER, CLOSE_APPROACH_DISTANCE_NM, MIN_MOVING_SPEED_KNOTS, Direction, LatLon


class DetectorConfig(BaseModel):
    """Thresholds for one bridge detector. Durations are in seconds."""

    threshold_nm: float = Field(CLOSE_APPROACH_DISTANCE_NM, gt=0)
    cooldown_seconds: float = Field(30 * 60, ge=0)
    stale_timeout_seconds: float = Field(15 * 60, gt=0)
    min_speed_knots: float = MIN_MOVING_SPEED_KNOTS
    landmark: LatLon = BRIDGE_CENTER


@dataclass
class TrackedVessel:
    """Latest known state of one vessel near the bridge."""

    mmsi: int
    name: str
    latitude: float
    longitude: float
    cog: float
    sog: float
    distance_nm: float
    last_update: float
    reported_at: datetime | None = None
    destination: str | None = None
    ship_type: int | None = None
    length: int | None = None


class CrossingEvent(BaseModel):
    """A vessel has just come within the threshold distance of the bridge."""

    mmsi: int
    name: str
    speed: float
    course: float
    distance: float
    direction: Direction
    timestamp: float
    destination: str | None = None
    ship_type: int | None = None
    length: int | None = None


@dataclass(frozen=True)
class EvictionResult:
    vessels_removed: int = 0
    cooldowns_removed: int = 0
