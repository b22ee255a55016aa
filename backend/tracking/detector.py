"""Bridge crossing detection over a live AIS position stream."""
from __future__ import annotations

import logging
import math
import time
from typing import Callable

from ais.messages import (
    FeedMessage,
    PositionReportMessage,
    StaticDataMessage,
    parse_report_time,
)
from common.geo import direction_of_travel, distance_to_landmark
from tracking.types import CrossingEvent, DetectorConfig, EvictionResult, TrackedVessel

logger = logging.getLogger(__name__)


def _is_valid_position(lat: float, lon: float) -> bool:
    # (0, 0) is the usual "no fix" value sent by transponders
    if lat == 0 and lon == 0:
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


class BridgeDetector:
    """
    Tracks vessels near the bridge and reports when one passes under it.

    A crossing is the transition from farther than ``threshold_nm`` to at or
    within it, by a vessel moving at ``min_speed_knots`` or more. Each vessel
    is reported at most once per ``cooldown_seconds``.
    """

    def __init__(
        self,
        config: DetectorConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config or DetectorConfig()
        self._clock = clock
        self._vessels: dict[int, TrackedVessel] = {}
        self._notified_at: dict[int, float] = {}

    @property
    def config(self) -> DetectorConfig:
        return self._config

    def process_message(self, message: FeedMessage | None) -> CrossingEvent | None:
        if isinstance(message, PositionReportMessage):
            return self._process_position_report(message)
        if isinstance(message, StaticDataMessage):
            self._process_static_data(message)
        return None

    def _process_position_report(self, message: PositionReportMessage) -> CrossingEvent | None:
        report = message.report
        mmsi = message.meta.mmsi
        lat, lon = report.latitude, report.longitude
        if not _is_valid_position(lat, lon):
            return None

        now = self._clock()
        distance = distance_to_landmark(lat, lon, self._config.landmark)
        reported_at = parse_report_time(message.meta.time_utc)

        existing = self._vessels.get(mmsi)
        previous_distance = existing.distance_nm if existing else math.inf

        vessel = TrackedVessel(
            mmsi=mmsi,
            name=(existing.name if existing else "") or message.meta.ship_name.strip() or f"MMSI {mmsi}",
            latitude=lat,
            longitude=lon,
            cog=report.cog,
            sog=report.sog,
            distance_nm=distance,
            last_update=min(reported_at.timestamp(), now) if reported_at else now,
            reported_at=reported_at,
            destination=existing.destination if existing else None,
            ship_type=existing.ship_type if existing else None,
            length=existing.length if existing else None,
        )
        self._vessels[mmsi] = vessel

        threshold = self._config.threshold_nm
        crossed = previous_distance > threshold and distance <= threshold
        if not crossed or report.sog < self._config.min_speed_knots:
            return None

        last_notified = self._notified_at.get(mmsi)
        if last_notified is not None and now - last_notified < self._config.cooldown_seconds:
            logger.debug("Suppressing crossing for %s (MMSI %s): on cooldown", vessel.name, mmsi)
            return None

        self._notified_at[mmsi] = now
        return CrossingEvent(
            mmsi=mmsi,
            name=vessel.name,
            speed=report.sog,
            course=report.cog,
            distance=distance,
            direction=direction_of_travel(report.cog, lat, self._config.landmark.lat),
            timestamp=now,
            destination=vessel.destination,
            ship_type=vessel.ship_type,
            length=vessel.length,
        )

    def _process_static_data(self, message: StaticDataMessage) -> None:
        existing = self._vessels.get(message.meta.mmsi)
        if existing is None:
            return

        data = message.static
        if data.name.strip():
            existing.name = data.name.strip()
        if data.destination.strip():
            existing.destination = data.destination.strip()
        if data.ship_type:
            existing.ship_type = data.ship_type
        if data.dimension and data.dimension.length > 0:
            existing.length = data.dimension.length

    def evict_stale(self) -> EvictionResult:
        """Drop vessels not heard from recently and expired cooldowns."""
        now = self._clock()

        stale = [
            mmsi for mmsi, vessel in self._vessels.items()
            if now - vessel.last_update > self._config.stale_timeout_seconds
        ]
        for mmsi in stale:
            del self._vessels[mmsi]

        expired = [
            mmsi for mmsi, notified_at in self._notified_at.items()
            if now - notified_at > self._config.cooldown_seconds
        ]
        for mmsi in expired:
            del self._notified_at[mmsi]

        return EvictionResult(vessels_removed=len(stale), cooldowns_removed=len(expired))

    @property
    def tracked_count(self) -> int:
        return len(self._vessels)

    @property
    def cooldown_count(self) -> int:
        return len(self._notified_at)

    def get_vessel(self, mmsi: int) -> TrackedVessel | None:
        return self._vessels.get(mmsi)
