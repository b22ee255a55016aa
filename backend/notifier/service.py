"""
Vessel notification service.

Subscribes to the gateway, tracks vessels around the bridge and publishes an
ntfy notification whenever one passes under it.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

import aiohttp
import httpx

from ais.messages import decode_feed_message
from ais.stream_client import ResilientStreamClient
from common.config import NotifierConfig
from common.geo import AIS_BOUNDING_BOX
from notifier.ntfy import NtfyClient
from tracking import BridgeDetector, CrossingEvent, DetectorConfig, EvictionResult

logger = logging.getLogger(__name__)


def default_subscription() -> dict[str, Any]:
    return {
        "BoundingBoxes": [AIS_BOUNDING_BOX],
        "FilterMessageTypes": ["PositionReport", "ShipStaticData"],
    }


class VesselNotifier:
    def __init__(
        self,
        config: NotifierConfig | None = None,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], float] = time.time,
        ntfy_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._config = config or NotifierConfig()
        self._detector = BridgeDetector(
            DetectorConfig(
                threshold_nm=self._config.bridge_threshold_nm,
                cooldown_seconds=self._config.notification_cooldown_seconds,
                stale_timeout_seconds=self._config.stale_vessel_timeout_seconds,
            ),
            clock=clock,
        )
        self._ntfy = NtfyClient(
            server=self._config.ntfy_server,
            topic=self._config.ntfy_topic,
            token=self._config.ntfy_token,
            landmark_name=self._config.landmark_name,
            timeout_seconds=self._config.ntfy_timeout_seconds,
            transport=ntfy_transport,
        )
        self._client = ResilientStreamClient(
            url=self._config.ws_proxy_url,
            subscription=default_subscription(),
            on_message=self.handle_message,
            auth_token=self._config.ws_auth_token,
            initial_backoff_seconds=self._config.initial_reconnect_delay_seconds,
            max_backoff_seconds=self._config.max_reconnect_delay_seconds,
            session=session,
        )
        self._running = False
        self._cleanup_task: asyncio.Task | None = None
        self._dispatches: set[asyncio.Task] = set()

    @property
    def detector(self) -> BridgeDetector:
        return self._detector

    @property
    def client(self) -> ResilientStreamClient:
        return self._client

    async def run(self):
        """Run until ``stop()`` is called."""
        if self._running:
            return
        self._running = True
        logger.info("Starting vessel notification service")
        logger.info("ntfy topic: %s", self._config.ntfy_topic)
        logger.info("WebSocket proxy: %s", self._config.ws_proxy_url)
        logger.info("Bridge threshold: %s NM", self._config.bridge_threshold_nm)

        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        try:
            await self._client.run()
        finally:
            await self._shutdown_tasks()
            self._running = False

    async def stop(self):
        logger.info("Stopping vessel notification service")
        await self._client.stop()

    async def handle_message(self, payload: dict[str, Any]) -> CrossingEvent | None:
        message = decode_feed_message(payload)
        if message is None:
            return None

        event = self._detector.process_message(message)
        if event is not None:
            logger.info(
                "Bridge crossing detected: %s (MMSI: %s) %s at %.1f kn",
                event.name,
                event.mmsi,
                event.direction,
                event.speed,
            )
            self._dispatch(event)
        return event

    def _dispatch(self, event: CrossingEvent):
        task = asyncio.create_task(self._send_notification(event))
        self._dispatches.add(task)
        task.add_done_callback(self._dispatches.discard)

    async def _send_notification(self, event: CrossingEvent) -> bool:
        success = await self._ntfy.send_crossing_notification(event)
        if success:
            logger.info("Notification sent for %s", event.name)
        else:
            logger.error("Failed to send notification for %s", event.name)
        return success

    def evict_stale(self) -> EvictionResult:
        result = self._detector.evict_stale()
        if result.vessels_removed or result.cooldowns_removed:
            logger.info(
                "Cleaned up %d stale vessels and %d expired cooldowns. Tracking: %d",
                result.vessels_removed,
                result.cooldowns_removed,
                self._detector.tracked_count,
            )
        return result

    async def _cleanup_loop(self):
        while True:
            await asyncio.sleep(self._config.cleanup_interval_seconds)
            self.evict_stale()

    async def _shutdown_tasks(self):
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            await asyncio.gather(self._cleanup_task, return_exceptions=True)
            self._cleanup_task = None
        if self._dispatches:
            await asyncio.gather(*self._dispatches, return_exceptions=True)

    def status(self) -> dict:
        return {
            "running": self._running,
            "connected": self._client.connected,
            "state": self._client.state.value,
            "tracked_vessels": self._detector.tracked_count,
            "cooldown_vessels": self._detector.cooldown_count,
        }
