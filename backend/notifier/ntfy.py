"""Client for publishing bridge crossing notifications via ntfy (https://ntfy.sh)."""
from __future__ import annotations

import logging
import math

import httpx
from pydantic import BaseModel

from tracking.types import CrossingEvent

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 3


class NtfyMessage(BaseModel):
    topic: str
    title: str
    message: str
    tags: list[str]
    priority: int = DEFAULT_PRIORITY
    click: str | None = None


class NtfyClient:
    def __init__(
        self,
        server: str,
        topic: str,
        token: str | None = None,
        landmark_name: str = "Blue Water Bridge",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._server = server
        self._topic = topic
        self._token = token
        self._landmark_name = landmark_name
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def format_message(self, event: CrossingEvent) -> NtfyMessage:
        northbound = event.direction == "northbound"
        direction_emoji = "⬆️" if northbound else "⬇️"
        direction_label = "Northbound" if northbound else "Southbound"

        lines = [
            f"{direction_emoji} {direction_label} at {event.speed:.1f} knots",
            f"MMSI: {event.mmsi}",
            f"Course: {math.floor(event.course + 0.5)}°",
        ]
        if event.destination:
            lines.append(f"Destination: {event.destination}")
        if event.length:
            lines.append(f"Length: {event.length}m")

        return NtfyMessage(
            topic=self._topic,
            title=f"{event.name} passing under {self._landmark_name}",
            message="\n".join(lines),
            tags=["ship", direction_label.lower()],
        )

    async def send_crossing_notification(self, event: CrossingEvent) -> bool:
        return await self.send(self.format_message(event))

    async def send(self, message: NtfyMessage) -> bool:
        """POST one message. Returns False on any failure; nothing is retried."""
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport) as client:
                response = await client.post(
                    self._server,
                    headers=headers,
                    content=message.model_dump_json(exclude_none=True),
                )
        except httpx.HTTPError as exc:
            logger.error("ntfy request error: %s", exc)
            return False

        if not response.is_success:
            logger.error("ntfy request failed: %s %s", response.status_code, response.reason_phrase)
            return False
        return True
