"""Types for the websocket gateway."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Protocol

from pydantic import BaseModel, ConfigDict, Field


class SessionState(str, Enum):
    AWAITING_AUTH_OR_SUB = "awaiting_auth_or_sub"
    AWAITING_SUB = "awaiting_sub"
    RELAYING = "relaying"
    CLOSED = "closed"


class UpstreamConnection(Protocol):
    """The subset of ``aiohttp.ClientWebSocketResponse`` the gateway relies on."""

    @property
    def closed(self) -> bool: ...

    async def send_str(self, data: str) -> None: ...

    async def send_bytes(self, data: bytes) -> None: ...

    async def close(self) -> Any: ...

    def __aiter__(self) -> AsyncIterator[Any]: ...


UpstreamConnector = Callable[[str], Awaitable[UpstreamConnection]]


class Subscription(BaseModel):
    """A validated client subscription, reduced to the fields upstream accepts."""

    bounding_boxes: list[list[list[float]]] = Field(..., alias="BoundingBoxes")
    filter_message_types: list[str | int] | None = Field(None, alias="FilterMessageTypes")

    model_config = ConfigDict(populate_by_name=True)

    def to_upstream(self, api_key: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "APIKey": api_key,
            "BoundingBoxes": self.bounding_boxes,
        }
        if self.filter_message_types:
            payload["FilterMessageTypes"] = self.filter_message_types
        return payload


@dataclass
class RateWindow:
    """Fixed one-minute message counter that restarts on the first message after expiry."""

    limit: int
    window_seconds: float = 60.0
    count: int = 0
    reset_at: float = 0.0

    def hit(self, now: float) -> bool:
        if self.count == 0 or now > self.reset_at:
            self.count = 1
            self.reset_at = now + self.window_seconds
            return True
        if self.count >= self.limit:
            return False
        self.count += 1
        return True


@dataclass
class ConnectionSession:
    """State for one downstream connection."""

    client_id: str
    ip: str
    rate: RateWindow
    deadline: float
    authenticated: bool = False
    state: SessionState = SessionState.AWAITING_AUTH_OR_SUB
    upstream: UpstreamConnection | None = None
    slot_released: bool = False
    connected_at: float = field(default_factory=time.monotonic)

    def to_dict(self) -> dict:
        return {
            "client_id": self.client_id,
            "ip": self.ip,
            "state": self.state.value,
            "authenticated": self.authenticated,
            "messages_in_window": self.rate.count,
            "connected_at_monotonic": self.connected_at,
        }
