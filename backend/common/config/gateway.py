"""Gateway (websocket proxy) configuration."""
from __future__ import annotations

import os

from pydantic import BaseModel, Field

__all__ = ["AISSTREAM_UPSTREAM_URL", "GatewayConfig"]

AISSTREAM_UPSTREAM_URL = "wss://stream.aisstream.io/v0/stream"


def _env_str(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_optional(name: str) -> str | None:
    return _env_str(name) or None


class GatewayConfig(BaseModel):
    """Runtime configuration for the websocket gateway."""

    upstream_api_key: str = Field(default_factory=lambda: _env_str("AISSTREAM_API_KEY"))
    upstream_url: str = Field(default_factory=lambda: _env_str("UPSTREAM_URL", AISSTREAM_UPSTREAM_URL))
    auth_token: str | None = Field(default_factory=lambda: _env_optional("WS_AUTH_TOKEN"))
    host: str = Field(default_factory=lambda: _env_str("HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: int(os.getenv("PORT", "3001")))

    max_connections_per_ip: int = Field(
        default_factory=lambda: int(os.getenv("MAX_CONNECTIONS_PER_IP", "5")), ge=1
    )
    max_messages_per_minute: int = Field(
        default_factory=lambda: int(os.getenv("MAX_MESSAGES_PER_MINUTE", "60")), ge=1
    )
    rate_window_seconds: float = 60.0
    subscription_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("SUBSCRIPTION_TIMEOUT_SECONDS", "10")), gt=0
    )

    lat_min: float = -90.0
    lat_max: float = 90.0
    lon_min: float = -180.0
    lon_max: float = 180.0
    max_bounding_box_area: float = Field(
        default_factory=lambda: float(os.getenv("MAX_BOUNDING_BOX_AREA", "100"))
    )
    max_bounding_boxes: int = Field(
        default_factory=lambda: int(os.getenv("MAX_BOUNDING_BOXES", "5")), ge=1
    )

    @property
    def auth_required(self) -> bool:
        return bool(self.auth_token)
