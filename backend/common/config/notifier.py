"""Vessel notifier service configuration."""
from __future__ import annotations

import os

from pydantic import BaseModel, Field

__all__ = ["NotifierConfig"]


def _env_ms_as_seconds(name: str, default_ms: int) -> float:
    return int(os.getenv(name, str(default_ms))) / 1000


class NotifierConfig(BaseModel):
    """Runtime configuration for the bridge crossing notifier.

    Durations read from the environment keep their historical millisecond
    names (``NOTIFICATION_COOLDOWN_MS``) but are stored in seconds.
    """

    ntfy_server: str = Field(default_factory=lambda: os.getenv("NTFY_SERVER", "https://ntfy.sh").strip())
    ntfy_topic: str = Field(default_factory=lambda: os.getenv("NTFY_TOPIC", "").strip())
    ntfy_token: str | None = Field(default_factory=lambda: os.getenv("NTFY_TOKEN", "").strip() or None)
    ntfy_timeout_seconds: float = 10.0

    ws_proxy_url: str = Field(
        default_factory=lambda: os.getenv("WS_PROXY_URL", "ws://localhost:3001").strip()
    )
    ws_auth_token: str | None = Field(
        default_factory=lambda: os.getenv("WS_AUTH_TOKEN", "").strip() or None
    )

    landmark_name: str = Field(
        default_factory=lambda: os.getenv("LANDMARK_NAME", "Blue Water Bridge").strip()
    )
    bridge_threshold_nm: float = Field(
        default_factory=lambda: float(os.getenv("BRIDGE_THRESHOLD_NM", "0.5")), gt=0
    )
    notification_cooldown_seconds: float = Field(
        default_factory=lambda: _env_ms_as_seconds("NOTIFICATION_COOLDOWN_MS", 30 * 60 * 1000)
    )
    stale_vessel_timeout_seconds: float = Field(
        default_factory=lambda: _env_ms_as_seconds("STALE_VESSEL_TIMEOUT_MS", 15 * 60 * 1000)
    )
    cleanup_interval_seconds: float = Field(
        default_factory=lambda: float(os.getenv("CLEANUP_INTERVAL_SECONDS", "300")), gt=0
    )

    initial_reconnect_delay_seconds: float = 2.0
    max_reconnect_delay_seconds: float = 60.0
