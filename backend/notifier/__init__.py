"""Bridge crossing notification service package."""

from .ntfy import NtfyClient, NtfyMessage
from .service import VesselNotifier, default_subscription

__all__ = [
    "NtfyClient",
    "NtfyMessage",
    "VesselNotifier",
    "default_subscription",
]
