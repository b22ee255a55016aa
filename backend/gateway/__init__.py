"""Websocket gateway package."""

from .exceptions import (
    GatewayError,
    PolicyViolationError,
    ProtocolViolationError,
    UpstreamFailureError,
)
from .limits import ConnectionLimiter
from .proxy import AiohttpUpstreamConnector, GatewayProxy
from .types import ConnectionSession, RateWindow, SessionState, Subscription
from .validation import validate_subscription

__all__ = [
    "AiohttpUpstreamConnector",
    "ConnectionLimiter",
    "ConnectionSession",
    "GatewayError",
    "GatewayProxy",
    "PolicyViolationError",
    "ProtocolViolationError",
    "RateWindow",
    "SessionState",
    "Subscription",
    "UpstreamFailureError",
    "validate_subscription",
]
