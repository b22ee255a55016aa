"""Errors that end a gateway session, each carrying its websocket close code."""
from fastapi import status


class GatewayError(Exception):
    """Base gateway exception. ``reason`` is sent to the client as the close reason."""

    code: int = status.WS_1011_INTERNAL_ERROR

    def __init__(self, reason: str, code: int | None = None):
        super().__init__(reason)
        self.reason = reason
        if code is not None:
            self.code = code


class PolicyViolationError(GatewayError):
    """Raised for connection caps, rate limits, failed auth and subscription timeouts."""

    code = status.WS_1008_POLICY_VIOLATION


class ProtocolViolationError(GatewayError):
    """Raised when the client sends malformed JSON or an invalid subscription."""

    code = status.WS_1007_INVALID_FRAME_PAYLOAD_DATA


class UpstreamFailureError(GatewayError):
    """Raised when the upstream feed cannot be reached or goes away."""

    code = status.WS_1011_INTERNAL_ERROR
