"""Validation of client subscriptions before they are forwarded upstream."""
from __future__ import annotations

from typing import Any

from common.config import GatewayConfig
from gateway.exceptions import ProtocolViolationError
from gateway.types import Subscription

ALLOWED_MESSAGE_TYPE_IDS = (1, 2, 3, 18, 19, 27)
ALLOWED_MESSAGE_TYPE_NAMES = (
    "PositionReport",
    "ShipStaticData",
    "StandardClassBPositionReport",
    "ExtendedClassBPositionReport",
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_coordinate_pair(value: Any) -> bool:
    return isinstance(value, list) and len(value) == 2 and all(_is_number(v) for v in value)


def _is_allowed_message_type(value: Any) -> bool:
    if isinstance(value, str):
        return value in ALLOWED_MESSAGE_TYPE_NAMES
    return _is_number(value) and value in ALLOWED_MESSAGE_TYPE_IDS


def bounding_box_area(box: list[list[float]]) -> float:
    (lat1, lon1), (lat2, lon2) = box
    return abs(lat2 - lat1) * abs(lon2 - lon1)


def validate_subscription(payload: Any, config: GatewayConfig) -> Subscription:
    """
    Check a client subscription against the gateway's bounds.

    Only ``BoundingBoxes`` and ``FilterMessageTypes`` survive; every other
    field the client sent is dropped so it cannot reach the upstream request.

    Raises:
        ProtocolViolationError: with a human-readable reason on the first failed check.
    """
    if not isinstance(payload, dict):
        raise ProtocolViolationError("Subscription must be an object")

    boxes = payload.get("BoundingBoxes")
    if not isinstance(boxes, list):
        raise ProtocolViolationError("BoundingBoxes array is required")
    if not boxes:
        raise ProtocolViolationError("At least one bounding box is required")

    for box in boxes:
        if not isinstance(box, list) or len(box) != 2 or not all(_is_coordinate_pair(c) for c in box):
            raise ProtocolViolationError("Each bounding box must be an array of 2 coordinate pairs")

        for lat, lon in box:
            if not (config.lat_min <= lat <= config.lat_max and config.lon_min <= lon <= config.lon_max):
                raise ProtocolViolationError("Coordinates out of valid range")

        if bounding_box_area(box) > config.max_bounding_box_area:
            raise ProtocolViolationError(
                f"Bounding box area too large (max {config.max_bounding_box_area:g} sq degrees)"
            )

    if len(boxes) > config.max_bounding_boxes:
        raise ProtocolViolationError(f"Maximum {config.max_bounding_boxes} bounding boxes allowed")

    message_types = payload.get("FilterMessageTypes")
    if message_types is not None:
        if not isinstance(message_types, list):
            raise ProtocolViolationError("FilterMessageTypes must be an array")
        for message_type in message_types:
            if not _is_allowed_message_type(message_type):
                raise ProtocolViolationError(f"Invalid message type: {message_type!r}"[:100])

    return Subscription(
        BoundingBoxes=boxes,
        FilterMessageTypes=message_types or None,
    )
