"""
AIS feed message models as delivered by aisstream.io.

Every frame carries a ``MessageType`` discriminator, a ``MetaData`` block and
a ``Message`` object holding exactly one payload keyed by that type. Frames
are decoded into one of three variants: a position report, static vessel
data, or an unknown message that consumers simply ignore.
"""
from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

POSITION_REPORT_TYPES = (
    "PositionReport",
    "StandardClassBPositionReport",
    "ExtendedClassBPositionReport",
)
STATIC_DATA_TYPE = "ShipStaticData"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

NAV_STATUS_LABELS: dict[int, str] = {
    0: "Under way using engine",
    1: "At anchor",
    2: "Not under command",
    3: "Restricted manoeuvrability",
    4: "Constrained by draught",
    5: "Moored",
    6: "Aground",
    7: "Engaged in fishing",
    8: "Under way sailing",
    9: "Reserved (HSC)",
    10: "Reserved (WIG)",
    11: "Power-driven vessel towing astern",
    12: "Power-driven vessel pushing ahead",
    13: "Reserved",
    14: "AIS-SART, MOB-AIS, EPIRB-AIS",
    15: "Undefined",
}


def nav_status_label(code: int | None) -> str:
    if code is None:
        return NAV_STATUS_LABELS[15]
    return NAV_STATUS_LABELS.get(code, NAV_STATUS_LABELS[15])


class MetaData(BaseModel):
    mmsi: int = Field(..., alias="MMSI")
    ship_name: str = Field("", alias="ShipName")
    latitude: float | None = None
    longitude: float | None = None
    time_utc: Any = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("ship_name", mode="before")
    @classmethod
    def _null_name_is_blank(cls, value):
        return "" if value is None else value


class PositionReport(BaseModel):
    """Class A or Class B position report."""

    cog: float = Field(0.0, alias="Cog")
    sog: float = Field(0.0, alias="Sog")
    true_heading: float = Field(511, alias="TrueHeading")
    navigational_status: int | None = Field(None, alias="NavigationalStatus")
    latitude: float = Field(..., alias="Latitude")
    longitude: float = Field(..., alias="Longitude")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Dimension(BaseModel):
    a: int = Field(0, alias="A")
    b: int = Field(0, alias="B")
    c: int = Field(0, alias="C")
    d: int = Field(0, alias="D")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def length(self) -> int:
        return self.a + self.b

    @property
    def width(self) -> int:
        return self.c + self.d


class ShipStaticData(BaseModel):
    name: str = Field("", alias="Name")
    destination: str = Field("", alias="Destination")
    ship_type: int = Field(0, alias="Type")
    call_sign: str = Field("", alias="CallSign")
    imo_number: int | None = Field(None, alias="ImoNumber")
    dimension: Dimension | None = Field(None, alias="Dimension")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("name", "destination", "call_sign", mode="before")
    @classmethod
    def _null_text_is_blank(cls, value):
        return "" if value is None else value


class PositionReportMessage(BaseModel):
    message_type: str
    meta: MetaData
    report: PositionReport


class StaticDataMessage(BaseModel):
    message_type: str = STATIC_DATA_TYPE
    meta: MetaData
    static: ShipStaticData


class UnknownMessage(BaseModel):
    message_type: str
    meta: MetaData | None = None


FeedMessage = Union[PositionReportMessage, StaticDataMessage, UnknownMessage]


_AISSTREAM_TIME = re.compile(
    r"^(\d{4}-\d{2}-\d{2}) (\d{2}:\d{2}:\d{2})(?:\.(\d+))? ([+-]\d{4})(?: UTC)?$"
)
_COMPACT_TIME = re.compile(r"^\d{14}$")


def parse_report_time(value: Any) -> datetime | None:
    """
    Parse a feed timestamp into an aware UTC datetime.

    Accepts ISO-8601 (``Z`` or offset), the aisstream form
    ``2024-01-15 12:34:56.789012345 +0000 UTC`` and compact
    ``YYYYMMDDHHmmss``. Returns None when no timestamp was sent and
    ``EPOCH`` when one was sent but could not be read, including
    non-string values.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        logger.debug("Non-string feed timestamp %r", value)
        return EPOCH
    if not value.strip():
        return None
    text = value.strip()

    match = _AISSTREAM_TIME.match(text)
    if match:
        date_part, time_part, fraction, offset = match.groups()
        # Nanosecond precision does not fit in datetime
        micros = (fraction or "0")[:6].ljust(6, "0")
        try:
            return datetime.strptime(
                f"{date_part} {time_part}.{micros} {offset}", "%Y-%m-%d %H:%M:%S.%f %z"
            ).astimezone(timezone.utc)
        except ValueError:
            return EPOCH

    if _COMPACT_TIME.match(text):
        try:
            return datetime.strptime(text, "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)
        except ValueError:
            return EPOCH

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable feed timestamp %r", text)
        return EPOCH
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def decode_feed_message(payload: dict[str, Any]) -> FeedMessage | None:
    """Decode a parsed JSON frame into a feed message variant.

    Returns None for frames that are not AIS messages at all (no type or
    metadata) or whose payload does not match its declared type.
    """
    if not isinstance(payload, dict):
        return None
    message_type = payload.get("MessageType")
    raw_meta = payload.get("MetaData")
    if not isinstance(message_type, str) or not isinstance(raw_meta, dict):
        return None

    body = payload.get("Message")
    if not isinstance(body, dict):
        body = {}

    try:
        meta = MetaData.model_validate(raw_meta)
        if message_type in POSITION_REPORT_TYPES and isinstance(body.get(message_type), dict):
            return PositionReportMessage(
                message_type=message_type,
                meta=meta,
                report=PositionReport.model_validate(body[message_type]),
            )
        if message_type == STATIC_DATA_TYPE and isinstance(body.get(STATIC_DATA_TYPE), dict):
            return StaticDataMessage(
                meta=meta,
                static=ShipStaticData.model_validate(body[STATIC_DATA_TYPE]),
            )
    except ValidationError as exc:
        logger.debug("Dropping malformed %s message: %s", message_type, exc)
        return None

    return UnknownMessage(message_type=message_type, meta=meta)


def parse_feed_frame(raw: str | bytes) -> FeedMessage | None:
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return decode_feed_message(payload)
