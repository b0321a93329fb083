"""Map decoder output onto the closed set of message variants."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from flighttracker.domain.messages import (
    AirbornePosition,
    AirborneVelocity,
    ClassifiedMessage,
    DecodedMessage,
    Identification,
    Other,
    Parity,
    SpeedType,
    SurfacePosition,
    SurveillanceIdentity,
    VerticalRateSource,
)

_EXTENDED_SQUITTER_DFS = {17, 18}
_IDENTITY_REPLY_DFS = {5, 21}
_AIRSPEED_TAGS = {"TAS", "IAS", "AS"}


def _timestamp(raw: Mapping[str, Any]) -> datetime:
    value = raw.get("timestamp")
    if isinstance(value, datetime):
        return value
    return datetime.now(tz=timezone.utc)


def _vertical_rate_source(raw: Mapping[str, Any]) -> VerticalRateSource | None:
    source = raw.get("vertical_rate_source")
    if source is None:
        return None
    return VerticalRateSource.GNSS if str(source).upper() == "GNSS" else VerticalRateSource.BAROMETRIC


def _extended_squitter(raw: Mapping[str, Any]) -> DecodedMessage:
    tc = raw.get("tc")
    if tc is None:
        return Other(downlink_format=raw.get("df"))

    if 1 <= tc <= 4:
        return Identification(callsign=raw["callsign"], category=raw.get("category"))

    if 5 <= tc <= 8:
        return SurfacePosition(
            parity=Parity(raw["oe_flag"]),
            cpr_lat=raw["cpr_lat"],
            cpr_lon=raw["cpr_lon"],
            timestamp=_timestamp(raw),
            ground_speed=raw.get("ground_speed"),
            track=raw.get("track"),
        )

    if 9 <= tc <= 18 or 20 <= tc <= 22:
        altitude = raw.get("altitude")
        return AirbornePosition(
            parity=Parity(raw["oe_flag"]),
            cpr_lat=raw["cpr_lat"],
            cpr_lon=raw["cpr_lon"],
            timestamp=_timestamp(raw),
            altitude=int(altitude) if altitude is not None else None,
        )

    if tc == 19 and "ground_speed" in raw:
        speed_tag = str(raw.get("speed_tag") or "GS").upper()
        vertical_rate = raw.get("vertical_rate")
        return AirborneVelocity(
            ground_speed=raw.get("ground_speed"),
            heading=raw.get("heading"),
            vertical_rate=int(vertical_rate) if vertical_rate is not None else None,
            speed_type=SpeedType.AIRSPEED if speed_tag in _AIRSPEED_TAGS else SpeedType.GROUND_SPEED,
            vertical_rate_source=_vertical_rate_source(raw),
        )

    return Other(downlink_format=raw.get("df"), typecode=tc)


def classify(raw: Mapping[str, Any]) -> ClassifiedMessage | None:
    """Classify a decoded frame.

    Returns ``None`` only when the frame carries no aircraft address at all;
    every addressed frame yields a message, with unsupported shapes mapped to
    :class:`Other`.
    """

    address = raw.get("icao")
    if not address:
        return None

    df = raw.get("df")
    message: DecodedMessage
    if df in _EXTENDED_SQUITTER_DFS:
        message = _extended_squitter(raw)
    elif df in _IDENTITY_REPLY_DFS and raw.get("squawk"):
        message = SurveillanceIdentity(squawk=str(raw["squawk"]))
    else:
        message = Other(downlink_format=df, typecode=raw.get("tc"))

    return ClassifiedMessage(address=str(address).upper(), message=message, downlink_format=df)


__all__ = ["classify"]
