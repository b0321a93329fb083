"""Typed ADS-B / Mode S message variants consumed by the tracking core."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Union


class Parity(IntEnum):
    """CPR format flag carried by every position message."""

    EVEN = 0
    ODD = 1

    @property
    def opposite(self) -> "Parity":
        return Parity.ODD if self is Parity.EVEN else Parity.EVEN


class SpeedType(str, Enum):
    """Whether a velocity report carries ground speed or airspeed."""

    GROUND_SPEED = "ground_speed"
    AIRSPEED = "airspeed"


class VerticalRateSource(str, Enum):
    BAROMETRIC = "barometric"
    GNSS = "gnss"


@dataclass(frozen=True)
class Identification:
    """Aircraft identification and category (type codes 1-4)."""

    callsign: str
    category: int | None = None


@dataclass(frozen=True)
class AirbornePosition:
    """Airborne position with raw 17-bit CPR coordinates (type codes 9-18, 20-22)."""

    parity: Parity
    cpr_lat: int
    cpr_lon: int
    timestamp: datetime
    altitude: int | None = None


@dataclass(frozen=True)
class SurfacePosition:
    """Surface position with raw 17-bit CPR coordinates (type codes 5-8)."""

    parity: Parity
    cpr_lat: int
    cpr_lon: int
    timestamp: datetime
    ground_speed: float | None = None
    track: float | None = None


@dataclass(frozen=True)
class AirborneVelocity:
    """Airborne velocity (type code 19). Speeds in knots, rates in ft/min."""

    ground_speed: float | None
    heading: float | None
    vertical_rate: int | None
    speed_type: SpeedType = SpeedType.GROUND_SPEED
    vertical_rate_source: VerticalRateSource | None = None


@dataclass(frozen=True)
class SurveillanceIdentity:
    """Mode S identity reply (DF5/DF21) carrying the squawk code."""

    squawk: str


@dataclass(frozen=True)
class Other:
    """Any message shape the tracker does not interpret."""

    downlink_format: int | None = None
    typecode: int | None = None


DecodedMessage = Union[
    Identification,
    AirbornePosition,
    SurfacePosition,
    AirborneVelocity,
    SurveillanceIdentity,
    Other,
]

PositionMessage = Union[AirbornePosition, SurfacePosition]


@dataclass(frozen=True)
class ClassifiedMessage:
    """A decoded message tagged with the ICAO address it belongs to."""

    address: str
    message: DecodedMessage
    downlink_format: int | None = None

    @property
    def kind(self) -> str:
        return type(self.message).__name__


__all__ = [
    "AirbornePosition",
    "AirborneVelocity",
    "ClassifiedMessage",
    "DecodedMessage",
    "Identification",
    "Other",
    "Parity",
    "PositionMessage",
    "SpeedType",
    "SurfacePosition",
    "SurveillanceIdentity",
    "VerticalRateSource",
]
