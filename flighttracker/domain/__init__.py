"""Domain types shared by the decoding and tracking layers."""

from .messages import (
    AirbornePosition,
    AirborneVelocity,
    ClassifiedMessage,
    DecodedMessage,
    Identification,
    Other,
    Parity,
    PositionMessage,
    SpeedType,
    SurfacePosition,
    SurveillanceIdentity,
    VerticalRateSource,
)

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
