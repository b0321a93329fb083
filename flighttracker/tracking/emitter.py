"""Map internal tracks onto the persisted snapshot shape.

All unit conversion for output happens here. Tracks hold values as
broadcast (feet, knots, ft/min); the emitter converts to the configured
output units in one place.
"""

from __future__ import annotations

from typing import Literal

from flighttracker.models.aircraft import ExternalRecord
from flighttracker.tracking.store import AircraftTrack

AltitudeUnit = Literal["ft", "m"]
SpeedUnit = Literal["kt", "m/s"]

_FEET_TO_METERS = 0.3048
_KNOTS_TO_MS = 0.514444
_FPM_TO_MS = 0.00508


def _feet_to_m(value_ft: float | None) -> float | None:
    if value_ft is None:
        return None
    return float(value_ft) * _FEET_TO_METERS


def _knots_to_ms(value_kt: float | None) -> float | None:
    if value_kt is None:
        return None
    return float(value_kt) * _KNOTS_TO_MS


def _fpm_to_ms(value_fpm: float | None) -> float | None:
    if value_fpm is None:
        return None
    return float(value_fpm) * _FPM_TO_MS


class SnapshotEmitter:
    """Convert tracks to :class:`ExternalRecord` using one unit policy."""

    def __init__(self, *, altitude_unit: str = "ft", speed_unit: str = "kt") -> None:
        if altitude_unit not in {"ft", "m"}:
            raise ValueError(f"Unsupported altitude unit: {altitude_unit!r}")
        if speed_unit not in {"kt", "m/s"}:
            raise ValueError(f"Unsupported speed unit: {speed_unit!r}")
        self.altitude_unit: AltitudeUnit = altitude_unit  # type: ignore[assignment]
        self.speed_unit: SpeedUnit = speed_unit  # type: ignore[assignment]

    def emit(self, track: AircraftTrack) -> ExternalRecord:
        altitude: float | None = track.altitude
        if altitude is not None and self.altitude_unit == "m":
            altitude = _feet_to_m(altitude)

        ground_speed = heading = vertical_rate = None
        speed_type = None
        if track.velocity is not None:
            velocity = track.velocity
            heading = velocity.heading
            speed_type = velocity.speed_type.value
            if self.speed_unit == "m/s":
                ground_speed = _knots_to_ms(velocity.ground_speed)
                vertical_rate = _fpm_to_ms(velocity.vertical_rate)
            else:
                ground_speed = velocity.ground_speed
                vertical_rate = velocity.vertical_rate

        position = track.position
        return ExternalRecord(
            icao=track.address,
            callsign=track.callsign,
            squawk=track.squawk,
            category=track.category,
            latitude=position.latitude if position else None,
            longitude=position.longitude if position else None,
            position_method=position.method.value if position else None,
            position_time=position.resolved_at if position else None,
            altitude=altitude,
            altitude_unit=self.altitude_unit,
            on_ground=track.on_ground,
            ground_speed=ground_speed,
            heading=heading,
            vertical_rate=vertical_rate,
            speed_unit=self.speed_unit,
            speed_type=speed_type,
            message_count=track.message_count,
            observed_at=track.last_seen,
        )

    def emit_many(self, tracks: list[AircraftTrack]) -> list[ExternalRecord]:
        return [self.emit(track) for track in tracks]


__all__ = ["SnapshotEmitter"]
