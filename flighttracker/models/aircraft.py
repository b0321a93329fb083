"""Models for aircraft snapshots emitted by the tracker."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExternalRecord(BaseModel):
    """Persisted shape of one aircraft snapshot."""

    icao: str = Field(..., description="ICAO 24-bit address as a hex string")
    callsign: Optional[str] = Field(default=None, description="Aircraft callsign")
    squawk: Optional[str] = Field(default=None, description="Mode A squawk code")
    category: Optional[int] = Field(default=None, description="ADS-B emitter category")
    latitude: Optional[float] = Field(
        default=None, description="Latitude in decimal degrees"
    )
    longitude: Optional[float] = Field(
        default=None, description="Longitude in decimal degrees"
    )
    position_method: Optional[Literal["global", "local"]] = Field(
        default=None, description="How the position was resolved from CPR frames"
    )
    position_time: Optional[datetime] = Field(
        default=None, description="Timestamp of the frame the position came from"
    )
    altitude: Optional[float] = Field(
        default=None, description="Altitude in the configured altitude unit"
    )
    altitude_unit: Literal["ft", "m"] = Field(default="ft", description="Altitude unit")
    on_ground: Optional[bool] = Field(
        default=None, description="Whether the last position report was a surface report"
    )
    ground_speed: Optional[float] = Field(
        default=None, description="Speed in the configured speed unit"
    )
    heading: Optional[float] = Field(
        default=None, description="Track or heading in degrees"
    )
    vertical_rate: Optional[float] = Field(
        default=None,
        description="Vertical rate in ft/min (kt speed unit) or m/s (m/s speed unit)",
    )
    speed_unit: Literal["kt", "m/s"] = Field(default="kt", description="Speed unit")
    speed_type: Optional[Literal["ground_speed", "airspeed"]] = Field(
        default=None, description="Whether the speed is ground speed or airspeed"
    )
    message_count: int = Field(default=0, description="Messages applied to the track")
    observed_at: datetime = Field(
        ..., description="Timestamp of the last message seen for the aircraft"
    )

    model_config = ConfigDict(extra="ignore", from_attributes=True)


class AircraftSnapshotBatch(BaseModel):
    """Batch of snapshots posted to the collector endpoint."""

    records: list[ExternalRecord] = Field(default_factory=list)


class SnapshotBatchResponse(BaseModel):
    stored: int = Field(..., description="Number of records persisted")


class StatsResponse(BaseModel):
    """Tracker statistics for monitoring."""

    tracked_aircraft: int = Field(..., description="Aircraft currently tracked")
    num_messages: int = Field(..., description="Messages applied since start")
    messages_per_second: Optional[float] = Field(
        default=None, description="Average message rate in wall-clock time"
    )
    messages_by_kind: dict[str, int] = Field(default_factory=dict)
    messages_by_downlink_format: dict[str, int] = Field(default_factory=dict)
    unknown_by_downlink_format: dict[str, int] = Field(default_factory=dict)
    positions_by_method: dict[str, int] = Field(default_factory=dict)
    position_errors: dict[str, int] = Field(default_factory=dict)
    tracks_created: int = 0
    tracks_evicted: int = 0
    most_recent_message_time: Optional[datetime] = None


__all__ = [
    "AircraftSnapshotBatch",
    "ExternalRecord",
    "SnapshotBatchResponse",
    "StatsResponse",
]
