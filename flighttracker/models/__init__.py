"""Pydantic models for the flight tracker."""

from .aircraft import (
    AircraftSnapshotBatch,
    ExternalRecord,
    SnapshotBatchResponse,
    StatsResponse,
)

__all__ = [
    "AircraftSnapshotBatch",
    "ExternalRecord",
    "SnapshotBatchResponse",
    "StatsResponse",
]
