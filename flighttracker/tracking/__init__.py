"""Aircraft state aggregation: CPR decoding, frame pairing and the track store."""

from .cpr import (
    InconsistentZones,
    LatLon,
    NoReference,
    ParityMismatch,
    PositionError,
    PositionFrame,
    StaleFramePair,
    resolve_global,
    resolve_local,
)
from .emitter import SnapshotEmitter
from .pairing import CprPairing, PairingState
from .store import (
    AircraftTrack,
    PositionMethod,
    ResolvedPosition,
    StoreStatistics,
    TrackStore,
    TrackUpdateResult,
    Velocity,
)

__all__ = [
    "AircraftTrack",
    "CprPairing",
    "InconsistentZones",
    "LatLon",
    "NoReference",
    "PairingState",
    "ParityMismatch",
    "PositionError",
    "PositionFrame",
    "PositionMethod",
    "ResolvedPosition",
    "SnapshotEmitter",
    "StaleFramePair",
    "StoreStatistics",
    "TrackStore",
    "TrackUpdateResult",
    "Velocity",
    "resolve_global",
    "resolve_local",
]
