"""Live aircraft endpoints backed by the in-process track store."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query, Request, status

from flighttracker.models.aircraft import ExternalRecord, StatsResponse
from flighttracker.tracking.emitter import SnapshotEmitter
from flighttracker.tracking.store import TrackStore

router = APIRouter(prefix="/api/v1", tags=["aircraft"])


def _store(request: Request) -> TrackStore:
    store: TrackStore | None = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Track store is not running",
        )
    return store


def _emitter(request: Request) -> SnapshotEmitter:
    emitter: SnapshotEmitter | None = getattr(request.app.state, "emitter", None)
    return emitter or SnapshotEmitter()


@router.get("/aircraft", response_model=list[ExternalRecord], summary="Tracked aircraft")
def list_aircraft(
    request: Request,
    within_seconds: float | None = Query(
        default=None, gt=0, description="Only aircraft seen within this many seconds"
    ),
) -> list[ExternalRecord]:
    """Return the current state of every tracked aircraft."""

    store = _store(request)
    if within_seconds is None:
        tracks = store.all_snapshots()
    else:
        tracks = store.current_snapshots(datetime.now(tz=timezone.utc), within_seconds)
    return _emitter(request).emit_many(tracks)


@router.get("/aircraft/{icao}", response_model=ExternalRecord, summary="One aircraft")
def get_aircraft(icao: str, request: Request) -> ExternalRecord:
    track = _store(request).snapshot(icao)
    if track is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Aircraft not tracked")
    return _emitter(request).emit(track)


@router.get("/stats", response_model=StatsResponse, summary="Tracker statistics")
def get_stats(request: Request) -> StatsResponse:
    store = _store(request)
    stats = store.statistics()
    return StatsResponse(
        tracked_aircraft=len(store),
        num_messages=stats.num_messages,
        messages_per_second=stats.messages_per_second,
        messages_by_kind=dict(stats.messages_by_kind),
        messages_by_downlink_format={
            str(df): count for df, count in stats.messages_by_downlink_format.items()
        },
        unknown_by_downlink_format={
            str(df): count for df, count in stats.unknown_by_downlink_format.items()
        },
        positions_by_method=dict(stats.positions_by_method),
        position_errors=dict(stats.position_errors),
        tracks_created=stats.tracks_created,
        tracks_evicted=stats.tracks_evicted,
        most_recent_message_time=stats.most_recent_message_time,
    )
