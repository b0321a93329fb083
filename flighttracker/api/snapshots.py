"""Snapshot collection and query endpoints."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from flighttracker import db_models
from flighttracker.db import get_db, maybe_cleanup_old_records
from flighttracker.ingestors.sinks import snapshot_row
from flighttracker.models.aircraft import (
    AircraftSnapshotBatch,
    ExternalRecord,
    SnapshotBatchResponse,
)

router = APIRouter(prefix="/api/v1", tags=["snapshots"])

logger = logging.getLogger("flighttracker.snapshots")


@router.post(
    "/snapshots",
    response_model=SnapshotBatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Store aircraft snapshots",
)
def create_snapshots(
    batch: AircraftSnapshotBatch, db: Session = Depends(get_db)
) -> SnapshotBatchResponse:
    """Accept a batch of snapshots from a remote tracker."""

    db.add_all([snapshot_row(record) for record in batch.records])
    db.commit()
    maybe_cleanup_old_records(db)
    logger.info("Stored %s aircraft snapshots", len(batch.records))
    return SnapshotBatchResponse(stored=len(batch.records))


@router.get(
    "/snapshots", response_model=list[ExternalRecord], summary="Query stored snapshots"
)
def list_snapshots(
    icao: str | None = Query(default=None, description="ICAO hex address"),
    since: datetime | None = Query(default=None, description="Only snapshots observed after"),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[ExternalRecord]:
    """Return stored snapshots, newest first."""

    query = db.query(db_models.AircraftSnapshotRecord)
    if icao:
        query = query.filter(db_models.AircraftSnapshotRecord.icao == icao.upper())
    if since is not None:
        if since.tzinfo is not None:
            since = since.astimezone(timezone.utc).replace(tzinfo=None)
        query = query.filter(db_models.AircraftSnapshotRecord.observed_at >= since)

    rows = (
        query.order_by(
            db_models.AircraftSnapshotRecord.observed_at.desc(),
            db_models.AircraftSnapshotRecord.id.desc(),
        )
        .limit(limit)
        .all()
    )
    return [ExternalRecord.model_validate(row) for row in rows]
