"""Destinations for emitted snapshots and recorded raw frames."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Protocol

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flighttracker.db import maybe_cleanup_old_records
from flighttracker.models.aircraft import AircraftSnapshotBatch, ExternalRecord

logger = logging.getLogger("flighttracker.ingestors.sinks")


class SnapshotSinkError(RuntimeError):
    """Raised when a sink fails to persist a batch of snapshots."""


class SnapshotSink(Protocol):
    async def write(self, records: list[ExternalRecord]) -> None: ...


def _naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def snapshot_row(record: ExternalRecord):
    """Build an ``aircraft_snapshots`` ORM row from a record."""

    from flighttracker.db_models import AircraftSnapshotRecord

    values = record.model_dump()
    values["icao"] = record.icao.upper()
    values["observed_at"] = _naive_utc(record.observed_at)
    values["position_time"] = _naive_utc(record.position_time)
    return AircraftSnapshotRecord(**values)


class DatabaseSnapshotSink:
    """Persist snapshots into the ``aircraft_snapshots`` table."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self.session_factory = session_factory

    async def write(self, records: list[ExternalRecord]) -> None:
        if not records:
            return
        await asyncio.to_thread(self._write, records)

    def _write(self, records: list[ExternalRecord]) -> None:
        session = self.session_factory()
        try:
            session.add_all([snapshot_row(record) for record in records])
            session.commit()
            maybe_cleanup_old_records(session)
        except SQLAlchemyError as exc:
            session.rollback()
            raise SnapshotSinkError(f"Failed to store {len(records)} snapshots: {exc}") from exc
        finally:
            session.close()


class HttpSnapshotSink:
    """POST snapshots to a collector service's snapshot endpoint."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        snapshots_path: str = "/api/v1/snapshots",
    ) -> None:
        self.http_client = http_client
        self.snapshots_path = snapshots_path

    async def write(self, records: list[ExternalRecord]) -> None:
        if not records:
            return

        payload = AircraftSnapshotBatch(records=records).model_dump(mode="json")
        try:
            response = await self.http_client.post(self.snapshots_path, json=payload)
        except httpx.RequestError as exc:
            raise SnapshotSinkError(f"Snapshot post failed: {exc}") from exc

        if response.status_code >= 400:
            raise SnapshotSinkError(
                f"Collector rejected snapshots: status={response.status_code} body={response.text}"
            )


class FrameRecorder:
    """Buffer raw frames and write them to the ``raw_frames`` table in batches."""

    def __init__(self, session_factory: Callable[[], Session], *, batch_size: int = 500) -> None:
        self.session_factory = session_factory
        self.batch_size = batch_size
        self._pending: list[tuple[datetime, str]] = []

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def add(self, timestamp: datetime, data: str) -> None:
        self._pending.append((timestamp, data))
        if len(self._pending) >= self.batch_size:
            await self.flush()

    async def flush(self) -> None:
        if not self._pending:
            return
        batch, self._pending = self._pending, []
        try:
            await asyncio.to_thread(self._write, batch)
        except SQLAlchemyError as exc:
            logger.warning("Failed to record %s raw frames: %s", len(batch), exc)

    def _write(self, batch: list[tuple[datetime, str]]) -> None:
        from flighttracker.db_models import RawFrameRecord

        session = self.session_factory()
        try:
            session.add_all(
                [RawFrameRecord(timestamp=_naive_utc(ts), data=data) for ts, data in batch]
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()


__all__ = [
    "DatabaseSnapshotSink",
    "FrameRecorder",
    "HttpSnapshotSink",
    "SnapshotSink",
    "SnapshotSinkError",
    "snapshot_row",
]
