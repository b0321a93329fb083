"""Raw frame sources feeding the ingestion loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Iterable, TextIO

from sqlalchemy.orm import Session

logger = logging.getLogger("flighttracker.ingestors.sources")


@dataclass(frozen=True)
class RawFrame:
    """One line from a receiver (AVR text or bare hex) and when it arrived."""

    data: str
    timestamp: datetime


FrameSource = Callable[[], AsyncIterator[RawFrame]]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


async def tcp_avr_frames(host: str, port: int) -> AsyncIterator[RawFrame]:
    """Yield AVR lines from a dump1090-style TCP feed until it closes."""

    reader, writer = await asyncio.open_connection(host, port)
    logger.info("Connected to ADS-B feed at %s:%s", host, port)
    try:
        while True:
            data = await reader.readline()
            if not data:
                break
            yield RawFrame(data=data.decode(errors="ignore"), timestamp=_utcnow())
    finally:
        writer.close()
        with contextlib.suppress(Exception):  # pragma: no cover - best effort close
            await writer.wait_closed()
        logger.info("ADS-B feed connection closed")


def iterable_source(lines: Iterable[str]) -> FrameSource:
    """Frame source over an in-memory iterable, stamped on arrival."""

    async def source() -> AsyncIterator[RawFrame]:
        for line in lines:
            yield RawFrame(data=line, timestamp=_utcnow())

    return source


def stream_source(stream: TextIO) -> FrameSource:
    """Frame source reading lines from a blocking text stream such as stdin."""

    async def source() -> AsyncIterator[RawFrame]:
        while True:
            line = await asyncio.to_thread(stream.readline)
            if not line:
                return
            yield RawFrame(data=line, timestamp=_utcnow())

    return source


def recorded_frame_source(
    session_factory: Callable[[], Session],
    *,
    batch_size: int = 10000,
    since: datetime | None = None,
) -> FrameSource:
    """Replay frames stored in the ``raw_frames`` table in timestamp order.

    Frames keep their recorded timestamps, so pairing and eviction behave as
    they did when the frames were received.
    """

    from flighttracker.db_models import RawFrameRecord

    def _fetch(offset: int) -> list[tuple[datetime, str]]:
        session = session_factory()
        try:
            query = session.query(RawFrameRecord.timestamp, RawFrameRecord.data)
            if since is not None:
                query = query.filter(RawFrameRecord.timestamp >= since)
            rows = (
                query.order_by(RawFrameRecord.timestamp.asc(), RawFrameRecord.id.asc())
                .offset(offset)
                .limit(batch_size)
                .all()
            )
            return [(row[0], row[1]) for row in rows]
        finally:
            session.close()

    async def source() -> AsyncIterator[RawFrame]:
        offset = 0
        while True:
            rows = await asyncio.to_thread(_fetch, offset)
            if not rows:
                return
            logger.debug("Replaying %s recorded frames from offset %s", len(rows), offset)
            for timestamp, data in rows:
                if timestamp.tzinfo is None:
                    timestamp = timestamp.replace(tzinfo=timezone.utc)
                yield RawFrame(data=data, timestamp=timestamp)
            offset += len(rows)

    return source


__all__ = [
    "FrameSource",
    "RawFrame",
    "iterable_source",
    "recorded_frame_source",
    "stream_source",
    "tcp_avr_frames",
]
