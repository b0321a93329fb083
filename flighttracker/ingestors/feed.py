"""ADS-B feed ingestor: frames in, tracks updated, snapshots out."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from flighttracker.decoding import FrameDecodeError, classify, decode_frame, parse_avr_line
from flighttracker.domain.messages import ClassifiedMessage
from flighttracker.ingestors.sinks import FrameRecorder, SnapshotSink, SnapshotSinkError
from flighttracker.ingestors.sources import FrameSource, RawFrame, tcp_avr_frames
from flighttracker.tracking.emitter import SnapshotEmitter
from flighttracker.tracking.store import TrackStore, TrackUpdateResult

logger = logging.getLogger("flighttracker.ingestors.feed")

EMIT_PER_UPDATE = "per_update"
EMIT_PERIODIC = "periodic"


@dataclass
class FeedConfig:
    """Runtime configuration for the feed ingestor."""

    host: str = "localhost"
    port: int = 30002
    emit_mode: str = EMIT_PER_UPDATE
    min_emit_interval: float = 10.0
    snapshot_interval: float = 10.0
    eviction_interval: float = 5.0
    emit_requires_position: bool = True
    stats_log_interval: int = 10000


@dataclass
class FeedStatistics:
    frames_received: int = 0
    frames_invalid: int = 0
    frames_without_address: int = 0
    messages_applied: int = 0
    snapshots_emitted: int = 0
    sink_failures: int = 0
    tracks_evicted: int = 0


class FeedIngestor:
    """Drive frames from a source through decoding into a :class:`TrackStore`.

    Eviction and periodic emission are scheduled on frame timestamps, so
    replayed recordings age out tracks the way the live feed did. For live TCP
    feeds a wall-clock housekeeping task also sweeps while the feed is quiet.
    """

    def __init__(
        self,
        *,
        store: TrackStore,
        emitter: SnapshotEmitter,
        sink: SnapshotSink | None = None,
        config: FeedConfig | None = None,
        frame_source: FrameSource | None = None,
        stop_on_source: bool = False,
        recorder: FrameRecorder | None = None,
        wall_clock_housekeeping: bool | None = None,
    ) -> None:
        self.store = store
        self.emitter = emitter
        self.sink = sink
        self.config = config or FeedConfig()
        self.frame_source = frame_source
        self.stop_on_source = stop_on_source
        self.recorder = recorder
        self.wall_clock_housekeeping = (
            frame_source is None if wall_clock_housekeeping is None else wall_clock_housekeeping
        )
        self.stats = FeedStatistics()
        self._last_emitted: dict[str, datetime] = {}
        self._last_eviction: datetime | None = None
        self._last_periodic_emit: datetime | None = None

        if self.config.emit_mode not in {EMIT_PER_UPDATE, EMIT_PERIODIC}:
            raise ValueError(f"Unsupported emit mode: {self.config.emit_mode!r}")

    async def run(self) -> None:
        """Run the feed until cancelled.

        With ``stop_on_source`` the loop flushes and returns once the injected
        source is exhausted. Without it the source factory is called again
        after a pause, the same way a dropped TCP feed is reopened, so a source
        over a fixed list replays its frames until the task is cancelled.
        """

        housekeeping = (
            asyncio.create_task(self._housekeeping()) if self.wall_clock_housekeeping else None
        )
        backoff = 1
        try:
            while True:
                try:
                    if self.frame_source:
                        await self._consume(self.frame_source)
                        if self.stop_on_source:
                            await self.flush()
                            return
                        await asyncio.sleep(backoff)
                        continue

                    await self._consume(
                        lambda: tcp_avr_frames(self.config.host, self.config.port)
                    )
                    backoff = 1
                except asyncio.CancelledError:
                    logger.info("Feed ingestor cancelled")
                    raise
                except Exception as exc:  # pragma: no cover - logged and retried
                    logger.warning("Feed ingestor error: %s", exc)

                backoff = min(backoff * 2, 60)
                await asyncio.sleep(backoff)
        finally:
            if housekeeping:
                housekeeping.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await housekeeping

    async def _consume(self, source: FrameSource) -> None:
        async for frame in source():
            await self.handle_frame(frame)

    async def handle_frame(self, frame: RawFrame) -> TrackUpdateResult | None:
        """Decode, classify and apply one raw frame. Bad frames are counted and skipped."""

        self.stats.frames_received += 1
        try:
            msg = parse_avr_line(frame.data)
            if msg is None:
                return None
            decoded = decode_frame(msg, frame.timestamp)
        except FrameDecodeError as exc:
            self.stats.frames_invalid += 1
            logger.debug("Skipping frame: %s", exc)
            return None

        classified = classify(decoded)
        if classified is None:
            self.stats.frames_without_address += 1
            return None

        if self.recorder is not None:
            await self.recorder.add(frame.timestamp, msg)

        return await self.handle_message(classified, frame.timestamp)

    async def handle_message(
        self, classified: ClassifiedMessage, timestamp: datetime
    ) -> TrackUpdateResult:
        """Apply an already classified message and run emission/eviction."""

        result = self.store.apply(
            classified.address,
            classified.message,
            timestamp,
            downlink_format=classified.downlink_format,
        )
        if result.applied:
            self.stats.messages_applied += 1
            if self.config.emit_mode == EMIT_PER_UPDATE:
                await self._emit_if_due(result.address, timestamp)
            self._maybe_log_throughput()

        await self.tick(timestamp)
        return result

    async def tick(self, now: datetime) -> None:
        """Run eviction and periodic emission when their intervals have elapsed."""

        if self._last_eviction is None:
            self._last_eviction = now
        elif now - self._last_eviction >= timedelta(seconds=self.config.eviction_interval):
            self.sweep(now)

        if self.config.emit_mode == EMIT_PERIODIC:
            if self._last_periodic_emit is None:
                self._last_periodic_emit = now
            elif now - self._last_periodic_emit >= timedelta(
                seconds=self.config.snapshot_interval
            ):
                self._last_periodic_emit = now
                await self.emit_all()

    def sweep(self, now: datetime) -> list[str]:
        """Evict stale tracks and forget their emission bookkeeping."""

        self._last_eviction = now
        removed = self.store.evict_stale(now)
        for address in removed:
            self._last_emitted.pop(address, None)
        self.stats.tracks_evicted += len(removed)
        return removed

    async def emit_all(self) -> int:
        tracks = self.store.all_snapshots()
        if self.config.emit_requires_position:
            tracks = [track for track in tracks if track.position is not None]
        records = self.emitter.emit_many(tracks)
        await self._write(records)
        return len(records)

    async def flush(self) -> None:
        """Emit every track once and write out buffered frames."""

        await self.emit_all()
        if self.recorder is not None:
            await self.recorder.flush()

    async def _emit_if_due(self, address: str, now: datetime) -> None:
        last = self._last_emitted.get(address)
        if last is not None and now - last < timedelta(seconds=self.config.min_emit_interval):
            return

        track = self.store.snapshot(address)
        if track is None:
            return
        if self.config.emit_requires_position and track.position is None:
            return

        self._last_emitted[address] = now
        await self._write([self.emitter.emit(track)])

    async def _write(self, records) -> None:
        if self.sink is None or not records:
            return
        try:
            await self.sink.write(records)
        except SnapshotSinkError as exc:
            self.stats.sink_failures += 1
            logger.warning("Snapshot sink failed: %s", exc)
            return
        self.stats.snapshots_emitted += len(records)

    async def _housekeeping(self) -> None:
        while True:
            await asyncio.sleep(self.config.eviction_interval)
            self.sweep(datetime.now(tz=timezone.utc))
            if self.recorder is not None:
                await self.recorder.flush()

    def _maybe_log_throughput(self) -> None:
        interval = self.config.stats_log_interval
        if interval <= 0 or self.stats.messages_applied % interval != 0:
            return
        stats = self.store.statistics()
        rate = stats.messages_per_second
        logger.info(
            "%s messages total, %s messages/sec, %s aircraft tracked",
            stats.num_messages,
            f"{rate:.1f}" if rate is not None else "n/a",
            len(self.store),
        )


__all__ = ["EMIT_PERIODIC", "EMIT_PER_UPDATE", "FeedConfig", "FeedIngestor", "FeedStatistics"]
