"""Frame sources, snapshot sinks and the feed ingestion loop."""

from .feed import EMIT_PER_UPDATE, EMIT_PERIODIC, FeedConfig, FeedIngestor, FeedStatistics
from .sinks import (
    DatabaseSnapshotSink,
    FrameRecorder,
    HttpSnapshotSink,
    SnapshotSink,
    SnapshotSinkError,
)
from .sources import (
    FrameSource,
    RawFrame,
    iterable_source,
    recorded_frame_source,
    stream_source,
    tcp_avr_frames,
)

__all__ = [
    "DatabaseSnapshotSink",
    "EMIT_PERIODIC",
    "EMIT_PER_UPDATE",
    "FeedConfig",
    "FeedIngestor",
    "FeedStatistics",
    "FrameRecorder",
    "FrameSource",
    "HttpSnapshotSink",
    "RawFrame",
    "SnapshotSink",
    "SnapshotSinkError",
    "iterable_source",
    "recorded_frame_source",
    "stream_source",
    "tcp_avr_frames",
]
