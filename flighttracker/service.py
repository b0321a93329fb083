"""Builders that turn settings into tracker components."""

from __future__ import annotations

from flighttracker.config import Settings
from flighttracker.ingestors.feed import FeedConfig
from flighttracker.tracking import LatLon, TrackStore


def build_store(config: Settings) -> TrackStore:
    """Create a track store with the windows from ``config``."""

    receiver = config.receiver_position
    return TrackStore(
        pairing_window=config.pairing_window,
        stale_window=config.stale_window,
        local_decode_freshness=config.local_decode_freshness,
        receiver_position=LatLon(*receiver) if receiver else None,
    )


def build_feed_config(config: Settings) -> FeedConfig:
    return FeedConfig(
        host=config.feed_host,
        port=config.feed_port,
        emit_mode=config.emit_mode,
        min_emit_interval=config.min_emit_interval,
        snapshot_interval=config.snapshot_interval,
        eviction_interval=config.eviction_interval,
        emit_requires_position=config.emit_requires_position,
        stats_log_interval=config.stats_log_interval,
    )


__all__ = ["build_feed_config", "build_store"]
