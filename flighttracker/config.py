"""Configuration settings for the flight tracker service."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger("flighttracker.config")


def _get_bool(env_var: str, default: bool = False) -> bool:
    """Parse an environment variable into a boolean with a default."""

    value = os.getenv(env_var)
    if value is None:
        return default

    return value.lower() in {"1", "true", "yes", "on"}


def _get_optional_float(env_var: str) -> float | None:
    value = os.getenv(env_var)
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring non-numeric value for %s: %r", env_var, value)
        return None


@dataclass
class Settings:
    """Application configuration loaded from environment variables."""

    environment: str = os.getenv("FLIGHTTRACKER_ENV", "local")
    log_level: str = os.getenv("FLIGHTTRACKER_LOG_LEVEL", "INFO")
    retention_days: int = int(os.getenv("FLIGHTTRACKER_RETENTION_DAYS", "7"))

    # Feed (dump1090-style AVR over TCP)
    enable_feed_ingestor: bool = _get_bool("FLIGHTTRACKER_ENABLE_FEED")
    feed_host: str = os.getenv("FLIGHTTRACKER_FEED_HOST", "localhost")
    feed_port: int = int(os.getenv("FLIGHTTRACKER_FEED_PORT", "30002"))
    record_frames: bool = _get_bool("FLIGHTTRACKER_RECORD_FRAMES")

    # Tracking windows, in seconds
    pairing_window: float = float(os.getenv("FLIGHTTRACKER_PAIRING_WINDOW", "10.0"))
    stale_window: float = float(os.getenv("FLIGHTTRACKER_STALE_WINDOW", "60.0"))
    local_decode_freshness: float = float(
        os.getenv("FLIGHTTRACKER_LOCAL_DECODE_FRESHNESS", "30.0")
    )
    eviction_interval: float = float(os.getenv("FLIGHTTRACKER_EVICTION_INTERVAL", "5.0"))

    # Receiver location, used to disambiguate surface positions
    receiver_lat: float | None = _get_optional_float("FLIGHTTRACKER_RECEIVER_LAT")
    receiver_lon: float | None = _get_optional_float("FLIGHTTRACKER_RECEIVER_LON")

    # Snapshot emission
    emit_mode: str = os.getenv("FLIGHTTRACKER_EMIT_MODE", "per_update")
    snapshot_interval: float = float(os.getenv("FLIGHTTRACKER_SNAPSHOT_INTERVAL", "10.0"))
    min_emit_interval: float = float(os.getenv("FLIGHTTRACKER_MIN_EMIT_INTERVAL", "10.0"))
    emit_requires_position: bool = _get_bool(
        "FLIGHTTRACKER_EMIT_REQUIRES_POSITION", default=True
    )
    altitude_unit: str = os.getenv("FLIGHTTRACKER_ALTITUDE_UNIT", "ft")
    speed_unit: str = os.getenv("FLIGHTTRACKER_SPEED_UNIT", "kt")
    stats_log_interval: int = int(os.getenv("FLIGHTTRACKER_STATS_LOG_INTERVAL", "10000"))

    # Snapshot sink: write to the local database or POST to a collector
    snapshot_sink: str = os.getenv("FLIGHTTRACKER_SNAPSHOT_SINK", "database")
    collector_base_url: str = os.getenv(
        "FLIGHTTRACKER_COLLECTOR_URL", "http://localhost:8000"
    )
    collector_timeout: float = float(os.getenv("FLIGHTTRACKER_COLLECTOR_TIMEOUT", "10.0"))

    @property
    def receiver_position(self) -> tuple[float, float] | None:
        if self.receiver_lat is None or self.receiver_lon is None:
            return None
        return (self.receiver_lat, self.receiver_lon)


settings = Settings()

__all__ = ["settings", "Settings"]
