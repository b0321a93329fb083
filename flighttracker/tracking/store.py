"""In-memory store of aircraft tracks built from classified messages."""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import assert_never

from flighttracker.domain.messages import (
    AirbornePosition,
    AirborneVelocity,
    DecodedMessage,
    Identification,
    Other,
    PositionMessage,
    SpeedType,
    SurfacePosition,
    SurveillanceIdentity,
    VerticalRateSource,
)
from flighttracker.tracking.cpr import (
    DEFAULT_PAIRING_WINDOW,
    LatLon,
    PositionError,
    PositionFrame,
    resolve_global,
    resolve_local,
)
from flighttracker.tracking.pairing import CprPairing, PairingState

logger = logging.getLogger("flighttracker.tracking.store")

DEFAULT_STALE_WINDOW = 60.0
DEFAULT_LOCAL_DECODE_FRESHNESS = 30.0

# Downlink formats whose address is recovered from the parity field, so a
# corrupted frame yields a random address.
PARITY_ADDRESS_DFS = frozenset({0, 4, 5, 16, 20, 21})


class PositionMethod(str, Enum):
    GLOBAL = "global"
    LOCAL = "local"


@dataclass
class ResolvedPosition:
    latitude: float
    longitude: float
    resolved_at: datetime
    method: PositionMethod

    def as_latlon(self) -> LatLon:
        return LatLon(latitude=self.latitude, longitude=self.longitude)


@dataclass
class Velocity:
    """Last velocity report. Knots, degrees and ft/min as broadcast."""

    ground_speed: float | None
    heading: float | None
    vertical_rate: int | None
    speed_type: SpeedType = SpeedType.GROUND_SPEED
    vertical_rate_source: VerticalRateSource | None = None


@dataclass
class AircraftTrack:
    """Aggregated state of one aircraft."""

    address: str
    first_seen: datetime
    last_seen: datetime
    callsign: str | None = None
    category: int | None = None
    squawk: str | None = None
    altitude: int | None = None
    on_ground: bool | None = None
    position: ResolvedPosition | None = None
    velocity: Velocity | None = None
    message_count: int = 0
    pairing: CprPairing = field(default_factory=CprPairing, repr=False)


@dataclass(frozen=True)
class TrackUpdateResult:
    """Outcome of applying one message to the store."""

    address: str
    applied: bool
    created: bool = False
    position_updated: bool = False
    position_error: str | None = None


@dataclass
class StoreStatistics:
    """Counters describing what the store has seen so far."""

    num_messages: int = 0
    messages_by_kind: Counter = field(default_factory=Counter)
    messages_by_downlink_format: Counter = field(default_factory=Counter)
    unknown_by_downlink_format: Counter = field(default_factory=Counter)
    positions_by_method: Counter = field(default_factory=Counter)
    position_errors: Counter = field(default_factory=Counter)
    ignored_messages: int = 0
    tracks_created: int = 0
    tracks_evicted: int = 0
    most_recent_message_time: datetime | None = None
    first_message_real_time: float | None = None
    most_recent_message_real_time: float | None = None

    @property
    def messages_per_second(self) -> float | None:
        if self.first_message_real_time is None or self.most_recent_message_real_time is None:
            return None
        elapsed = self.most_recent_message_real_time - self.first_message_real_time
        if elapsed <= 0:
            return None
        return self.num_messages / elapsed


@dataclass
class _TrackEntry:
    track: AircraftTrack
    lock: threading.Lock = field(default_factory=threading.Lock)
    removed: bool = False


def _clean_callsign(raw: str) -> str | None:
    cleaned = raw.replace("_", " ").replace("#", " ").strip()
    return cleaned or None


class TrackStore:
    """Owns every aircraft track and applies messages to them.

    Updates to one address are serialized by a per-track lock, while updates
    to different addresses may proceed concurrently. Eviction takes the same
    per-track lock, so it never interleaves with an update of that track.
    Reads return deep copies.
    """

    def __init__(
        self,
        *,
        pairing_window: float = DEFAULT_PAIRING_WINDOW,
        stale_window: float = DEFAULT_STALE_WINDOW,
        local_decode_freshness: float = DEFAULT_LOCAL_DECODE_FRESHNESS,
        receiver_position: LatLon | None = None,
    ) -> None:
        self.pairing_window = pairing_window
        self.stale_window = stale_window
        self.local_decode_freshness = local_decode_freshness
        self.receiver_position = receiver_position
        self._tracks: dict[str, _TrackEntry] = {}
        self._lock = threading.Lock()
        self._stats = StoreStatistics()
        self._stats_lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tracks)

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, str):
            return False
        with self._lock:
            return address.upper() in self._tracks

    def apply(
        self,
        address: str,
        message: DecodedMessage,
        now: datetime,
        *,
        downlink_format: int | None = None,
    ) -> TrackUpdateResult:
        """Apply one message for ``address`` observed at ``now``."""

        address = address.upper()
        self._count_message(message, downlink_format, now)

        # Replies with a parity-recovered address only enrich aircraft already
        # known from extended squitters.
        may_create = not (
            isinstance(message, SurveillanceIdentity)
            or downlink_format in PARITY_ADDRESS_DFS
        )

        while True:
            entry, created = self._get_or_create(address, now, may_create)
            if entry is None:
                with self._stats_lock:
                    self._stats.ignored_messages += 1
                return TrackUpdateResult(address=address, applied=False)

            with entry.lock:
                if entry.removed:
                    # Evicted between lookup and lock; start over with a fresh entry.
                    continue
                result = self._apply_to_track(entry.track, message, now)

            if created:
                logger.debug("Tracking new aircraft %s", address)
            return TrackUpdateResult(
                address=address,
                applied=True,
                created=created,
                position_updated=result[0],
                position_error=result[1],
            )

    def evict_stale(self, now: datetime, window: float | None = None) -> list[str]:
        """Remove tracks not updated within ``window`` seconds of ``now``."""

        cutoff = now - timedelta(seconds=self.stale_window if window is None else window)
        removed: list[str] = []
        with self._lock:
            for address, entry in list(self._tracks.items()):
                with entry.lock:
                    if entry.track.last_seen < cutoff:
                        entry.removed = True
                        del self._tracks[address]
                        removed.append(address)

        if removed:
            with self._stats_lock:
                self._stats.tracks_evicted += len(removed)
            logger.debug("Evicted %s stale aircraft", len(removed))
        return removed

    def snapshot(self, address: str) -> AircraftTrack | None:
        """Return a point-in-time copy of one track, or ``None``."""

        with self._lock:
            entry = self._tracks.get(address.upper())
        if entry is None:
            return None
        return self._copy(entry)

    def all_snapshots(self) -> list[AircraftTrack]:
        """Return copies of every live track, ordered by address."""

        with self._lock:
            entries = [self._tracks[address] for address in sorted(self._tracks)]
        snapshots = [self._copy(entry) for entry in entries]
        return [track for track in snapshots if track is not None]

    def current_snapshots(self, now: datetime, interval: float) -> list[AircraftTrack]:
        """Return copies of tracks last seen within ``interval`` seconds of ``now``."""

        cutoff = now - timedelta(seconds=interval)
        return [track for track in self.all_snapshots() if track.last_seen >= cutoff]

    def statistics(self) -> StoreStatistics:
        with self._stats_lock:
            return copy.deepcopy(self._stats)

    def _copy(self, entry: _TrackEntry) -> AircraftTrack | None:
        with entry.lock:
            if entry.removed:
                return None
            return copy.deepcopy(entry.track)

    def _get_or_create(
        self, address: str, now: datetime, may_create: bool
    ) -> tuple[_TrackEntry | None, bool]:
        with self._lock:
            entry = self._tracks.get(address)
            if entry is not None:
                return entry, False
            if not may_create:
                return None, False
            entry = _TrackEntry(
                track=AircraftTrack(
                    address=address,
                    first_seen=now,
                    last_seen=now,
                    pairing=CprPairing(window=self.pairing_window),
                )
            )
            self._tracks[address] = entry

        with self._stats_lock:
            self._stats.tracks_created += 1
        return entry, True

    def _apply_to_track(
        self, track: AircraftTrack, message: DecodedMessage, now: datetime
    ) -> tuple[bool, str | None]:
        position_updated = False
        position_error: str | None = None

        match message:
            case Identification(callsign=callsign, category=category):
                track.callsign = _clean_callsign(callsign)
                track.category = category
            case AirbornePosition(altitude=altitude):
                if altitude is not None:
                    track.altitude = altitude
                track.on_ground = False
                position_updated, position_error = self._apply_position(track, message)
            case SurfacePosition(ground_speed=ground_speed, track=heading):
                track.on_ground = True
                if ground_speed is not None:
                    track.velocity = Velocity(
                        ground_speed=ground_speed, heading=heading, vertical_rate=None
                    )
                position_updated, position_error = self._apply_position(track, message)
            case AirborneVelocity():
                track.velocity = Velocity(
                    ground_speed=message.ground_speed,
                    heading=message.heading,
                    vertical_rate=message.vertical_rate,
                    speed_type=message.speed_type,
                    vertical_rate_source=message.vertical_rate_source,
                )
                track.on_ground = False
            case SurveillanceIdentity(squawk=squawk):
                track.squawk = squawk
            case Other():
                pass
            case _:
                assert_never(message)

        track.last_seen = max(track.last_seen, now)
        track.message_count += 1
        return position_updated, position_error

    def _apply_position(
        self, track: AircraftTrack, message: PositionMessage
    ) -> tuple[bool, str | None]:
        frame = PositionFrame(
            parity=message.parity,
            cpr_lat=message.cpr_lat,
            cpr_lon=message.cpr_lon,
            timestamp=message.timestamp,
            surface=isinstance(message, SurfacePosition),
        )
        if not track.pairing.push(frame):
            self._count_position_error("OutOfOrderFrame")
            return False, "OutOfOrderFrame"

        resolved_at = frame.timestamp
        try:
            pair = track.pairing.pair()
            if pair is not None:
                even, odd = pair
                resolved_at = max(even.timestamp, odd.timestamp)
                reference = self._surface_reference(track) if frame.surface else None
                resolved = resolve_global(
                    even, odd, pairing_window=self.pairing_window, reference=reference
                )
                method = PositionMethod.GLOBAL
            else:
                resolved = resolve_local(frame, self._local_reference(track, frame))
                method = PositionMethod.LOCAL
        except PositionError as exc:
            error_name = type(exc).__name__
            self._count_position_error(error_name)
            logger.debug(
                "No position for %s (%s, pairing=%s): %s",
                track.address,
                error_name,
                track.pairing.state.value,
                exc,
            )
            return False, error_name

        track.position = ResolvedPosition(
            latitude=resolved.latitude,
            longitude=resolved.longitude,
            resolved_at=resolved_at,
            method=method,
        )
        with self._stats_lock:
            self._stats.positions_by_method[method.value] += 1
        return True, None

    def _local_reference(self, track: AircraftTrack, frame: PositionFrame) -> LatLon | None:
        position = track.position
        if position is None:
            return None
        age = (frame.timestamp - position.resolved_at).total_seconds()
        if abs(age) > self.local_decode_freshness:
            return None
        return position.as_latlon()

    def _surface_reference(self, track: AircraftTrack) -> LatLon | None:
        if track.position is not None:
            return track.position.as_latlon()
        return self.receiver_position

    def _count_position_error(self, name: str) -> None:
        with self._stats_lock:
            self._stats.position_errors[name] += 1

    def _count_message(
        self, message: DecodedMessage, downlink_format: int | None, now: datetime
    ) -> None:
        real_now = time.monotonic()
        with self._stats_lock:
            stats = self._stats
            stats.num_messages += 1
            stats.messages_by_kind[type(message).__name__] += 1
            if downlink_format is not None:
                stats.messages_by_downlink_format[downlink_format] += 1
                if isinstance(message, Other):
                    stats.unknown_by_downlink_format[downlink_format] += 1
            if stats.most_recent_message_time is None or stats.most_recent_message_time < now:
                stats.most_recent_message_time = now
            if stats.first_message_real_time is None:
                stats.first_message_real_time = real_now
            stats.most_recent_message_real_time = real_now


__all__ = [
    "AircraftTrack",
    "DEFAULT_LOCAL_DECODE_FRESHNESS",
    "DEFAULT_STALE_WINDOW",
    "PARITY_ADDRESS_DFS",
    "PairingState",
    "PositionMethod",
    "ResolvedPosition",
    "StoreStatistics",
    "TrackStore",
    "TrackUpdateResult",
    "Velocity",
]
