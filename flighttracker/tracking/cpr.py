"""Compact Position Reporting (CPR) decoding.

ADS-B position messages carry latitude and longitude as 17-bit fractions of
a CPR zone. Two encodings alternate: even frames divide a hemisphere span
into 60 latitude zones, odd frames into 59. Recovering an absolute position
needs either

* a global decode from one even and one odd frame received close together,
  which fixes the latitude zone index from the difference of the two
  fractions, or
* a local decode from a single frame plus a reference position known to lie
  within half a zone of the aircraft.

Airborne frames span 360 degrees. Surface frames span 90 degrees, so even a
global decode leaves a hemisphere/quadrant ambiguity that is settled with a
reference position (the receiver location or the last fix).

Resolution is about 5.1 m in latitude for airborne frames.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime

from flighttracker.domain.messages import Parity

NZ = 15
CPR_BITS = 17
CPR_MAX = 2**CPR_BITS
AIRBORNE_SPAN = 360.0
SURFACE_SPAN = 90.0
DEFAULT_PAIRING_WINDOW = 10.0


class PositionError(Exception):
    """Base class for CPR frames that cannot be turned into a position."""


class InconsistentZones(PositionError):
    """The two frames of a pair do not belong to the same latitude band."""


class NoReference(PositionError):
    """A decode that needs a reference position was attempted without one."""


class StaleFramePair(PositionError):
    """The two frames of a pair are further apart than the pairing window."""


class ParityMismatch(PositionError):
    """Frames were passed in the wrong parity slots or mix airborne and surface."""


@dataclass(frozen=True)
class LatLon:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class PositionFrame:
    """Raw CPR coordinates of one position message, as retained for pairing."""

    parity: Parity
    cpr_lat: int
    cpr_lon: int
    timestamp: datetime
    surface: bool = False

    @property
    def span(self) -> float:
        return SURFACE_SPAN if self.surface else AIRBORNE_SPAN


def cpr_nl(latitude: float) -> int:
    """Number of longitude zones at ``latitude`` (the NL function).

    59 at the equator, falling to 1 above 87 degrees.
    """

    if math.isclose(latitude, 0.0, abs_tol=1e-12):
        return 59
    if math.isclose(abs(latitude), 87.0, abs_tol=1e-12):
        return 2
    if abs(latitude) > 87.0:
        return 1

    a = 1 - math.cos(math.pi / (2 * NZ))
    b = math.cos(math.pi / 180.0 * abs(latitude)) ** 2
    return int(math.floor(2 * math.pi / math.acos(1 - a / b)))


def _normalize_longitude(longitude: float) -> float:
    return (longitude + 180.0) % 360.0 - 180.0


def _angular_distance(a: float, b: float) -> float:
    return abs(_normalize_longitude(a - b))


def _seconds_apart(first: datetime, second: datetime) -> float:
    return abs((first - second).total_seconds())


def resolve_global(
    even_frame: PositionFrame,
    odd_frame: PositionFrame,
    *,
    pairing_window: float = DEFAULT_PAIRING_WINDOW,
    reference: LatLon | None = None,
) -> LatLon:
    """Decode an absolute position from an even/odd frame pair.

    The more recent frame determines the returned position. ``reference`` is
    only consulted for surface frames, where it is mandatory.
    """

    if even_frame.parity is not Parity.EVEN or odd_frame.parity is not Parity.ODD:
        raise ParityMismatch("resolve_global needs one even and one odd frame")
    if even_frame.surface != odd_frame.surface:
        raise ParityMismatch("cannot pair an airborne frame with a surface frame")

    gap = _seconds_apart(even_frame.timestamp, odd_frame.timestamp)
    if gap > pairing_window:
        raise StaleFramePair(
            f"frames are {gap:.1f}s apart, pairing window is {pairing_window:.1f}s"
        )

    surface = even_frame.surface
    if surface and reference is None:
        raise NoReference("surface positions need a reference to resolve the quadrant")

    span = even_frame.span
    lat_even_cpr = even_frame.cpr_lat / CPR_MAX
    lon_even_cpr = even_frame.cpr_lon / CPR_MAX
    lat_odd_cpr = odd_frame.cpr_lat / CPR_MAX
    lon_odd_cpr = odd_frame.cpr_lon / CPR_MAX

    j = math.floor(59 * lat_even_cpr - 60 * lat_odd_cpr + 0.5)
    lat_even = (span / 60) * (j % 60 + lat_even_cpr)
    lat_odd = (span / 59) * (j % 59 + lat_odd_cpr)

    if surface:
        assert reference is not None
        if reference.latitude < 0:
            lat_even -= 90.0
            lat_odd -= 90.0
    else:
        if lat_even >= 270.0:
            lat_even -= 360.0
        if lat_odd >= 270.0:
            lat_odd -= 360.0

    if not (-90.0 <= lat_even <= 90.0 and -90.0 <= lat_odd <= 90.0):
        raise InconsistentZones(f"latitude out of range (j={j})")

    if cpr_nl(lat_even) != cpr_nl(lat_odd):
        raise InconsistentZones(
            f"even latitude {lat_even:.4f} and odd latitude {lat_odd:.4f} "
            "fall in different longitude zone bands"
        )

    use_odd = odd_frame.timestamp > even_frame.timestamp
    latitude = lat_odd if use_odd else lat_even
    nl = cpr_nl(latitude)
    ni = max(nl - (1 if use_odd else 0), 1)
    m = math.floor(lon_even_cpr * (nl - 1) - lon_odd_cpr * nl + 0.5)
    lon_cpr = lon_odd_cpr if use_odd else lon_even_cpr
    longitude = (span / ni) * (m % ni + lon_cpr)

    if surface:
        assert reference is not None
        candidates = [_normalize_longitude(longitude + k * 90.0) for k in range(4)]
        longitude = min(
            candidates, key=lambda lon: _angular_distance(lon, reference.longitude)
        )
    else:
        longitude = _normalize_longitude(longitude)

    return LatLon(latitude=latitude, longitude=longitude)


def resolve_local(frame: PositionFrame, reference: LatLon | None) -> LatLon:
    """Decode a single frame relative to a nearby reference position.

    The reference must lie within half a CPR zone of the aircraft (about
    180 NM for airborne frames, 45 NM for surface frames); the decode picks
    the zone instance nearest to it.
    """

    if reference is None:
        raise NoReference("local decode needs a reference position")

    i = int(frame.parity)
    span = frame.span
    lat_cpr = frame.cpr_lat / CPR_MAX
    lon_cpr = frame.cpr_lon / CPR_MAX

    dlat = span / (60 - i)
    j = math.floor(reference.latitude / dlat) + math.floor(
        0.5 + (reference.latitude % dlat) / dlat - lat_cpr
    )
    latitude = dlat * (j + lat_cpr)
    if not -90.0 <= latitude <= 90.0:
        raise InconsistentZones(f"local decode latitude {latitude:.4f} out of range")

    ni = max(cpr_nl(latitude) - i, 1)
    dlon = span / ni
    m = math.floor(reference.longitude / dlon) + math.floor(
        0.5 + (reference.longitude % dlon) / dlon - lon_cpr
    )
    longitude = _normalize_longitude(dlon * (m + lon_cpr))

    return LatLon(latitude=latitude, longitude=longitude)


__all__ = [
    "AIRBORNE_SPAN",
    "CPR_MAX",
    "DEFAULT_PAIRING_WINDOW",
    "InconsistentZones",
    "LatLon",
    "NZ",
    "NoReference",
    "ParityMismatch",
    "PositionError",
    "PositionFrame",
    "StaleFramePair",
    "SURFACE_SPAN",
    "cpr_nl",
    "resolve_global",
    "resolve_local",
]
