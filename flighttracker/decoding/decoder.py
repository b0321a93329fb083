"""Adapter around pyModeS turning raw Mode S frames into plain field dicts.

The bit-level parsing is owned by pyModeS. This module only validates the
frame, picks the pyModeS calls that apply to the frame's downlink format and
type code, and returns a flat ``dict`` that the classifier maps onto the
typed message variants.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

import pyModeS as pms

logger = logging.getLogger("flighttracker.decoding.decoder")

_HEX_RE = re.compile(r"^[0-9A-Fa-f]+$")
_SHORT_FRAME_LEN = 14
_LONG_FRAME_LEN = 28
_AVR_TIMESTAMP_LEN = 12

EXTENDED_SQUITTER_DFS = {17, 18}
IDENTITY_REPLY_DFS = {5, 21}


class FrameDecodeError(ValueError):
    """Raised when a raw frame cannot be turned into a decoded message."""


def parse_avr_line(line: str) -> str | None:
    """Extract the hex payload from an AVR text line.

    Accepts ``*<hex>;``, ``@<12 hex timestamp><hex>;`` and bare hex. Blank
    lines and ``#`` comments return ``None``.
    """

    cleaned = line.strip()
    if not cleaned or cleaned.startswith("#"):
        return None

    if cleaned.endswith(";"):
        cleaned = cleaned[:-1]
    if cleaned.startswith("*"):
        cleaned = cleaned[1:]
    elif cleaned.startswith("@"):
        cleaned = cleaned[1 + _AVR_TIMESTAMP_LEN :]

    if not _HEX_RE.match(cleaned):
        raise FrameDecodeError(f"Frame is not hexadecimal: {line.strip()!r}")
    if len(cleaned) not in {_SHORT_FRAME_LEN, _LONG_FRAME_LEN}:
        raise FrameDecodeError(
            f"Unexpected frame length {len(cleaned)} for {line.strip()!r}"
        )
    return cleaned.upper()


def _cpr_fields(msg: str) -> dict[str, int]:
    me = pms.hex2bin(msg)[32:88]
    return {
        "oe_flag": int(me[21]),
        "cpr_lat": pms.bin2int(me[22:39]),
        "cpr_lon": pms.bin2int(me[39:56]),
    }


def _extended_squitter_fields(msg: str, tc: int | None) -> dict[str, Any]:
    if tc is None:
        return {}

    if 1 <= tc <= 4:
        return {
            "callsign": pms.adsb.callsign(msg),
            "category": pms.adsb.category(msg),
        }

    if 5 <= tc <= 8:
        fields: dict[str, Any] = _cpr_fields(msg)
        velocity = pms.adsb.surface_velocity(msg)
        if velocity is not None:
            fields["ground_speed"] = velocity[0]
            fields["track"] = velocity[1]
        return fields

    if 9 <= tc <= 18 or 20 <= tc <= 22:
        fields = _cpr_fields(msg)
        fields["altitude"] = pms.adsb.altitude(msg)
        return fields

    if tc == 19:
        velocity = pms.adsb.airborne_velocity(msg, source=True)
        if velocity is None:
            return {}
        speed, angle, vertical_rate, speed_tag, _direction, rate_source = velocity
        return {
            "ground_speed": speed,
            "heading": angle,
            "vertical_rate": vertical_rate,
            "speed_tag": speed_tag,
            "vertical_rate_source": rate_source,
        }

    return {}


def decode_frame(msg: str, timestamp: datetime) -> dict[str, Any]:
    """Decode a hex Mode S frame into a flat field dict.

    Extended squitters (DF17/18) must pass the CRC check. Frames whose
    downlink format carries nothing the tracker uses are still returned with
    their ``df`` so callers can count them.
    """

    try:
        df = pms.df(msg)
        record: dict[str, Any] = {"df": df, "timestamp": timestamp, "raw": msg}

        if df in EXTENDED_SQUITTER_DFS:
            if len(msg) != _LONG_FRAME_LEN:
                raise FrameDecodeError(f"Extended squitter too short: {msg}")
            if pms.crc(msg) != 0:
                raise FrameDecodeError(f"CRC check failed: {msg}")
            tc = pms.typecode(msg)
            record["icao"] = pms.icao(msg)
            record["tc"] = tc
            record.update(_extended_squitter_fields(msg, tc))
        elif df in IDENTITY_REPLY_DFS:
            record["icao"] = pms.icao(msg)
            record["squawk"] = pms.idcode(msg)
        else:
            icao = pms.icao(msg) if df in {0, 4, 11, 16, 20} else None
            record["icao"] = icao
    except FrameDecodeError:
        raise
    except (ValueError, TypeError, IndexError, RuntimeError) as exc:
        raise FrameDecodeError(f"pyModeS failed on {msg}: {exc}") from exc

    if record.get("icao"):
        record["icao"] = str(record["icao"]).upper()
    return record


__all__ = ["FrameDecodeError", "decode_frame", "parse_avr_line"]
