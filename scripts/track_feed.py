"""Run the tracker against a feed and print aircraft snapshots.

Usage examples:
    python scripts/track_feed.py tcp localhost 30002
    cat frames.txt | python scripts/track_feed.py stdin
    python scripts/track_feed.py --json replay --since 2024-05-03T19:00:00
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime

from flighttracker.config import settings
from flighttracker.db import SessionLocal, init_db
from flighttracker.ingestors import (
    EMIT_PER_UPDATE,
    FeedIngestor,
    FrameRecorder,
    recorded_frame_source,
    stream_source,
)
from flighttracker.models.aircraft import ExternalRecord
from flighttracker.service import build_feed_config, build_store
from flighttracker.tracking import SnapshotEmitter


class PrintSink:
    """Write snapshots to stdout as CSV rows or JSON lines."""

    def __init__(self, *, as_json: bool = False) -> None:
        self.as_json = as_json

    async def write(self, records: list[ExternalRecord]) -> None:
        for record in records:
            if self.as_json:
                print(record.model_dump_json())
            else:
                print(
                    ",".join(
                        "" if value is None else str(value)
                        for value in (
                            record.observed_at.isoformat(),
                            record.icao,
                            record.callsign,
                            record.latitude,
                            record.longitude,
                            record.altitude,
                        )
                    )
                )
        sys.stdout.flush()


def _apply_overrides(args) -> None:
    if args.expire is not None:
        settings.stale_window = args.expire
    if args.pairing_window is not None:
        settings.pairing_window = args.pairing_window
    if args.min_emit_interval is not None:
        settings.min_emit_interval = args.min_emit_interval
    settings.emit_mode = EMIT_PER_UPDATE


def _build_ingestor(args, **kwargs) -> FeedIngestor:
    _apply_overrides(args)
    config = build_feed_config(settings)
    recorder = None
    if getattr(args, "record", False):
        init_db()
        recorder = FrameRecorder(SessionLocal)
    return FeedIngestor(
        store=build_store(settings),
        emitter=SnapshotEmitter(
            altitude_unit=settings.altitude_unit, speed_unit=settings.speed_unit
        ),
        sink=PrintSink(as_json=args.json),
        config=config,
        recorder=recorder,
        **kwargs,
    )


def cmd_tcp(args) -> None:
    settings.feed_host = args.host
    settings.feed_port = args.port
    ingestor = _build_ingestor(args)
    asyncio.run(ingestor.run())


def cmd_stdin(args) -> None:
    ingestor = _build_ingestor(
        args,
        frame_source=stream_source(sys.stdin),
        stop_on_source=True,
        wall_clock_housekeeping=True,
    )
    asyncio.run(ingestor.run())


def cmd_replay(args) -> None:
    init_db()
    since = datetime.fromisoformat(args.since) if args.since else None
    ingestor = _build_ingestor(
        args,
        frame_source=recorded_frame_source(
            SessionLocal, batch_size=args.batch_size, since=since
        ),
        stop_on_source=True,
    )
    asyncio.run(ingestor.run())
    stats = ingestor.store.statistics()
    sys.stderr.write(
        f"# {stats.num_messages} messages total, {len(ingestor.store)} aircraft tracked\n"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Track aircraft via ADS-B")
    parser.add_argument(
        "-e",
        "--expire",
        type=float,
        help="Number of seconds before removing stale aircraft",
    )
    parser.add_argument("--pairing-window", type=float, help="CPR pairing window in seconds")
    parser.add_argument(
        "--min-emit-interval",
        type=float,
        help="Minimum seconds between two rows for the same aircraft",
    )
    parser.add_argument("--json", action="store_true", help="Print JSON lines instead of CSV")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    tcp_cmd = sub.add_parser("tcp", help="Read AVR frames from a TCP server")
    tcp_cmd.add_argument("host", help="Feed host")
    tcp_cmd.add_argument("port", type=int, nargs="?", default=30002, help="Feed port")
    tcp_cmd.add_argument("--record", action="store_true", help="Record raw frames for replay")
    tcp_cmd.set_defaults(func=cmd_tcp)

    stdin_cmd = sub.add_parser("stdin", help="Read AVR frames from stdin")
    stdin_cmd.add_argument("--record", action="store_true", help="Record raw frames for replay")
    stdin_cmd.set_defaults(func=cmd_stdin)

    replay_cmd = sub.add_parser("replay", help="Replay frames recorded in the database")
    replay_cmd.add_argument("--since", help="Only frames at or after this ISO timestamp")
    replay_cmd.add_argument("--batch-size", type=int, default=10000, help="Rows per query")
    replay_cmd.set_defaults(func=cmd_replay)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        stream=sys.stderr,
    )
    try:
        args.func(args)
    except KeyboardInterrupt:
        sys.stderr.write("Interrupted.\n")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
