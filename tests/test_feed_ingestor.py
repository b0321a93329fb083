import asyncio
import contextlib
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from flighttracker.domain.messages import (
    AirbornePosition,
    AirborneVelocity,
    ClassifiedMessage,
    Identification,
    Parity,
)
from flighttracker.ingestors import (
    EMIT_PERIODIC,
    DatabaseSnapshotSink,
    FeedConfig,
    FeedIngestor,
    FrameRecorder,
    HttpSnapshotSink,
    SnapshotSinkError,
    iterable_source,
    recorded_frame_source,
)
from flighttracker.models.aircraft import ExternalRecord
from flighttracker.tracking import SnapshotEmitter, TrackStore

T0 = datetime(2024, 5, 3, 19, 40, tzinfo=timezone.utc)

IDENTIFICATION = "*8D4840D6202CC371C32CE0576098;"
POSITION_EVEN = "*8D40621D58C382D690C8AC2863A7;"
POSITION_ODD = "*8D40621D58C386435CC412692AD6;"


class ListSink:
    def __init__(self):
        self.records: list[ExternalRecord] = []

    async def write(self, records):
        self.records.extend(records)


class FailingSink:
    async def write(self, records):
        raise SnapshotSinkError("collector down")


def _ingestor(sink, **config):
    return FeedIngestor(
        store=TrackStore(),
        emitter=SnapshotEmitter(),
        sink=sink,
        config=FeedConfig(**config),
    )


def _at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def _position(encode, parity, seconds, lat=52.3, lon=4.76):
    cpr_lat, cpr_lon = encode(lat, lon, parity)
    return AirbornePosition(
        parity=Parity(parity),
        cpr_lat=cpr_lat,
        cpr_lon=cpr_lon,
        timestamp=_at(seconds),
        altitude=38000,
    )


@pytest.fixture
def session_factory(tmp_path):
    import flighttracker.db as db
    import flighttracker.db_models  # noqa: F401

    engine = create_engine(
        f"sqlite:///{tmp_path}/feed.db", connect_args={"check_same_thread": False}
    )
    db.Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.mark.anyio
async def test_single_aircraft_flush_emits_one_complete_record(cpr_encode):
    sink = ListSink()
    ingestor = _ingestor(sink, emit_mode=EMIT_PERIODIC, snapshot_interval=3600.0)

    messages = [
        (_position(cpr_encode, Parity.EVEN, 0), _at(0)),
        (_position(cpr_encode, Parity.ODD, 3), _at(3)),
        (Identification(callsign="KLM123 "), _at(4)),
        (AirborneVelocity(ground_speed=450.0, heading=270.0, vertical_rate=0), _at(5)),
    ]
    for message, timestamp in messages:
        await ingestor.handle_message(
            ClassifiedMessage(address="4840D6", message=message, downlink_format=17),
            timestamp,
        )

    assert sink.records == []

    await ingestor.flush()

    assert len(sink.records) == 1
    record = sink.records[0]
    assert record.icao == "4840D6"
    assert record.callsign == "KLM123"
    assert record.latitude == pytest.approx(52.3, abs=1e-4)
    assert record.longitude == pytest.approx(4.76, abs=1e-4)
    assert record.altitude == 38000
    assert record.ground_speed == 450.0
    assert record.heading == 270.0
    assert record.observed_at == _at(5)
    assert ingestor.stats.messages_applied == 4


@pytest.mark.anyio
async def test_per_update_emission_is_throttled_per_aircraft(cpr_encode):
    sink = ListSink()
    ingestor = _ingestor(sink, min_emit_interval=10.0)

    for second in range(25):
        parity = Parity.EVEN if second % 2 == 0 else Parity.ODD
        await ingestor.handle_message(
            ClassifiedMessage(address="4840D6", message=_position(cpr_encode, parity, second)),
            _at(second),
        )

    assert [record.observed_at for record in sink.records] == [_at(1), _at(11), _at(21)]
    assert ingestor.stats.snapshots_emitted == 3


@pytest.mark.anyio
async def test_per_update_can_emit_without_position():
    sink = ListSink()
    ingestor = _ingestor(sink, emit_requires_position=False)

    await ingestor.handle_message(
        ClassifiedMessage(address="A1B2C3", message=Identification(callsign="DAL42")), _at(0)
    )

    assert [record.callsign for record in sink.records] == ["DAL42"]


@pytest.mark.anyio
async def test_periodic_emission_follows_frame_time(cpr_encode):
    sink = ListSink()
    ingestor = _ingestor(sink, emit_mode=EMIT_PERIODIC, snapshot_interval=10.0)

    for second in range(21):
        parity = Parity.EVEN if second % 2 == 0 else Parity.ODD
        await ingestor.handle_message(
            ClassifiedMessage(address="4840D6", message=_position(cpr_encode, parity, second)),
            _at(second),
        )

    assert [record.observed_at for record in sink.records] == [_at(10), _at(20)]


@pytest.mark.anyio
async def test_stale_tracks_are_evicted_on_frame_time():
    sink = ListSink()
    ingestor = _ingestor(sink, eviction_interval=5.0)

    await ingestor.handle_message(
        ClassifiedMessage(address="AAAAAA", message=Identification(callsign="OLD")), _at(0)
    )
    await ingestor.handle_message(
        ClassifiedMessage(address="BBBBBB", message=Identification(callsign="NEW")), _at(100)
    )

    assert "AAAAAA" not in ingestor.store
    assert "BBBBBB" in ingestor.store
    assert ingestor.stats.tracks_evicted == 1


@pytest.mark.anyio
async def test_run_over_frame_source_decodes_real_frames():
    sink = ListSink()
    ingestor = FeedIngestor(
        store=TrackStore(),
        emitter=SnapshotEmitter(),
        sink=sink,
        frame_source=iterable_source(
            [POSITION_ODD, POSITION_EVEN, "not a frame", "", IDENTIFICATION]
        ),
        stop_on_source=True,
    )

    await ingestor.run()

    assert ingestor.stats.frames_received == 5
    assert ingestor.stats.frames_invalid == 1
    assert ingestor.stats.messages_applied == 3
    assert len(ingestor.store) == 2
    assert ingestor.store.snapshot("4840D6").callsign == "KLM1023"

    positioned = [record for record in sink.records if record.icao == "40621D"]
    assert positioned
    assert positioned[-1].latitude == pytest.approx(52.2572, abs=1e-4)
    assert positioned[-1].longitude == pytest.approx(3.91937, abs=1e-4)
    assert positioned[-1].altitude == 38000


@pytest.mark.anyio
async def test_sink_failures_are_counted_not_raised(cpr_encode):
    ingestor = _ingestor(FailingSink())

    await ingestor.handle_message(
        ClassifiedMessage(address="4840D6", message=_position(cpr_encode, Parity.EVEN, 0)), _at(0)
    )
    await ingestor.handle_message(
        ClassifiedMessage(address="4840D6", message=_position(cpr_encode, Parity.ODD, 1)), _at(1)
    )

    assert ingestor.stats.sink_failures == 1
    assert ingestor.stats.snapshots_emitted == 0
    assert ingestor.store.snapshot("4840D6").position is not None


def test_unknown_emit_mode_is_rejected():
    with pytest.raises(ValueError):
        _ingestor(ListSink(), emit_mode="sometimes")


@pytest.mark.anyio
async def test_http_sink_posts_batch():
    captured = {}

    def handler(request: httpx.Request):
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(201, json={"stored": 1})

    async with httpx.AsyncClient(
        base_url="https://collector.test", transport=httpx.MockTransport(handler)
    ) as client:
        sink = HttpSnapshotSink(http_client=client)
        await sink.write([ExternalRecord(icao="4840D6", callsign="KLM123", observed_at=T0)])

    assert captured["path"] == "/api/v1/snapshots"
    body = captured["body"]
    assert body["records"][0]["icao"] == "4840D6"
    assert body["records"][0]["observed_at"].startswith("2024-05-03T19:40:00")


@pytest.mark.anyio
async def test_http_sink_raises_on_error_response():
    def handler(request: httpx.Request):
        return httpx.Response(503, text="unavailable")

    async with httpx.AsyncClient(
        base_url="https://collector.test", transport=httpx.MockTransport(handler)
    ) as client:
        sink = HttpSnapshotSink(http_client=client)
        with pytest.raises(SnapshotSinkError):
            await sink.write([ExternalRecord(icao="4840D6", observed_at=T0)])


@pytest.mark.anyio
async def test_http_sink_raises_on_connection_error():
    def handler(request: httpx.Request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(
        base_url="https://collector.test", transport=httpx.MockTransport(handler)
    ) as client:
        sink = HttpSnapshotSink(http_client=client)
        with pytest.raises(SnapshotSinkError):
            await sink.write([ExternalRecord(icao="4840D6", observed_at=T0)])


@pytest.mark.anyio
async def test_database_sink_persists_records(session_factory):
    from flighttracker.db_models import AircraftSnapshotRecord

    # Writes run retention cleanup, so keep the rows recent.
    observed = datetime.now(tz=timezone.utc).replace(microsecond=0)
    sink = DatabaseSnapshotSink(session_factory)
    await sink.write(
        [
            ExternalRecord(icao="4840d6", latitude=52.3, longitude=4.76, observed_at=observed),
            ExternalRecord(icao="40621D", observed_at=observed + timedelta(seconds=1)),
        ]
    )

    session = session_factory()
    try:
        rows = session.query(AircraftSnapshotRecord).order_by(AircraftSnapshotRecord.icao).all()
        assert [row.icao for row in rows] == ["40621D", "4840D6"]
        assert rows[1].latitude == pytest.approx(52.3)
        assert rows[1].observed_at == observed.replace(tzinfo=None)
    finally:
        session.close()


@pytest.mark.anyio
async def test_recorded_frames_replay_to_the_same_position(session_factory):
    recorder = FrameRecorder(session_factory, batch_size=2)
    live = FeedIngestor(
        store=TrackStore(),
        emitter=SnapshotEmitter(),
        frame_source=iterable_source([POSITION_ODD, POSITION_EVEN, IDENTIFICATION]),
        stop_on_source=True,
        recorder=recorder,
    )
    await live.run()
    assert recorder.pending == 0

    sink = ListSink()
    replay = FeedIngestor(
        store=TrackStore(),
        emitter=SnapshotEmitter(),
        sink=sink,
        config=FeedConfig(emit_mode=EMIT_PERIODIC, snapshot_interval=3600.0),
        frame_source=recorded_frame_source(session_factory, batch_size=2),
        stop_on_source=True,
    )
    await replay.run()

    live_track = live.store.snapshot("40621D")
    replayed_track = replay.store.snapshot("40621D")
    assert replay.stats.frames_received == 3
    assert replayed_track.position.latitude == pytest.approx(live_track.position.latitude)
    assert replayed_track.position.longitude == pytest.approx(live_track.position.longitude)
    assert [record.icao for record in sink.records] == ["40621D"]


@pytest.mark.anyio
async def test_replies_with_parity_addresses_do_not_create_aircraft():
    ingestor = FeedIngestor(
        store=TrackStore(),
        emitter=SnapshotEmitter(),
        sink=ListSink(),
        config=FeedConfig(emit_requires_position=False),
        frame_source=iterable_source(
            [
                "*20000F1F684A6C;",
                "*02E197B00179C3;",
                "*A0001838CA3E51F0A8000047A36A;",
            ]
        ),
        stop_on_source=True,
    )

    await ingestor.run()

    stats = ingestor.store.statistics()
    assert len(ingestor.store) == 0
    assert ingestor.sink.records == []
    assert ingestor.stats.messages_applied == 0
    assert stats.ignored_messages == 3
    assert sum(stats.unknown_by_downlink_format.values()) == 3


@pytest.mark.anyio
async def test_source_is_read_again_without_stop_on_source():
    ingestor = FeedIngestor(
        store=TrackStore(),
        emitter=SnapshotEmitter(),
        frame_source=iterable_source([IDENTIFICATION]),
    )

    task = asyncio.create_task(ingestor.run())
    try:
        for _ in range(100):
            if ingestor.stats.frames_received >= 2:
                break
            await asyncio.sleep(0.05)
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    assert ingestor.stats.frames_received >= 2
    assert len(ingestor.store) == 1
