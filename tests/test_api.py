from datetime import datetime, timedelta, timezone

from fastapi import FastAPI
from fastapi.testclient import TestClient

from flighttracker.api import api_router
from flighttracker.domain.messages import AirborneVelocity, Identification
from flighttracker.main import app


def test_healthz_and_root():
    with TestClient(app) as client:
        health = client.get("/healthz").json()
        assert health["status"] == "ok"
        assert health["feed"] == "disabled"
        assert health["tracked_aircraft"] == 0
        assert client.get("/").status_code == 200


def test_aircraft_endpoints_read_live_store():
    now = datetime.now(tz=timezone.utc)
    with TestClient(app) as client:
        store = client.app.state.store
        store.apply("4840D6", Identification(callsign="KLM123_"), now, downlink_format=17)
        store.apply("4840D6", AirborneVelocity(450.0, 270.0, 0), now, downlink_format=17)
        store.apply(
            "ABCDEF", Identification(callsign="OLD"), now - timedelta(hours=1), downlink_format=17
        )

        listed = client.get("/api/v1/aircraft")
        assert listed.status_code == 200
        assert {item["icao"] for item in listed.json()} >= {"4840D6", "ABCDEF"}

        recent = client.get("/api/v1/aircraft", params={"within_seconds": 60})
        assert [item["icao"] for item in recent.json()] == ["4840D6"]

        single = client.get("/api/v1/aircraft/4840d6")
        assert single.status_code == 200
        body = single.json()
        assert body["callsign"] == "KLM123"
        assert body["ground_speed"] == 450.0
        assert body["speed_unit"] == "kt"

        assert client.get("/api/v1/aircraft/000000").status_code == 404

        stats = client.get("/api/v1/stats").json()
        assert stats["tracked_aircraft"] >= 2
        assert stats["messages_by_kind"]["Identification"] >= 2
        assert stats["messages_by_downlink_format"]["17"] >= 3


def test_aircraft_endpoints_without_store():
    bare = FastAPI()
    bare.include_router(api_router)
    client = TestClient(bare)

    assert client.get("/api/v1/aircraft").status_code == 503


def test_snapshot_collection_round_trip():
    # Inside the retention window, since storing a batch also runs cleanup.
    observed = datetime.now(tz=timezone.utc).replace(microsecond=0) - timedelta(hours=1)
    payload = {
        "records": [
            {
                "icao": "c0ffee",
                "callsign": "ACA101",
                "latitude": 45.5,
                "longitude": -73.6,
                "position_method": "global",
                "altitude": 12000,
                "observed_at": observed.isoformat(),
            },
            {
                "icao": "C0FFEE",
                "callsign": "ACA101",
                "latitude": 45.6,
                "longitude": -73.5,
                "position_method": "local",
                "altitude": 12500,
                "observed_at": (observed + timedelta(seconds=10)).isoformat(),
            },
        ]
    }

    with TestClient(app) as client:
        created = client.post("/api/v1/snapshots", json=payload)
        assert created.status_code == 201
        assert created.json() == {"stored": 2}

        listed = client.get("/api/v1/snapshots", params={"icao": "c0ffee"})
        assert listed.status_code == 200
        records = listed.json()
        assert [record["altitude"] for record in records] == [12500, 12000]
        assert records[0]["position_method"] == "local"

        since = client.get(
            "/api/v1/snapshots",
            params={"icao": "C0FFEE", "since": (observed + timedelta(seconds=5)).isoformat()},
        )
        assert len(since.json()) == 1


def test_snapshot_collection_rejects_invalid_records():
    with TestClient(app) as client:
        response = client.post(
            "/api/v1/snapshots", json={"records": [{"icao": "C0FFEE", "latitude": "north"}]}
        )

    assert response.status_code == 422
