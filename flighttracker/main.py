from __future__ import annotations

import asyncio
import contextlib
import logging
import time

import httpx
from fastapi import FastAPI, Request

from flighttracker.api import api_router
from flighttracker.config import settings
from flighttracker.db import SessionLocal, init_db
from flighttracker.ingestors import (
    DatabaseSnapshotSink,
    FeedIngestor,
    FrameRecorder,
    HttpSnapshotSink,
    SnapshotSink,
)
from flighttracker.service import build_feed_config, build_store
from flighttracker.tracking import SnapshotEmitter

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger("flighttracker")


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown lifecycle."""

    init_db()
    logger.info("Database initialized")

    app.state.store = build_store(settings)
    app.state.emitter = SnapshotEmitter(
        altitude_unit=settings.altitude_unit, speed_unit=settings.speed_unit
    )

    if settings.enable_feed_ingestor:
        sink: SnapshotSink
        if settings.snapshot_sink == "http":
            app.state.collector_client = httpx.AsyncClient(
                base_url=settings.collector_base_url,
                timeout=settings.collector_timeout,
            )
            sink = HttpSnapshotSink(http_client=app.state.collector_client)
        else:
            sink = DatabaseSnapshotSink(SessionLocal)

        ingestor = FeedIngestor(
            store=app.state.store,
            emitter=app.state.emitter,
            sink=sink,
            config=build_feed_config(settings),
            recorder=FrameRecorder(SessionLocal) if settings.record_frames else None,
        )
        app.state.feed_ingestor = ingestor
        app.state.feed_task = asyncio.create_task(ingestor.run())
        logger.info(
            "Feed ingestor started for %s:%s", settings.feed_host, settings.feed_port
        )

    try:
        yield
    finally:
        task = getattr(app.state, "feed_task", None)
        if task:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        ingestor: FeedIngestor | None = getattr(app.state, "feed_ingestor", None)
        if ingestor and ingestor.recorder is not None:
            await ingestor.recorder.flush()

        client: httpx.AsyncClient | None = getattr(app.state, "collector_client", None)
        if client:
            await client.aclose()


app = FastAPI(title="Flight Tracker", lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log basic request information for observability."""

    start_time = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        "HTTP %s %s -> %s (%.2f ms)",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


app.include_router(api_router)


@app.get("/", summary="Root")
def read_root() -> dict[str, str]:
    """Basic root endpoint for quick verification."""

    return {"message": "Flight tracker is running"}
