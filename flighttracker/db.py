"""Database configuration and helpers for the flight tracker."""

from __future__ import annotations

import logging
import os
from datetime import date, timedelta
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, func
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from flighttracker.config import settings

DATABASE_URL = os.getenv("FLIGHTTRACKER_DB_URL", "sqlite:///./flighttracker.db")
CLEANUP_STATE_FILE = Path(
    os.getenv(
        "FLIGHTTRACKER_RETENTION_STATE_FILE",
        "/var/lib/flighttracker/retention_cleanup_state",
    )
)

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

logger = logging.getLogger("flighttracker.db")


def _load_last_cleanup_date() -> date | None:
    """Load the last cleanup date from disk if present."""

    try:
        if not CLEANUP_STATE_FILE.exists():
            return None

        stored = CLEANUP_STATE_FILE.read_text().strip()
        if not stored:
            return None

        return date.fromisoformat(stored)
    except (OSError, ValueError) as exc:
        logger.warning(
            "Failed to load last cleanup date from %s: %s", CLEANUP_STATE_FILE, exc
        )
        return None


def _persist_last_cleanup_date(value: date) -> None:
    """Persist the last cleanup date to disk for reuse across restarts."""

    try:
        CLEANUP_STATE_FILE.parent.mkdir(parents=True, exist_ok=True)
        CLEANUP_STATE_FILE.write_text(value.isoformat())
    except OSError as exc:
        logger.warning(
            "Failed to persist cleanup date to %s: %s", CLEANUP_STATE_FILE, exc
        )


_last_cleanup_date: date | None = _load_last_cleanup_date()


def get_db() -> Generator:
    """Yield a SQLAlchemy session and ensure it is closed."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create database tables if they do not exist."""

    import flighttracker.db_models  # noqa: F401 - models are imported for side effects

    Base.metadata.create_all(bind=engine)


def maybe_cleanup_old_records(db: Session) -> None:
    """
    Delete old snapshot and raw frame rows past the retention window.

    - Only run at most once per UTC day.
    - Use date-based comparison, ignoring time-of-day.
    - Fail-soft: log on error but never break the caller's normal write.
    """

    global _last_cleanup_date

    try:
        today = date.today()
        if _last_cleanup_date == today:
            return

        retention_days = max(settings.retention_days, 1)
        cutoff_str = (today - timedelta(days=retention_days)).isoformat()

        import flighttracker.db_models as models

        old_snapshots_q = db.query(models.AircraftSnapshotRecord.id).filter(
            func.date(models.AircraftSnapshotRecord.observed_at) < cutoff_str
        )
        old_frames_q = db.query(models.RawFrameRecord.id).filter(
            func.date(models.RawFrameRecord.timestamp) < cutoff_str
        )

        if old_snapshots_q.limit(1).first() is None and old_frames_q.limit(1).first() is None:
            _last_cleanup_date = today
            _persist_last_cleanup_date(today)
            return

        db.query(models.AircraftSnapshotRecord).filter(
            func.date(models.AircraftSnapshotRecord.observed_at) < cutoff_str
        ).delete(synchronize_session=False)

        db.query(models.RawFrameRecord).filter(
            func.date(models.RawFrameRecord.timestamp) < cutoff_str
        ).delete(synchronize_session=False)

        db.commit()
        _last_cleanup_date = today
        _persist_last_cleanup_date(today)
    except Exception as exc:  # pragma: no cover - logged, never raised
        db.rollback()
        logger.warning("Retention cleanup failed: %s", exc)
