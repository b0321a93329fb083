"""SQLAlchemy ORM models for the flight tracker."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from flighttracker.db import Base


class AircraftSnapshotRecord(Base):
    """Point-in-time snapshot of one aircraft track."""

    __tablename__ = "aircraft_snapshots"
    __table_args__ = (Index("ix_aircraft_snapshots_icao_observed_at", "icao", "observed_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    icao: Mapped[str] = mapped_column(String(6), index=True, nullable=False)
    callsign: Mapped[str | None] = mapped_column(String(8), nullable=True)
    squawk: Mapped[str | None] = mapped_column(String(4), nullable=True)
    category: Mapped[int | None] = mapped_column(Integer, nullable=True)

    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    position_method: Mapped[str | None] = mapped_column(String(8), nullable=True)
    position_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    altitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    altitude_unit: Mapped[str] = mapped_column(String(2), nullable=False, default="ft")
    on_ground: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    ground_speed: Mapped[float | None] = mapped_column(Float, nullable=True)
    heading: Mapped[float | None] = mapped_column(Float, nullable=True)
    vertical_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    speed_unit: Mapped[str] = mapped_column(String(4), nullable=False, default="kt")
    speed_type: Mapped[str | None] = mapped_column(String(16), nullable=True)

    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    observed_at: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class RawFrameRecord(Base):
    """Raw Mode S frame as received, kept for replay."""

    __tablename__ = "raw_frames"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)
    data: Mapped[str] = mapped_column(String(28), nullable=False)
