"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Constraints and indexes defined here.

Key concepts:
- The events table is append-only: rows are inserted, never updated or deleted.
- sessions is a small mutable header (label, model backfill, end timestamp).
- budget_config holds exactly one row (id = 1), enforced by a CHECK constraint.
- Every timestamp is stored in UTC and read back timezone-aware, even on
  SQLite, which has no native timezone support.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from runlens.events.types import EVENT_KINDS


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """DateTime that always round-trips as an aware UTC datetime.

    SQLite drops tzinfo on the way back; naive values read from the
    database are UTC by construction, so we re-attach it.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


_KIND_CHECK = "kind IN ({})".format(", ".join(f"'{k}'" for k in EVENT_KINDS))


class Session(Base):
    """One agent task — a bounded unit of activity.

    Learn: ended_at is set exactly once by close; model is backfilled from
    the first LLM event that names one, and never overwritten afterwards.
    """

    __tablename__ = "sessions"
    __table_args__ = (Index("idx_sessions_started_at", "started_at"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    label: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ended_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    meta: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    # Python attr is "meta" because "metadata" is reserved by SQLAlchemy.


class Event(Base):
    """Immutable fact within a session's activity log.

    Learn: The autoincrement id is the arrival order. recorded_at is assigned
    by the store at insert time — callers never supply it. Which optional
    columns are populated depends on the kind (see events.types).
    """

    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint(_KIND_CHECK, name="ck_events_kind"),
        Index("idx_events_session", "session_id", "id"),
        Index("idx_events_kind", "kind"),
        Index("idx_events_tool_name", "tool_name"),
        Index("idx_events_recorded", "recorded_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    tool_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    prompt_chars: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    response_chars: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    meta: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    recorded_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class BudgetConfig(Base):
    """Process-wide budget policy. Exactly one row, id = 1."""

    __tablename__ = "budget_config"
    __table_args__ = (CheckConstraint("id = 1", name="ck_budget_config_singleton"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    max_per_session_usd: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    max_per_day_usd: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    alert_threshold_pct: Mapped[float] = mapped_column(Float, nullable=False, default=80.0)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
