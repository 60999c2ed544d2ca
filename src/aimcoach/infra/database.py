"""
AimCoach Training History Database.

Persistent storage for aim-trainer runs, generated training playlists and
conversation checkpoints.

Uses SQLite with SQLAlchemy ORM. DatabaseManager is synchronous; the
Sql* adapters at the bottom expose it through the async collaborator
interfaces by running each call in a worker thread.
"""

import asyncio
import json
import logging
import os
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar

import pandas as pd
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    func,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from aimcoach.core.constants import ActivitySourceName, Difficulty
from aimcoach.core.errors import DataSourceError
from aimcoach.core.schemas import ActivityRecord, ConversationState, Playlist, PlaylistScenario
from aimcoach.infra.sources import ActivitySource, CheckpointStore, PlaylistStore


def _utc_now() -> datetime:
    """Return current UTC time as a naive datetime (SQLite stores no offset)."""
    return datetime.now(UTC).replace(tzinfo=None)


def _to_db_time(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC for storage."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value


def _from_db_time(value: datetime) -> datetime:
    """Re-attach UTC to a stored naive datetime."""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


logger = logging.getLogger(__name__)

# Database configuration
DEFAULT_DB_PATH = Path.home() / ".aimcoach" / "aimcoach.db"
Base = declarative_base()

T = TypeVar("T")


# =============================================================================
# Database Models
# =============================================================================


class ActivityRun(Base):
    """A single scenario run imported from an aim trainer."""

    __tablename__ = "activity_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(100), nullable=False, index=True)
    source = Column(String(20), nullable=False, default=ActivitySourceName.KOVAAKS.value)
    scenario = Column(String(200), nullable=False)
    score = Column(Float, nullable=False, default=0.0)
    accuracy = Column(Float, nullable=False, default=0.0)
    duration_seconds = Column(Float)
    played_at = Column(DateTime, nullable=False)
    imported_at = Column(DateTime, default=_utc_now)

    __table_args__ = (
        Index("idx_run_user_played", "user_id", "played_at"),
        Index("idx_run_user_source", "user_id", "source"),
    )

    def to_record(self) -> ActivityRecord:
        return ActivityRecord(
            timestamp=_from_db_time(self.played_at),
            scenario=self.scenario,
            score=self.score,
            accuracy=self.accuracy,
            source=ActivitySourceName(self.source),
            duration_seconds=self.duration_seconds,
        )


class TrainingPlaylist(Base):
    """A generated training playlist. At most one is active per user."""

    __tablename__ = "training_playlists"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(100), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    scenarios_json = Column(Text, nullable=False, default="[]")
    target_weaknesses_json = Column(Text, nullable=False, default="[]")
    reasoning = Column(Text)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime, default=_utc_now)

    __table_args__ = (Index("idx_playlist_user_active", "user_id", "is_active"),)

    def to_playlist(self) -> Playlist:
        scenarios = [
            PlaylistScenario(
                name=s["name"],
                duration=int(s["duration"]),
                difficulty=Difficulty(s["difficulty"]),
                focus_skills=list(s.get("focus_skills", [])),
            )
            for s in json.loads(self.scenarios_json or "[]")
        ]
        return Playlist(
            id=self.id,
            user_id=self.user_id,
            title=self.title,
            description=self.description or "",
            scenarios=scenarios,
            target_weaknesses=json.loads(self.target_weaknesses_json or "[]"),
            reasoning=self.reasoning or "",
            is_active=bool(self.is_active),
            created_at=_from_db_time(self.created_at),
        )


class ConversationCheckpoint(Base):
    """Latest conversation state per thread (last write wins)."""

    __tablename__ = "conversation_checkpoints"

    thread_id = Column(String(200), primary_key=True)
    user_id = Column(String(100), nullable=False, index=True)
    state_json = Column(Text, nullable=False)
    message_count = Column(Integer, default=0)
    updated_at = Column(DateTime, default=_utc_now, onupdate=_utc_now)


# =============================================================================
# Database Manager
# =============================================================================


class DatabaseManager:
    """Manages database connections and operations."""

    def __init__(self, db_path: Path | str | None = None, echo: bool = False):
        """Initialize database connection."""
        if db_path is None:
            db_path = os.environ.get("AIMCOACH_DB_PATH", DEFAULT_DB_PATH)

        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Create engine with SQLite
        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            echo=echo,
            connect_args={"check_same_thread": False},
        )

        # Create session factory
        self.SessionLocal = sessionmaker(bind=self.engine)

        # Create tables if they don't exist
        Base.metadata.create_all(self.engine)

        logger.info(f"Database initialized at: {self.db_path}")

    def get_session(self) -> Session:
        """Get a database session."""
        return self.SessionLocal()

    # =========================================================================
    # Activity Operations
    # =========================================================================

    def add_activity(self, user_id: str, records: Iterable[ActivityRecord]) -> int:
        """
        Store aim-trainer runs for a user.

        Args:
            user_id: Owner of the runs
            records: Runs to insert

        Returns:
            Number of rows inserted
        """
        session = self.get_session()
        try:
            rows = [
                ActivityRun(
                    user_id=user_id,
                    source=ActivitySourceName(r.source).value,
                    scenario=r.scenario,
                    score=r.score,
                    accuracy=r.accuracy,
                    duration_seconds=r.duration_seconds,
                    played_at=_to_db_time(r.timestamp),
                )
                for r in records
            ]
            session.add_all(rows)
            session.commit()
            logger.info("Stored %d runs for user=%s", len(rows), user_id)
            return len(rows)
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to store activity: {e}")
            raise
        finally:
            session.close()

    def import_activity_csv(
        self,
        path: Path | str,
        user_id: str,
        source: ActivitySourceName = ActivitySourceName.KOVAAKS,
    ) -> int:
        """
        Import runs from a CSV export.

        Expected columns: timestamp, scenario, score, accuracy and an optional
        duration_seconds. Accuracy given as a percentage (0-100) is scaled to 0-1.

        Returns:
            Number of rows inserted
        """
        df = pd.read_csv(path)
        missing = {"timestamp", "scenario", "score", "accuracy"} - set(df.columns)
        if missing:
            raise ValueError(f"CSV is missing columns: {', '.join(sorted(missing))}")

        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
        df = df.dropna(subset=["timestamp", "scenario", "score"])
        df["accuracy"] = df["accuracy"].fillna(0.0).astype(float)
        if (df["accuracy"] > 1.0).any():
            df["accuracy"] = df["accuracy"] / 100.0
        if "duration_seconds" not in df.columns:
            df["duration_seconds"] = None

        records = [
            ActivityRecord(
                timestamp=row.timestamp.to_pydatetime(),
                scenario=str(row.scenario),
                score=float(row.score),
                accuracy=float(row.accuracy),
                source=source,
                duration_seconds=(
                    float(row.duration_seconds) if pd.notna(row.duration_seconds) else None
                ),
            )
            for row in df.itertuples(index=False)
        ]
        return self.add_activity(user_id, records)

    def _activity_query(self, session: Session, user_id: str, source: str | None):
        query = session.query(ActivityRun).filter(ActivityRun.user_id == user_id)
        if source is not None:
            query = query.filter(ActivityRun.source == source)
        return query

    def get_most_recent_activity(
        self, user_id: str, source: str | None = None
    ) -> ActivityRecord | None:
        """Get the latest run for a user."""
        session = self.get_session()
        try:
            row = (
                self._activity_query(session, user_id, source)
                .order_by(ActivityRun.played_at.desc())
                .first()
            )
            return row.to_record() if row else None
        finally:
            session.close()

    def get_activity_since(
        self, user_id: str, start: datetime, source: str | None = None
    ) -> list[ActivityRecord]:
        """Get runs played at or after start, newest first."""
        session = self.get_session()
        try:
            rows = (
                self._activity_query(session, user_id, source)
                .filter(ActivityRun.played_at >= _to_db_time(start))
                .order_by(ActivityRun.played_at.desc())
                .all()
            )
            return [r.to_record() for r in rows]
        finally:
            session.close()

    def count_activity_since(
        self, user_id: str, start: datetime, source: str | None = None
    ) -> int:
        """Count runs played at or after start."""
        session = self.get_session()
        try:
            return (
                self._activity_query(session, user_id, source)
                .filter(ActivityRun.played_at >= _to_db_time(start))
                .with_entities(func.count(ActivityRun.id))
                .scalar()
                or 0
            )
        finally:
            session.close()

    def has_activity(self, user_id: str, source: str | None = None) -> bool:
        """Whether the user has any stored run."""
        session = self.get_session()
        try:
            return self._activity_query(session, user_id, source).first() is not None
        finally:
            session.close()

    def get_recent_activity(
        self, user_id: str, limit: int = 20, source: str | None = None
    ) -> list[ActivityRecord]:
        """Get the most recent runs, newest first."""
        session = self.get_session()
        try:
            rows = (
                self._activity_query(session, user_id, source)
                .order_by(ActivityRun.played_at.desc())
                .limit(limit)
                .all()
            )
            return [r.to_record() for r in rows]
        finally:
            session.close()

    # =========================================================================
    # Playlist Operations
    # =========================================================================

    def save_playlist(self, playlist: Playlist) -> None:
        """Save a playlist. An active playlist deactivates the user's previous ones."""
        session = self.get_session()
        try:
            if playlist.is_active:
                session.query(TrainingPlaylist).filter(
                    TrainingPlaylist.user_id == playlist.user_id,
                    TrainingPlaylist.is_active.is_(True),
                ).update({"is_active": False})

            session.merge(
                TrainingPlaylist(
                    id=playlist.id,
                    user_id=playlist.user_id,
                    title=playlist.title,
                    description=playlist.description,
                    scenarios_json=json.dumps([s.to_dict() for s in playlist.scenarios]),
                    target_weaknesses_json=json.dumps(playlist.target_weaknesses),
                    reasoning=playlist.reasoning,
                    is_active=playlist.is_active,
                    created_at=_to_db_time(playlist.created_at),
                )
            )
            session.commit()
            logger.info("Saved playlist %s for user=%s", playlist.id, playlist.user_id)
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to save playlist: {e}")
            raise
        finally:
            session.close()

    def get_active_playlist(self, user_id: str) -> Playlist | None:
        """Get the user's active playlist, if any."""
        session = self.get_session()
        try:
            row = (
                session.query(TrainingPlaylist)
                .filter(
                    TrainingPlaylist.user_id == user_id,
                    TrainingPlaylist.is_active.is_(True),
                )
                .order_by(TrainingPlaylist.created_at.desc())
                .first()
            )
            return row.to_playlist() if row else None
        finally:
            session.close()

    # =========================================================================
    # Checkpoint Operations
    # =========================================================================

    def load_checkpoint(self, thread_id: str) -> dict[str, Any] | None:
        """Load the stored state dict for a thread."""
        session = self.get_session()
        try:
            row = session.get(ConversationCheckpoint, thread_id)
            return json.loads(row.state_json) if row else None
        finally:
            session.close()

    def save_checkpoint(self, thread_id: str, state: dict[str, Any]) -> None:
        """Insert or overwrite the state dict for a thread."""
        session = self.get_session()
        try:
            session.merge(
                ConversationCheckpoint(
                    thread_id=thread_id,
                    user_id=state["user_id"],
                    state_json=json.dumps(state),
                    message_count=len(state.get("messages", [])),
                    updated_at=_utc_now(),
                )
            )
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to save checkpoint: {e}")
            raise
        finally:
            session.close()


# =============================================================================
# Async Adapters
# =============================================================================


async def _call(operation: str, fn: Callable[..., T], *args: Any) -> T:
    """Run a blocking DatabaseManager call in a thread, wrapping store errors."""
    try:
        return await asyncio.to_thread(fn, *args)
    except SQLAlchemyError as e:
        raise DataSourceError(operation, str(e)) from e


class SqlActivitySource(ActivitySource):
    """ActivitySource over the activity_runs table, optionally for one trainer."""

    def __init__(self, db: DatabaseManager, source: ActivitySourceName | None = None):
        self.db = db
        self.source = source.value if source is not None else None

    async def most_recent(self, user_id: str) -> ActivityRecord | None:
        return await _call("most_recent", self.db.get_most_recent_activity, user_id, self.source)

    async def since(self, user_id: str, start: datetime) -> list[ActivityRecord]:
        return await _call("since", self.db.get_activity_since, user_id, start, self.source)

    async def count_since(self, user_id: str, start: datetime) -> int:
        return await _call(
            "count_since", self.db.count_activity_since, user_id, start, self.source
        )

    async def exists_any(self, user_id: str) -> bool:
        return await _call("exists_any", self.db.has_activity, user_id, self.source)

    async def recent(self, user_id: str, limit: int) -> list[ActivityRecord]:
        return await _call("recent", self.db.get_recent_activity, user_id, limit, self.source)


class SqlPlaylistStore(PlaylistStore):
    """PlaylistStore over the training_playlists table."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def has_active(self, user_id: str) -> bool:
        return await self.get_active(user_id) is not None

    async def save(self, playlist: Playlist) -> None:
        await _call("save_playlist", self.db.save_playlist, playlist)

    async def get_active(self, user_id: str) -> Playlist | None:
        return await _call("get_active_playlist", self.db.get_active_playlist, user_id)


class SqlCheckpointStore(CheckpointStore):
    """CheckpointStore over the conversation_checkpoints table."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def get(self, thread_id: str) -> ConversationState | None:
        data = await _call("load_checkpoint", self.db.load_checkpoint, thread_id)
        return ConversationState.from_dict(data) if data is not None else None

    async def put(self, thread_id: str, state: ConversationState) -> None:
        await _call("save_checkpoint", self.db.save_checkpoint, thread_id, state.to_dict())


# Global database instance (lazy initialization)
_db_manager: DatabaseManager | None = None


def get_db() -> DatabaseManager:
    """Get the global database manager instance."""
    global _db_manager
    if _db_manager is None:
        from aimcoach.core.config import get_config

        db_config = get_config().database
        _db_manager = DatabaseManager(db_config.path, echo=db_config.echo)
    return _db_manager
