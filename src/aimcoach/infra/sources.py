"""
Collaborator interfaces for the coaching engine.

The engine never talks to a concrete store. It receives these interfaces
through its constructors:

- ActivitySource: timestamped aim-trainer runs
- PlaylistExistenceCheck / PlaylistStore: whether an active playlist exists
- CheckpointStore: per-thread conversation state

In-memory implementations live here as well; the SQLite ones are in
infra/database.py.
"""

from __future__ import annotations

import heapq
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime

from aimcoach.core.schemas import ActivityRecord, ConversationState, Playlist

logger = logging.getLogger(__name__)


# =============================================================================
# Interfaces
# =============================================================================


class ActivitySource(ABC):
    """Read access to a player's recorded runs. All lists are newest first."""

    @abstractmethod
    async def most_recent(self, user_id: str) -> ActivityRecord | None:
        """Latest record for the user, or None when nothing is recorded."""

    @abstractmethod
    async def since(self, user_id: str, start: datetime) -> list[ActivityRecord]:
        """Records with timestamp >= start."""

    @abstractmethod
    async def count_since(self, user_id: str, start: datetime) -> int:
        """Number of records with timestamp >= start."""

    @abstractmethod
    async def exists_any(self, user_id: str) -> bool:
        """Whether the user has at least one record."""

    @abstractmethod
    async def recent(self, user_id: str, limit: int) -> list[ActivityRecord]:
        """The `limit` most recent records."""


class PlaylistExistenceCheck(ABC):
    """Answers whether a player currently has an active training playlist."""

    @abstractmethod
    async def has_active(self, user_id: str) -> bool: ...


class PlaylistStore(PlaylistExistenceCheck):
    """Playlist persistence. Saving a playlist makes it the active one."""

    @abstractmethod
    async def save(self, playlist: Playlist) -> None: ...

    @abstractmethod
    async def get_active(self, user_id: str) -> Playlist | None: ...


class CheckpointStore(ABC):
    """
    Conversation checkpoints keyed by thread id.

    Writes are last-write-wins. Two concurrent turns on one thread may lose
    each other's appended messages; callers serialize turns per thread if
    that matters to them.
    """

    @abstractmethod
    async def get(self, thread_id: str) -> ConversationState | None: ...

    @abstractmethod
    async def put(self, thread_id: str, state: ConversationState) -> None: ...


# =============================================================================
# Composite activity source
# =============================================================================


class CompositeActivitySource(ActivitySource):
    """
    Merges several activity sources into one view.

    Used to treat KovaaK's and Aim Lab runs as a single history.
    """

    def __init__(self, sources: Iterable[ActivitySource]):
        self.sources = list(sources)
        if not self.sources:
            raise ValueError("CompositeActivitySource needs at least one source")

    async def most_recent(self, user_id: str) -> ActivityRecord | None:
        latest: ActivityRecord | None = None
        for source in self.sources:
            record = await source.most_recent(user_id)
            if record is not None and (latest is None or record.timestamp > latest.timestamp):
                latest = record
        return latest

    async def since(self, user_id: str, start: datetime) -> list[ActivityRecord]:
        batches = [await source.since(user_id, start) for source in self.sources]
        return _merge_newest_first(batches)

    async def count_since(self, user_id: str, start: datetime) -> int:
        total = 0
        for source in self.sources:
            total += await source.count_since(user_id, start)
        return total

    async def exists_any(self, user_id: str) -> bool:
        for source in self.sources:
            if await source.exists_any(user_id):
                return True
        return False

    async def recent(self, user_id: str, limit: int) -> list[ActivityRecord]:
        batches = [await source.recent(user_id, limit) for source in self.sources]
        return _merge_newest_first(batches)[:limit]


def _merge_newest_first(batches: list[list[ActivityRecord]]) -> list[ActivityRecord]:
    return list(heapq.merge(*batches, key=lambda r: r.timestamp, reverse=True))


# =============================================================================
# In-memory implementations
# =============================================================================


class InMemoryActivitySource(ActivitySource):
    """Activity held in a dict. Useful for tests and demos."""

    def __init__(self, records: dict[str, list[ActivityRecord]] | None = None):
        self._records: dict[str, list[ActivityRecord]] = defaultdict(list)
        for user_id, user_records in (records or {}).items():
            self.add(user_id, *user_records)

    def add(self, user_id: str, *records: ActivityRecord) -> None:
        bucket = self._records[user_id]
        bucket.extend(records)
        bucket.sort(key=lambda r: r.timestamp, reverse=True)

    async def most_recent(self, user_id: str) -> ActivityRecord | None:
        bucket = self._records.get(user_id) or []
        return bucket[0] if bucket else None

    async def since(self, user_id: str, start: datetime) -> list[ActivityRecord]:
        return [r for r in self._records.get(user_id, []) if r.timestamp >= start]

    async def count_since(self, user_id: str, start: datetime) -> int:
        return len(await self.since(user_id, start))

    async def exists_any(self, user_id: str) -> bool:
        return bool(self._records.get(user_id))

    async def recent(self, user_id: str, limit: int) -> list[ActivityRecord]:
        return list(self._records.get(user_id, [])[:limit])


class InMemoryPlaylistStore(PlaylistStore):
    """Keeps the latest saved playlist per user."""

    def __init__(self) -> None:
        self._active: dict[str, Playlist] = {}

    async def has_active(self, user_id: str) -> bool:
        playlist = self._active.get(user_id)
        return playlist is not None and playlist.is_active

    async def save(self, playlist: Playlist) -> None:
        self._active[playlist.user_id] = playlist
        logger.debug("Saved playlist %s for user=%s", playlist.id, playlist.user_id)

    async def get_active(self, user_id: str) -> Playlist | None:
        playlist = self._active.get(user_id)
        return playlist if playlist is not None and playlist.is_active else None


class InMemoryCheckpointStore(CheckpointStore):
    """Process-local checkpoints. Stored states are copies, never shared."""

    def __init__(self) -> None:
        self._states: dict[str, dict] = {}

    async def get(self, thread_id: str) -> ConversationState | None:
        data = self._states.get(thread_id)
        return ConversationState.from_dict(data) if data is not None else None

    async def put(self, thread_id: str, state: ConversationState) -> None:
        self._states[thread_id] = state.to_dict()

    def __len__(self) -> int:
        return len(self._states)
