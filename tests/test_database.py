"""Tests for the SQLite training history store and its async adapters."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from aimcoach.core.constants import ActivitySourceName, Role, UserContext
from aimcoach.core.errors import DataSourceError
from aimcoach.core.schemas import ConversationState, ConversationTurn
from aimcoach.infra.database import (
    DatabaseManager,
    SqlActivitySource,
    SqlCheckpointStore,
    SqlPlaylistStore,
)
from aimcoach.infra.sources import CompositeActivitySource
from aimcoach.pipelines.playlist_building import starter_playlist

from conftest import NOW, USER


@pytest.fixture()
def db(tmp_path):
    return DatabaseManager(tmp_path / "aimcoach.db")


@pytest.fixture()
def seeded(db, make_record):
    db.add_activity(
        USER,
        [
            make_record(hours_ago=1, scenario="Tile Frenzy", score=110.0),
            make_record(hours_ago=5, scenario="1wall 6targets", score=95.0),
            make_record(
                hours_ago=30,
                scenario="Gridshot",
                score=80000.0,
                source=ActivitySourceName.AIMLAB,
            ),
        ],
    )
    return db


# =============================================================================
# Activity
# =============================================================================


class TestActivity:
    def test_most_recent_round_trips_timezone(self, seeded):
        record = seeded.get_most_recent_activity(USER)

        assert record.scenario == "Tile Frenzy"
        assert record.timestamp == NOW - timedelta(hours=1)
        assert record.timestamp.tzinfo is not None

    def test_since_is_newest_first(self, seeded):
        records = seeded.get_activity_since(USER, NOW - timedelta(days=2))

        assert [r.scenario for r in records] == ["Tile Frenzy", "1wall 6targets", "Gridshot"]

    def test_count_since(self, seeded):
        assert seeded.count_activity_since(USER, NOW - timedelta(hours=24)) == 2

    def test_source_filter(self, seeded):
        records = seeded.get_recent_activity(USER, 10, ActivitySourceName.AIMLAB.value)

        assert [r.scenario for r in records] == ["Gridshot"]
        assert records[0].source == ActivitySourceName.AIMLAB

    def test_unknown_user(self, seeded):
        assert seeded.get_most_recent_activity("nobody") is None
        assert seeded.has_activity("nobody") is False

    def test_import_csv_scales_percent_accuracy(self, db, tmp_path):
        csv_path = tmp_path / "runs.csv"
        csv_path.write_text(
            "timestamp,scenario,score,accuracy\n"
            "2026-03-09T10:00:00Z,Tile Frenzy,105.5,87.5\n"
            "2026-03-09T10:05:00Z,Tile Frenzy,110.0,90\n"
        )

        count = db.import_activity_csv(csv_path, USER)

        assert count == 2
        latest = db.get_most_recent_activity(USER)
        assert latest.score == 110.0
        assert latest.accuracy == pytest.approx(0.9)
        assert latest.source == ActivitySourceName.KOVAAKS

    def test_import_csv_missing_columns(self, db, tmp_path):
        csv_path = tmp_path / "runs.csv"
        csv_path.write_text("timestamp,score\n2026-03-09T10:00:00Z,1\n")

        with pytest.raises(ValueError, match="scenario"):
            db.import_activity_csv(csv_path, USER)


# =============================================================================
# Playlists
# =============================================================================


class TestPlaylists:
    def test_saving_deactivates_previous(self, db):
        first = starter_playlist(USER)
        second = starter_playlist(USER)
        second.title = "Second"
        second.created_at = first.created_at + timedelta(minutes=1)

        db.save_playlist(first)
        db.save_playlist(second)

        active = db.get_active_playlist(USER)
        assert active.id == second.id
        assert active.title == "Second"
        assert active.total_duration == 600

    def test_no_active_playlist(self, db):
        assert db.get_active_playlist(USER) is None


# =============================================================================
# Async adapters
# =============================================================================


class TestAdapters:
    @pytest.mark.asyncio
    async def test_composite_merges_trainers(self, seeded):
        source = CompositeActivitySource(
            [
                SqlActivitySource(seeded, ActivitySourceName.KOVAAKS),
                SqlActivitySource(seeded, ActivitySourceName.AIMLAB),
            ]
        )

        records = await source.recent(USER, 10)

        assert [r.scenario for r in records] == ["Tile Frenzy", "1wall 6targets", "Gridshot"]
        assert await source.count_since(USER, NOW - timedelta(days=2)) == 3
        assert await source.exists_any(USER)

    @pytest.mark.asyncio
    async def test_playlist_store(self, db):
        store = SqlPlaylistStore(db)
        assert not await store.has_active(USER)

        await store.save(starter_playlist(USER))

        assert await store.has_active(USER)

    @pytest.mark.asyncio
    async def test_checkpoint_round_trip(self, db):
        store = SqlCheckpointStore(db)
        state = ConversationState(
            user_id=USER,
            thread_id="t-1",
            messages=[
                ConversationTurn(Role.USER, "hello"),
                ConversationTurn(Role.ASSISTANT, "Hi! Ready to train?"),
            ],
            user_context=UserContext.RETURNING_USER,
        )

        await store.put("t-1", state)
        loaded = await store.get("t-1")

        assert loaded == state
        assert await store.get("t-2") is None

    @pytest.mark.asyncio
    async def test_checkpoint_overwrite_is_last_write_wins(self, db):
        store = SqlCheckpointStore(db)
        state = ConversationState(user_id=USER, thread_id="t-1")

        await store.put("t-1", state)
        state.messages.append(ConversationTurn(Role.USER, "again"))
        await store.put("t-1", state)

        assert len((await store.get("t-1")).messages) == 1

    @pytest.mark.asyncio
    async def test_store_errors_become_data_source_errors(self, db):
        source = SqlActivitySource(db)
        error = OperationalError("SELECT", {}, Exception("database is locked"))

        with patch.object(db, "get_most_recent_activity", side_effect=error):
            with pytest.raises(DataSourceError, match="most_recent failed"):
                await source.most_recent(USER)
