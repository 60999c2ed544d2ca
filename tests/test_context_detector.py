"""Tests for user context detection."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from aimcoach.ai.context import ContextDetector, days_between
from aimcoach.core.config import ContextConfig
from aimcoach.core.constants import NO_ACTIVITY_DAYS, UserContext
from aimcoach.core.errors import DataSourceError
from aimcoach.infra.sources import ActivitySource

from conftest import NOW, USER


@pytest.fixture()
def detector(activity, clock):
    return ContextDetector(activity, clock=clock)


# =============================================================================
# days_between
# =============================================================================


class TestDaysBetween:
    def test_same_instant(self):
        assert days_between(NOW, NOW) == 0

    def test_floors_partial_days(self):
        assert days_between(NOW - timedelta(days=1, hours=23), NOW) == 1

    def test_future_timestamp_clamps_to_zero(self):
        assert days_between(NOW + timedelta(hours=5), NOW) == 0

    def test_exact_days(self):
        assert days_between(NOW - timedelta(days=10), NOW) == 10


# =============================================================================
# Classification
# =============================================================================


class TestContextDetection:
    @pytest.mark.asyncio
    async def test_no_activity_is_new_user(self, detector):
        result = await detector.detect(USER, has_active_playlist=False)

        assert result.user_context == UserContext.NEW_USER
        assert result.days_inactive == NO_ACTIVITY_DAYS
        assert result.new_scores_count == 0
        assert result.is_new_user is True

    @pytest.mark.asyncio
    async def test_new_user_wins_over_playlist(self, detector):
        result = await detector.detect(USER, has_active_playlist=True)
        assert result.user_context == UserContext.NEW_USER

    @pytest.mark.asyncio
    async def test_burst_of_fresh_scores_recommends_analysis(self, detector, activity, make_record):
        activity.add(USER, *[make_record(hours_ago=2 + i) for i in range(8)])

        result = await detector.detect(USER, has_active_playlist=True)

        assert result.user_context == UserContext.ANALYSIS_RECOMMENDED
        assert result.days_inactive == 0
        assert result.new_scores_count == 8
        assert result.is_new_user is False

    @pytest.mark.asyncio
    async def test_long_absence_is_returning_user(self, detector, activity, make_record):
        activity.add(USER, make_record(hours_ago=24 * 10))

        result = await detector.detect(USER, has_active_playlist=True)

        assert result.user_context == UserContext.RETURNING_USER
        assert result.days_inactive == 10

    @pytest.mark.asyncio
    async def test_missing_playlist_beats_analysis(self, detector, activity, make_record):
        activity.add(USER, *[make_record(hours_ago=1 + i) for i in range(8)])

        result = await detector.detect(USER, has_active_playlist=False)

        assert result.user_context == UserContext.PLAYLIST_RECOMMENDED

    @pytest.mark.asyncio
    async def test_missing_playlist_beats_returning(self, detector, activity, make_record):
        activity.add(USER, make_record(hours_ago=24 * 30))

        result = await detector.detect(USER, has_active_playlist=False)

        assert result.user_context == UserContext.PLAYLIST_RECOMMENDED
        assert result.days_inactive == 30

    @pytest.mark.asyncio
    async def test_few_fresh_scores_is_active_user(self, detector, activity, make_record):
        activity.add(USER, *[make_record(hours_ago=1 + i) for i in range(5)])

        result = await detector.detect(USER, has_active_playlist=True)

        assert result.user_context == UserContext.ACTIVE_USER
        assert result.new_scores_count == 5

    @pytest.mark.asyncio
    async def test_six_day_gap_is_still_active(self, detector, activity, make_record):
        activity.add(USER, make_record(hours_ago=24 * 7 - 1))

        result = await detector.detect(USER, has_active_playlist=True)

        assert result.days_inactive == 6
        assert result.user_context == UserContext.ACTIVE_USER

    @pytest.mark.asyncio
    async def test_seven_day_gap_is_returning(self, detector, activity, make_record):
        activity.add(USER, make_record(hours_ago=24 * 7))

        result = await detector.detect(USER, has_active_playlist=True)

        assert result.user_context == UserContext.RETURNING_USER

    @pytest.mark.asyncio
    async def test_only_window_scores_are_counted(self, detector, activity, make_record):
        activity.add(
            USER,
            *[make_record(hours_ago=1 + i) for i in range(3)],
            *[make_record(hours_ago=30 + i) for i in range(10)],
        )

        result = await detector.detect(USER, has_active_playlist=True)

        assert result.new_scores_count == 3
        assert result.user_context == UserContext.ACTIVE_USER

    @pytest.mark.asyncio
    async def test_thresholds_come_from_config(self, activity, clock, make_record):
        activity.add(USER, *[make_record(hours_ago=1 + i) for i in range(3)])
        detector = ContextDetector(activity, ContextConfig(analysis_min_new_scores=3), clock=clock)

        result = await detector.detect(USER, has_active_playlist=True)

        assert result.user_context == UserContext.ANALYSIS_RECOMMENDED


# =============================================================================
# Errors
# =============================================================================


class TestContextDetectionErrors:
    @pytest.mark.asyncio
    async def test_data_source_error_propagates(self, clock):
        source = MagicMock(spec=ActivitySource)
        source.most_recent = AsyncMock(side_effect=DataSourceError("most_recent", "disk I/O error"))
        detector = ContextDetector(source, clock=clock)

        with pytest.raises(DataSourceError, match="most_recent failed"):
            await detector.detect(USER, has_active_playlist=True)
