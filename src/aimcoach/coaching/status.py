"""Coaching status snapshot.

A dashboard view of where a player stands right now: their context, a
7-day accuracy trend, what to focus on today and the active playlist.
No model calls; everything is computed from stored data.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from aimcoach.ai.context import ContextDetector
from aimcoach.core import constants
from aimcoach.core.constants import TrendDirection, UserContext
from aimcoach.core.schemas import ActivityRecord, DictMixin, Playlist
from aimcoach.infra.sources import ActivitySource, PlaylistStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

RECOMMENDED_DURATION_MINUTES = 30
RECOMMENDED_SCENARIO_COUNT = 3
STARTER_SCENARIOS = ["Tile Frenzy", "1wall 6targets"]
DEFAULT_FOCUS_SKILLS = ["tracking", "flick"]


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass
class RecentTrend(DictMixin):
    """Accuracy trend over the last 7 days."""

    overall_trend: TrendDirection
    sessions_count: int
    average_accuracy: float
    improving_skills: list[str] = field(default_factory=list)
    challenging_skills: list[str] = field(default_factory=list)


@dataclass
class TodaysFocus(DictMixin):
    """What the player should work on today."""

    focus_skills: list[str]
    recommended_duration: int  # minutes
    recommended_scenarios: list[str]


@dataclass
class CoachingStatus(DictMixin):
    """Snapshot returned by CoachingStatusService.get_status."""

    user_id: str
    user_context: UserContext
    days_inactive: int
    todays_focus: TodaysFocus
    recent_trend: RecentTrend
    active_playlist: Playlist | None = None


# ---------------------------------------------------------------------------
# CoachingStatusService
# ---------------------------------------------------------------------------


class CoachingStatusService:
    """Builds CoachingStatus snapshots from the same collaborators as the chat graph."""

    def __init__(
        self,
        detector: ContextDetector,
        activity: ActivitySource,
        playlists: PlaylistStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.detector = detector
        self.activity = activity
        self.playlists = playlists
        self.clock = clock or (lambda: datetime.now(UTC))

    async def get_status(self, user_id: str) -> CoachingStatus:
        """Compute the current coaching status for a player."""
        active_playlist, week = await asyncio.gather(
            self.playlists.get_active(user_id),
            self.activity.since(user_id, self.clock() - timedelta(days=7)),
        )
        context = await self.detector.detect(user_id, active_playlist is not None)

        trend = compute_recent_trend(week)
        focus = build_todays_focus(week, trend)

        logger.info(
            "Coaching status: user=%s context=%s trend=%s sessions_7d=%d",
            user_id,
            context.user_context,
            trend.overall_trend,
            trend.sessions_count,
        )
        return CoachingStatus(
            user_id=user_id,
            user_context=context.user_context,
            days_inactive=context.days_inactive,
            todays_focus=focus,
            recent_trend=trend,
            active_playlist=active_playlist,
        )


def compute_recent_trend(records: list[ActivityRecord]) -> RecentTrend:
    """Classify the week by average accuracy."""
    if not records:
        return RecentTrend(
            overall_trend=TrendDirection.STABLE, sessions_count=0, average_accuracy=0.0
        )

    avg_accuracy = sum(r.accuracy for r in records) / len(records)
    trend = RecentTrend(
        overall_trend=TrendDirection.STABLE,
        sessions_count=len(records),
        average_accuracy=round(avg_accuracy, 4),
    )
    if avg_accuracy > constants.ACCURACY_IMPROVING_ABOVE:
        trend.overall_trend = TrendDirection.IMPROVING
        trend.improving_skills = ["tracking", "precision"]
    elif avg_accuracy < constants.ACCURACY_DECLINING_BELOW:
        trend.overall_trend = TrendDirection.DECLINING
        trend.challenging_skills = ["accuracy", "consistency"]
    else:
        trend.challenging_skills = ["speed"]
    return trend


def build_todays_focus(records: list[ActivityRecord], trend: RecentTrend) -> TodaysFocus:
    """Pick focus skills and scenarios for today from the week's runs (newest first)."""
    scenarios: list[str] = []
    for record in records:
        if record.scenario not in scenarios:
            scenarios.append(record.scenario)
        if len(scenarios) == RECOMMENDED_SCENARIO_COUNT:
            break

    return TodaysFocus(
        focus_skills=trend.challenging_skills or list(DEFAULT_FOCUS_SKILLS),
        recommended_duration=RECOMMENDED_DURATION_MINUTES,
        recommended_scenarios=scenarios or list(STARTER_SCENARIOS),
    )
