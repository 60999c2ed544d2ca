"""User context detection.

Classifies a player's engagement state from their activity history and
whether an active playlist exists. The result frames every conversational
reply, so it is recomputed at the start of each turn.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from aimcoach.core import constants
from aimcoach.core.config import ContextConfig
from aimcoach.core.constants import UserContext
from aimcoach.core.schemas import ContextDetectionResult
from aimcoach.infra.sources import ActivitySource

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


def days_between(earlier: datetime, now: datetime) -> int:
    """Whole days elapsed from earlier to now, floored and never negative."""
    elapsed = (now - earlier) / timedelta(days=1)
    return max(0, math.floor(elapsed))


# ---------------------------------------------------------------------------
# ContextDetector
# ---------------------------------------------------------------------------


class ContextDetector:
    """Computes the UserContext for a player.

    Data-source errors propagate to the caller.
    """

    def __init__(
        self,
        activity: ActivitySource,
        config: ContextConfig | None = None,
        clock: Clock = _utc_now,
    ) -> None:
        self.activity = activity
        self.config = config or ContextConfig()
        self.clock = clock

    async def detect(self, user_id: str, has_active_playlist: bool) -> ContextDetectionResult:
        """Detect the user's context.

        Priority, first match wins: new_user, playlist_recommended,
        analysis_recommended, returning_user, active_user.
        """
        now = self.clock()

        latest = await self.activity.most_recent(user_id)
        days_inactive = (
            days_between(latest.timestamp, now) if latest else constants.NO_ACTIVITY_DAYS
        )

        window_start = now - timedelta(hours=self.config.new_scores_window_hours)
        new_scores_count = await self.activity.count_since(user_id, window_start)

        is_new_user = not await self.activity.exists_any(user_id)

        user_context = self._classify(is_new_user, has_active_playlist, new_scores_count, days_inactive)

        logger.info(
            "Context detected: user=%s context=%s days_inactive=%d new_scores=%d "
            "is_new_user=%s has_playlist=%s",
            user_id,
            user_context,
            days_inactive,
            new_scores_count,
            is_new_user,
            has_active_playlist,
        )

        return ContextDetectionResult(
            user_context=user_context,
            days_inactive=days_inactive,
            new_scores_count=new_scores_count,
            is_new_user=is_new_user,
        )

    def _classify(
        self,
        is_new_user: bool,
        has_active_playlist: bool,
        new_scores_count: int,
        days_inactive: int,
    ) -> UserContext:
        if is_new_user:
            return UserContext.NEW_USER
        if not has_active_playlist:
            return UserContext.PLAYLIST_RECOMMENDED
        if (
            new_scores_count >= self.config.analysis_min_new_scores
            and days_inactive < self.config.analysis_max_days_inactive
        ):
            return UserContext.ANALYSIS_RECOMMENDED
        if days_inactive >= self.config.returning_min_days_inactive:
            return UserContext.RETURNING_USER
        return UserContext.ACTIVE_USER
