"""Progress review: the last week against the last month."""

import asyncio
import logging
from datetime import timedelta

from pydantic import BaseModel, Field

from aimcoach.ai.context import days_between
from aimcoach.ai.prompts import PROGRESS_REVIEW_PROMPT
from aimcoach.core import constants
from aimcoach.core.constants import TaskType, UserContext
from aimcoach.core.schemas import ProgressReview, ReviewResult
from aimcoach.pipelines.base import TaskPipeline
from aimcoach.pipelines.stats import summarize_activity

logger = logging.getLogger(__name__)


class ProgressReviewDraft(BaseModel):
    """Model output for the progress review."""

    progress_summary: str
    achievements: list[str] = Field(default_factory=list)
    areas_for_improvement: list[str] = Field(default_factory=list)
    next_goals: list[str] = Field(default_factory=list)


class ProgressReviewPipeline(TaskPipeline):
    task_type = TaskType.PROGRESS_REVIEW

    async def run(self, user_id: str, user_context: UserContext) -> ReviewResult:
        now = self.clock()
        week, month, latest = await asyncio.gather(
            self.activity.since(user_id, now - timedelta(days=7)),
            self.activity.since(user_id, now - timedelta(days=30)),
            self.activity.most_recent(user_id),
        )

        days_inactive = (
            days_between(latest.timestamp, now) if latest else constants.NO_ACTIVITY_DAYS
        )

        if not week and not month:
            review = ProgressReview(
                user_id=user_id,
                days_inactive=days_inactive,
                progress_summary="No recent data. Let's get practicing!",
                achievements=[],
                areas_for_improvement=[
                    "Getting started with practice",
                    "Building a regular practice habit",
                ],
                next_goals=["Aim for three practice sessions a week."],
                created_at=now,
            )
            return ReviewResult(data=review, content=_content(review))

        threshold = self.config.trend_threshold
        draft = await self.synthesize(
            PROGRESS_REVIEW_PROMPT.format(
                user_context=user_context,
                days_inactive=days_inactive,
                week_summary=summarize_activity(week, threshold).to_prompt(),
                month_summary=summarize_activity(month, threshold).to_prompt(),
            ),
            ProgressReviewDraft,
        )

        review = ProgressReview(
            user_id=user_id,
            days_inactive=days_inactive,
            progress_summary=draft.progress_summary,
            achievements=draft.achievements,
            areas_for_improvement=draft.areas_for_improvement,
            next_goals=draft.next_goals,
            sessions_last_7_days=len(week),
            sessions_last_30_days=len(month),
            created_at=now,
        )
        logger.info(
            "Progress review for user=%s: week=%d month=%d days_inactive=%d",
            user_id,
            len(week),
            len(month),
            days_inactive,
        )
        return ReviewResult(data=review, content=_content(review))


def _content(review: ProgressReview) -> str:
    lines = [
        f"Progress review complete. Days inactive: {review.days_inactive}",
        review.progress_summary,
    ]
    for title, items in (
        ("Achievements", review.achievements),
        ("Areas for improvement", review.areas_for_improvement),
        ("Next goals", review.next_goals),
    ):
        if items:
            lines.append(f"{title}:")
            lines.extend(f"- {item}" for item in items)
    return "\n".join(lines)
