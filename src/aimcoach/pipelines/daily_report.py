"""Daily report: the last 24 hours, compared against the last 7 days."""

import asyncio
import logging
from datetime import timedelta
from typing import Literal

from pydantic import BaseModel, Field

from aimcoach.ai.prompts import DAILY_REPORT_PROMPT
from aimcoach.core.constants import Performance, TaskType, UserContext
from aimcoach.core.schemas import ActivityRecord, DailyReport, ReportResult
from aimcoach.pipelines.base import TaskPipeline
from aimcoach.pipelines.stats import summarize_activity

logger = logging.getLogger(__name__)


class DailyReportDraft(BaseModel):
    """Model output for the daily report."""

    achievements: list[str] = Field(default_factory=list)
    performance: Literal["excellent", "good", "fair", "needs_improvement"]
    tomorrow_goals: list[str] = Field(default_factory=list)
    motivational_message: str


class DailyReportPipeline(TaskPipeline):
    task_type = TaskType.DAILY_REPORT

    async def run(self, user_id: str, user_context: UserContext) -> ReportResult:
        now = self.clock()
        today, week = await asyncio.gather(
            self.activity.since(user_id, now - timedelta(hours=24)),
            self.activity.since(user_id, now - timedelta(days=7)),
        )

        if not today:
            report = DailyReport(
                user_id=user_id,
                sessions_today=0,
                total_practice_time=0,
                achievements=[],
                performance=Performance.NONE,
                tomorrow_goals=["Start today's practice!"],
                motivational_message="You haven't practiced yet today. Let's get started!",
                sessions_this_week=len(week),
                created_at=now,
            )
            return ReportResult(data=report, content=_content(report))

        threshold = self.config.trend_threshold
        today_summary = summarize_activity(today, threshold)
        week_summary = summarize_activity(week, threshold)

        draft = await self.synthesize(
            DAILY_REPORT_PROMPT.format(
                user_context=user_context,
                today_summary=today_summary.to_prompt(),
                week_summary=week_summary.to_prompt(),
            ),
            DailyReportDraft,
        )

        report = DailyReport(
            user_id=user_id,
            sessions_today=len(today),
            total_practice_time=practice_minutes(today, self.config.minutes_per_session),
            achievements=draft.achievements,
            performance=Performance(draft.performance),
            tomorrow_goals=draft.tomorrow_goals,
            motivational_message=draft.motivational_message,
            sessions_this_week=len(week),
            created_at=now,
        )
        logger.info(
            "Daily report for user=%s: sessions=%d performance=%s",
            user_id,
            report.sessions_today,
            report.performance,
        )
        return ReportResult(data=report, content=_content(report))


def practice_minutes(records: list[ActivityRecord], minutes_per_session: int) -> int:
    """Recorded run length where the trainer exported it, the per-session estimate otherwise."""
    seconds = sum(
        r.duration_seconds if r.duration_seconds is not None else minutes_per_session * 60
        for r in records
    )
    return round(seconds / 60)


def _content(report: DailyReport) -> str:
    lines = [f"Daily report complete. Sessions today: {report.sessions_today}"]
    if report.sessions_today:
        lines.append(
            f"Practice time: ~{report.total_practice_time} min | Performance: "
            f"{report.performance.value.replace('_', ' ')}"
        )
    lines.extend(f"- {a}" for a in report.achievements)
    if report.tomorrow_goals:
        lines.append("Tomorrow's goals:")
        lines.extend(f"- {g}" for g in report.tomorrow_goals)
    lines.append(report.motivational_message)
    return "\n".join(lines)
