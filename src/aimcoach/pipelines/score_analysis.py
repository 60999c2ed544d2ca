"""Score analysis over the most recent runs."""

import logging

from pydantic import BaseModel, Field

from aimcoach.ai.prompts import SCORE_ANALYSIS_PROMPT
from aimcoach.core.constants import TaskType, TrendDirection, UserContext
from aimcoach.core.schemas import AnalysisResult, ScoreAnalysis
from aimcoach.pipelines.base import TaskPipeline
from aimcoach.pipelines.stats import summarize_activity

logger = logging.getLogger(__name__)

NO_DATA_CONTENT = "No score data yet. Start practicing to build up your history."


class ScoreAnalysisDraft(BaseModel):
    """Model output for score analysis."""

    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class ScoreAnalysisPipeline(TaskPipeline):
    task_type = TaskType.SCORE_ANALYSIS

    async def run(self, user_id: str, user_context: UserContext) -> AnalysisResult:
        now = self.clock()
        records = await self.activity.recent(user_id, self.config.score_analysis_limit)

        if not records:
            analysis = ScoreAnalysis(
                user_id=user_id,
                total_sessions=0,
                average_score=0.0,
                trend=TrendDirection.STABLE,
                strengths=[],
                weaknesses=[],
                recommendations=["Start practicing to build up data for analysis."],
                created_at=now,
            )
            return AnalysisResult(data=analysis, content=NO_DATA_CONTENT)

        summary = summarize_activity(records, self.config.trend_threshold)
        draft = await self.synthesize(
            SCORE_ANALYSIS_PROMPT.format(
                count=summary.count,
                user_context=user_context,
                summary=summary.to_prompt(),
            ),
            ScoreAnalysisDraft,
        )

        analysis = ScoreAnalysis(
            user_id=user_id,
            total_sessions=summary.count,
            average_score=summary.average_score,
            average_accuracy=summary.average_accuracy,
            trend=summary.trend,
            strengths=draft.strengths,
            weaknesses=draft.weaknesses,
            recommendations=draft.recommendations,
            date_range=summary.date_range,
            created_at=now,
        )
        logger.info(
            "Score analysis for user=%s: sessions=%d trend=%s",
            user_id,
            analysis.total_sessions,
            analysis.trend,
        )
        return AnalysisResult(data=analysis, content=_content(analysis))


def _content(analysis: ScoreAnalysis) -> str:
    lines = [
        f"Score analysis complete. Sessions: {analysis.total_sessions}",
        f"Average score: {analysis.average_score:.1f} | Trend: {analysis.trend.value}",
    ]
    for title, items in (
        ("Strengths", analysis.strengths),
        ("Weaknesses", analysis.weaknesses),
        ("Recommendations", analysis.recommendations),
    ):
        if items:
            lines.append(f"{title}:")
            lines.extend(f"- {item}" for item in items)
    return "\n".join(lines)
