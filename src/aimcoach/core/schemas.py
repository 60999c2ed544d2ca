"""
AimCoach Data Contracts

Every data structure that crosses a module boundary is defined here.
If you need a field that doesn't exist here, ADD IT HERE FIRST,
then update the producer and consumer.

Producers: infra/sources.py, infra/database.py, ai/context.py, ai/intent.py, pipelines/
Consumers: pipelines/router.py, coaching/orchestrator.py, coaching/status.py, cli.py
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar

from aimcoach.core.constants import (
    ActivitySourceName,
    Difficulty,
    Intent,
    Performance,
    Role,
    TaskStatus,
    TaskType,
    TrendDirection,
    UserContext,
)


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


def _new_id() -> str:
    return str(uuid.uuid4())


def _jsonable(value: Any) -> Any:
    """Convert dataclass field values into JSON-friendly primitives."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list | tuple):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class DictMixin:
    """Shallow to_dict() for dataclasses, recursing into nested contracts."""

    def to_dict(self) -> dict[str, Any]:
        return {f.name: _jsonable(getattr(self, f.name)) for f in fields(self)}  # type: ignore[arg-type]


# ============================================================
# ACTIVITY: raw performance rows from the aim trainers
# ============================================================


@dataclass(frozen=True)
class ActivityRecord(DictMixin):
    """One scenario run recorded by an aim trainer."""

    timestamp: datetime  # timezone-aware UTC
    scenario: str
    score: float
    accuracy: float  # 0.0 - 1.0
    source: ActivitySourceName = ActivitySourceName.KOVAAKS
    duration_seconds: float | None = None


# ============================================================
# CONTEXT
# ============================================================


@dataclass(frozen=True)
class ContextDetectionResult(DictMixin):
    """Derived engagement state of a player. Never persisted."""

    user_context: UserContext
    days_inactive: int
    new_scores_count: int
    is_new_user: bool


# ============================================================
# CONVERSATION
# ============================================================


@dataclass(frozen=True)
class ConversationTurn(DictMixin):
    """A single message in a thread."""

    role: Role
    content: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationTurn:
        return cls(role=Role(data["role"]), content=str(data.get("content", "")))


@dataclass
class ConversationState(DictMixin):
    """
    Per-thread conversation state.

    Owned by exactly one thread id and mutated only by the orchestrator.
    `messages` is append-only and time-ordered.
    """

    user_id: str
    thread_id: str
    messages: list[ConversationTurn] = field(default_factory=list)
    user_context: UserContext = UserContext.ACTIVE_USER

    def latest_user_message(self) -> ConversationTurn | None:
        for turn in reversed(self.messages):
            if turn.role == Role.USER:
                return turn
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationState:
        return cls(
            user_id=data["user_id"],
            thread_id=data["thread_id"],
            messages=[ConversationTurn.from_dict(m) for m in data.get("messages", [])],
            user_context=UserContext(data.get("user_context", UserContext.ACTIVE_USER)),
        )


# ============================================================
# INTENT
# ============================================================


@dataclass(frozen=True)
class IntentResult(DictMixin):
    """Classification of one utterance."""

    intent: Intent
    confidence: float
    task_type: TaskType | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        if (self.intent == Intent.TASK_EXECUTION) != (self.task_type is not None):
            raise ValueError("task_type must be set if and only if intent is task_execution")


# ============================================================
# TASK PAYLOADS
# ============================================================


@dataclass
class DailyReport(DictMixin):
    """Summary of the last 24 hours of practice."""

    user_id: str
    sessions_today: int
    total_practice_time: int  # minutes
    achievements: list[str]
    performance: Performance
    tomorrow_goals: list[str]
    motivational_message: str
    sessions_this_week: int = 0
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utc_now)


@dataclass
class ScoreAnalysis(DictMixin):
    """Analysis of the most recent runs."""

    user_id: str
    total_sessions: int
    average_score: float
    trend: TrendDirection
    strengths: list[str]
    weaknesses: list[str]
    recommendations: list[str]
    average_accuracy: float = 0.0
    date_range: tuple[str, str] | None = None  # (earliest, latest) ISO timestamps
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utc_now)


@dataclass
class PlaylistScenario(DictMixin):
    """One scenario slot inside a training playlist."""

    name: str
    duration: int  # seconds
    difficulty: Difficulty
    focus_skills: list[str] = field(default_factory=list)


@dataclass
class Playlist(DictMixin):
    """A generated training playlist."""

    user_id: str
    title: str
    description: str
    scenarios: list[PlaylistScenario]
    target_weaknesses: list[str]
    reasoning: str
    is_active: bool = True
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utc_now)

    @property
    def total_duration(self) -> int:
        """Sum of scenario durations in seconds."""
        return sum(s.duration for s in self.scenarios)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["total_duration"] = self.total_duration
        return data


@dataclass
class ProgressReview(DictMixin):
    """Longer-horizon review comparing the last week with the last month."""

    user_id: str
    days_inactive: int
    progress_summary: str
    achievements: list[str]
    areas_for_improvement: list[str]
    next_goals: list[str]
    sessions_last_7_days: int = 0
    sessions_last_30_days: int = 0
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utc_now)


# ============================================================
# TASK RESULTS: closed union, one variant per task type
# ============================================================


@dataclass(frozen=True)
class ReportResult(DictMixin):
    kind: ClassVar[str] = "report"

    data: DailyReport
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, **super().to_dict()}


@dataclass(frozen=True)
class AnalysisResult(DictMixin):
    kind: ClassVar[str] = "analysis"

    data: ScoreAnalysis
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, **super().to_dict()}


@dataclass(frozen=True)
class PlaylistResult(DictMixin):
    kind: ClassVar[str] = "playlist"

    data: Playlist
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, **super().to_dict()}


@dataclass(frozen=True)
class ReviewResult(DictMixin):
    kind: ClassVar[str] = "review"

    data: ProgressReview
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, **super().to_dict()}


TaskResult = ReportResult | AnalysisResult | PlaylistResult | ReviewResult


@dataclass(frozen=True)
class TaskExecutionMetadata(DictMixin):
    """Execution bookkeeping attached to every pipeline run."""

    executed_at: datetime
    task_type: str
    status: TaskStatus
    error_message: str | None = None


@dataclass(frozen=True)
class TaskOutcome(DictMixin):
    """
    Result of TaskRouter.execute.

    status == failure if and only if error_message is set and task_result is None.
    """

    task_result: TaskResult | None
    metadata: TaskExecutionMetadata

    def __post_init__(self) -> None:
        failed = self.metadata.status == TaskStatus.FAILURE
        if failed and (not self.metadata.error_message or self.task_result is not None):
            raise ValueError("failed outcome needs an error message and no task result")
        if not failed and (self.metadata.error_message or self.task_result is None):
            raise ValueError("successful outcome needs a task result and no error message")

    @property
    def succeeded(self) -> bool:
        return self.metadata.status == TaskStatus.SUCCESS
