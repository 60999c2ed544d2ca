"""Tests for task routing."""

import pytest

from aimcoach.coaching.wiring import build_router
from aimcoach.core.config import AimCoachConfig
from aimcoach.core.constants import TaskStatus, TaskType, UserContext
from aimcoach.core.errors import DataSourceError
from aimcoach.core.schemas import ReportResult, TaskExecutionMetadata, TaskOutcome
from aimcoach.pipelines.daily_report import DailyReportPipeline
from aimcoach.pipelines.playlist_building import PlaylistBuildingPipeline
from aimcoach.pipelines.router import TaskRouter

from conftest import NOW, USER


class _RecordingPipeline(DailyReportPipeline):
    """Daily report pipeline that remembers the context it ran with."""

    async def run(self, user_id, user_context):
        self.seen_context = user_context
        return await super().run(user_id, user_context)


class _BrokenPipeline(PlaylistBuildingPipeline):
    async def run(self, user_id, user_context):
        raise DataSourceError("recent", "database is locked")


@pytest.fixture()
def router(activity, fake_model, clock):
    return TaskRouter(
        [
            _RecordingPipeline(activity, fake_model, clock=clock),
            _BrokenPipeline(activity, fake_model, clock=clock),
        ],
        clock=clock,
    )


class TestTaskRouter:
    @pytest.mark.asyncio
    async def test_success(self, router):
        outcome = await router.execute(USER, TaskType.DAILY_REPORT, UserContext.RETURNING_USER)

        assert outcome.succeeded
        assert isinstance(outcome.task_result, ReportResult)
        assert outcome.metadata.status == TaskStatus.SUCCESS
        assert outcome.metadata.task_type == "daily_report"
        assert outcome.metadata.executed_at == NOW
        assert outcome.metadata.error_message is None

    @pytest.mark.asyncio
    async def test_context_defaults_to_active_user(self, router):
        await router.execute(USER, TaskType.DAILY_REPORT)

        assert router.pipelines[TaskType.DAILY_REPORT].seen_context == UserContext.ACTIVE_USER

    @pytest.mark.asyncio
    async def test_accepts_task_type_string(self, router):
        outcome = await router.execute(USER, "daily_report")
        assert outcome.succeeded

    @pytest.mark.asyncio
    async def test_pipeline_error_becomes_failure(self, router):
        outcome = await router.execute(USER, TaskType.PLAYLIST_BUILDING)

        assert not outcome.succeeded
        assert outcome.task_result is None
        assert outcome.metadata.status == TaskStatus.FAILURE
        assert outcome.metadata.error_message == "recent failed: database is locked"
        assert outcome.metadata.task_type == "playlist_building"

    @pytest.mark.asyncio
    async def test_unregistered_task_becomes_failure(self, router):
        outcome = await router.execute(USER, TaskType.PROGRESS_REVIEW)

        assert outcome.metadata.status == TaskStatus.FAILURE
        assert "progress_review" in outcome.metadata.error_message

    @pytest.mark.asyncio
    async def test_unknown_task_string_becomes_failure(self, router):
        outcome = await router.execute(USER, "weekly_digest")

        assert outcome.metadata.status == TaskStatus.FAILURE
        assert "weekly_digest" in outcome.metadata.error_message

    @pytest.mark.asyncio
    async def test_unknown_context_string_becomes_failure(self, router):
        outcome = await router.execute(USER, TaskType.DAILY_REPORT, "bogus_context")

        assert outcome.task_result is None
        assert outcome.metadata.status == TaskStatus.FAILURE
        assert outcome.metadata.task_type == "daily_report"
        assert "bogus_context" in outcome.metadata.error_message

    @pytest.mark.asyncio
    async def test_accepts_context_string(self, router):
        outcome = await router.execute(USER, TaskType.DAILY_REPORT, "returning_user")

        assert outcome.succeeded
        assert router.pipelines[TaskType.DAILY_REPORT].seen_context == UserContext.RETURNING_USER

    def test_duplicate_pipelines_rejected(self, activity, fake_model):
        with pytest.raises(ValueError, match="Duplicate"):
            TaskRouter(
                [
                    DailyReportPipeline(activity, fake_model),
                    DailyReportPipeline(activity, fake_model),
                ]
            )


class TestTaskOutcome:
    def test_failure_requires_error_message(self):
        with pytest.raises(ValueError):
            TaskOutcome(
                task_result=None,
                metadata=TaskExecutionMetadata(
                    executed_at=NOW, task_type="daily_report", status=TaskStatus.FAILURE
                ),
            )

    def test_success_requires_result(self):
        with pytest.raises(ValueError):
            TaskOutcome(
                task_result=None,
                metadata=TaskExecutionMetadata(
                    executed_at=NOW, task_type="daily_report", status=TaskStatus.SUCCESS
                ),
            )


class TestBuiltRouter:
    """The fully wired router with its four real pipelines."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("task_type", "kind"),
        [
            (TaskType.DAILY_REPORT, "report"),
            (TaskType.SCORE_ANALYSIS, "analysis"),
            (TaskType.PLAYLIST_BUILDING, "playlist"),
            (TaskType.PROGRESS_REVIEW, "review"),
        ],
    )
    async def test_every_task_type_reports_itself(
        self, activity, playlists, fake_model, task_type, kind
    ):
        router = build_router(activity, fake_model, playlists, AimCoachConfig())

        outcome = await router.execute(USER, task_type)

        assert outcome.metadata.task_type == task_type
        assert outcome.metadata.status == TaskStatus.SUCCESS
        assert outcome.task_result is not None
        assert outcome.task_result.kind == kind
        assert fake_model.complete_calls == []

    def test_all_task_types_registered(self, activity, playlists, fake_model):
        router = build_router(activity, fake_model, playlists, AimCoachConfig())

        assert set(router.pipelines) == set(TaskType)
