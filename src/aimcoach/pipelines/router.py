"""
Task routing.

Dispatches a TaskType to its pipeline and wraps the result with execution
metadata. Nothing a pipeline raises escapes execute(); failures come back
as status=failure with an error message.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from aimcoach.core.constants import TaskStatus, TaskType, UserContext
from aimcoach.core.errors import UnknownTaskError
from aimcoach.core.schemas import TaskExecutionMetadata, TaskOutcome
from aimcoach.pipelines.base import TaskPipeline

logger = logging.getLogger(__name__)


class TaskRouter:
    """Fixed 1:1 mapping from task type to pipeline."""

    def __init__(
        self,
        pipelines: Iterable[TaskPipeline],
        clock: Callable[[], datetime] | None = None,
    ):
        self.pipelines: dict[TaskType, TaskPipeline] = {}
        for pipeline in pipelines:
            if pipeline.task_type in self.pipelines:
                raise ValueError(f"Duplicate pipeline for task type {pipeline.task_type}")
            self.pipelines[pipeline.task_type] = pipeline
        self.clock = clock or (lambda: datetime.now(UTC))

    async def execute(
        self,
        user_id: str,
        task_type: TaskType | str,
        user_context: UserContext | str | None = None,
    ) -> TaskOutcome:
        """
        Run the pipeline for task_type.

        Args:
            user_id: Player the task runs for
            task_type: Which pipeline to run
            user_context: Context framing the synthesis (defaults to active_user)

        Returns:
            TaskOutcome; task_result is None and error_message set on failure
        """
        logger.info("Task start: user=%s task=%s context=%s", user_id, task_type, user_context)

        try:
            context = UserContext(user_context) if user_context else UserContext.ACTIVE_USER
            pipeline = self._resolve(task_type)
            result = await pipeline.run(user_id, context)
        except Exception as e:
            logger.exception("Task error: user=%s task=%s", user_id, task_type)
            return TaskOutcome(
                task_result=None,
                metadata=TaskExecutionMetadata(
                    executed_at=self.clock(),
                    task_type=str(task_type),
                    status=TaskStatus.FAILURE,
                    error_message=str(e) or type(e).__name__,
                ),
            )

        logger.info("Task complete: user=%s task=%s result=%s", user_id, task_type, result.kind)
        return TaskOutcome(
            task_result=result,
            metadata=TaskExecutionMetadata(
                executed_at=self.clock(),
                task_type=str(task_type),
                status=TaskStatus.SUCCESS,
            ),
        )

    def _resolve(self, task_type: TaskType | str) -> TaskPipeline:
        try:
            return self.pipelines[TaskType(task_type)]
        except (KeyError, ValueError):
            raise UnknownTaskError(str(task_type)) from None
