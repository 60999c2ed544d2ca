"""Common shape of the structured coaching task pipelines.

Each pipeline runs two phases:

1. Data phase: read a bounded window of activity. An empty window returns a
   fixed "no data" result without calling the model.
2. Synthesis phase: summarize the window and ask the model for a typed
   reply, then merge it with the fields computed locally.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime
from typing import ClassVar, TypeVar

from pydantic import BaseModel

from aimcoach.ai.llm_client import GenerativeModel
from aimcoach.ai.prompts import TASK_SYSTEM_PROMPT
from aimcoach.core.config import PipelineConfig
from aimcoach.core.constants import TaskType, UserContext
from aimcoach.core.schemas import TaskResult
from aimcoach.infra.sources import ActivitySource

logger = logging.getLogger(__name__)

DraftT = TypeVar("DraftT", bound=BaseModel)


class TaskPipeline(ABC):
    """Base class for the four coaching task pipelines."""

    task_type: ClassVar[TaskType]

    def __init__(
        self,
        activity: ActivitySource,
        model: GenerativeModel,
        config: PipelineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.activity = activity
        self.model = model
        self.config = config or PipelineConfig()
        self.clock = clock or (lambda: datetime.now(UTC))

    @abstractmethod
    async def run(self, user_id: str, user_context: UserContext) -> TaskResult:
        """Produce the task result for a player.

        Raises:
            DataSourceError: activity could not be read
            ModelServiceError: synthesis failed or violated its schema
        """

    async def synthesize(self, prompt: str, schema: type[DraftT]) -> DraftT:
        """Run the synthesis phase for a prompt."""
        logger.debug("%s synthesis: schema=%s", self.task_type, schema.__name__)
        return await self.model.complete(prompt, schema, system=TASK_SYSTEM_PROMPT)
