"""
Conversation orchestration (the chat graph).

Every inbound turn runs two steps in order:

    detect_context -> chat_agent -> end

detect_context refreshes the player's UserContext. chat_agent classifies
the latest user turn and either delegates to a task pipeline, asks the
player which task they meant, or composes a conversational reply with
read-only tools. State is checkpointed per thread after each step.
"""

import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from typing import Any

from aimcoach.ai.context import ContextDetector
from aimcoach.ai.intent import IntentClassifier
from aimcoach.ai.llm_client import GenerativeModel
from aimcoach.ai.prompts import (
    DISAMBIGUATION_REPLY,
    EMPTY_TURN_REPLY,
    SYSTEM_ERROR_REPLY,
    TASK_DONE_REPLY,
    TASK_FAILURE_REPLY,
    build_coach_system_prompt,
)
from aimcoach.ai.tools import CoachingToolbox
from aimcoach.core.config import ChatConfig
from aimcoach.core.constants import Intent, Role, TaskType, UserContext
from aimcoach.core.schemas import ConversationState, ConversationTurn
from aimcoach.infra.sources import ActivitySource, CheckpointStore, PlaylistExistenceCheck
from aimcoach.pipelines.router import TaskRouter

logger = logging.getLogger(__name__)

DETECT_CONTEXT = "detect_context"
CHAT_AGENT = "chat_agent"

MessageInput = ConversationTurn | Mapping[str, Any]


def _to_turn(message: MessageInput) -> ConversationTurn:
    if isinstance(message, ConversationTurn):
        return message
    return ConversationTurn.from_dict(dict(message))


def _excerpt(error: BaseException, limit: int) -> str:
    text = str(error) or type(error).__name__
    return text if len(text) <= limit else text[: limit - 3] + "..."


# =============================================================================
# ConversationOrchestrator
# =============================================================================


class ConversationOrchestrator:
    """
    Runs the two-step chat graph for one thread at a time.

    Concurrent turns on the same thread are not serialized here; the
    checkpoint store is last-write-wins.
    """

    def __init__(
        self,
        detector: ContextDetector,
        playlists: PlaylistExistenceCheck,
        classifier: IntentClassifier,
        router: TaskRouter,
        model: GenerativeModel,
        checkpoints: CheckpointStore,
        activity: ActivitySource | None = None,
        config: ChatConfig | None = None,
    ):
        self.detector = detector
        self.playlists = playlists
        self.classifier = classifier
        self.router = router
        self.model = model
        self.checkpoints = checkpoints
        self.activity = activity or detector.activity
        self.config = config or ChatConfig()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def invoke(
        self,
        user_id: str,
        messages: Iterable[MessageInput],
        thread_id: str | None = None,
    ) -> ConversationState:
        """
        Process inbound turns and return the final state.

        Args:
            user_id: Player the thread belongs to
            messages: New turns to append (not the whole history)
            thread_id: Conversation thread (defaults to user_id)

        Returns:
            ConversationState after both steps ran
        """
        state: ConversationState | None = None
        async for _, _, state in self._run(user_id, messages, thread_id):
            pass
        assert state is not None
        return state

    async def stream(
        self,
        user_id: str,
        messages: Iterable[MessageInput],
        thread_id: str | None = None,
    ) -> AsyncIterator[dict[str, dict[str, Any]]]:
        """
        Process inbound turns, yielding one {step_name: partial_update} per step.

        The sequence is lazy, finite and cannot be restarted.
        """
        async for step, update, _ in self._run(user_id, messages, thread_id):
            yield {step: update}

    async def get_messages(self, user_id: str, thread_id: str | None = None) -> dict[str, Any]:
        """
        Read a thread's messages without running the graph.

        Missing or unreadable checkpoints read as an empty thread in the
        active_user context.
        """
        thread_id = thread_id or user_id
        try:
            state = await self.checkpoints.get(thread_id)
        except Exception:
            logger.exception("Failed to read checkpoint: thread=%s", thread_id)
            state = None

        if state is None:
            return {
                "thread_id": thread_id,
                "messages": [],
                "user_context": UserContext.ACTIVE_USER,
            }
        return {
            "thread_id": thread_id,
            "messages": list(state.messages),
            "user_context": state.user_context,
        }

    # -------------------------------------------------------------------------
    # Graph execution
    # -------------------------------------------------------------------------

    async def _run(
        self,
        user_id: str,
        messages: Iterable[MessageInput],
        thread_id: str | None,
    ) -> AsyncIterator[tuple[str, dict[str, Any], ConversationState]]:
        thread_id = thread_id or user_id
        state = await self.checkpoints.get(thread_id)
        if state is None:
            state = ConversationState(user_id=user_id, thread_id=thread_id)
        state.messages.extend(_to_turn(m) for m in messages)

        update = await self._detect_context(state)
        state.user_context = update["user_context"]
        await self.checkpoints.put(thread_id, state)
        yield DETECT_CONTEXT, update, state

        update = await self._chat_agent(state)
        state.messages.extend(update["messages"])
        await self.checkpoints.put(thread_id, state)
        yield CHAT_AGENT, update, state

    async def _detect_context(self, state: ConversationState) -> dict[str, Any]:
        try:
            has_playlist = await self.playlists.has_active(state.user_id)
            result = await self.detector.detect(state.user_id, has_playlist)
        except Exception:
            if not self.config.degrade_on_context_error:
                raise
            logger.warning(
                "Context detection failed for user=%s, using %s",
                state.user_id,
                UserContext.ACTIVE_USER,
                exc_info=True,
            )
            return {"user_context": UserContext.ACTIVE_USER}
        return {"user_context": result.user_context}

    async def _chat_agent(self, state: ConversationState) -> dict[str, Any]:
        latest = state.latest_user_message()
        if latest is None:
            return _reply(EMPTY_TURN_REPLY)

        intent = await self.classifier.classify(latest.content)
        logger.info(
            "Intent detected: user=%s intent=%s task=%s confidence=%.2f",
            state.user_id,
            intent.intent,
            intent.task_type,
            intent.confidence,
        )

        if intent.intent == Intent.TASK_EXECUTION:
            if intent.confidence >= self.config.delegation_confidence:
                return _reply(await self._delegate(state, intent.task_type))
            return _reply(DISAMBIGUATION_REPLY)

        return _reply(await self._converse(state))

    async def _delegate(self, state: ConversationState, task_type: TaskType) -> str:
        try:
            outcome = await self.router.execute(state.user_id, task_type, state.user_context)
        except Exception as e:
            logger.exception(
                "Task delegation raised: user=%s task=%s", state.user_id, task_type
            )
            return SYSTEM_ERROR_REPLY.format(
                excerpt=_excerpt(e, self.config.error_excerpt_chars)
            )

        if outcome.succeeded:
            logger.info(
                "Task delegation succeeded: user=%s task=%s executed_at=%s",
                state.user_id,
                task_type,
                outcome.metadata.executed_at.isoformat(),
            )
            return outcome.task_result.content or TASK_DONE_REPLY

        logger.error(
            "Task delegation failed: user=%s task=%s error=%s",
            state.user_id,
            task_type,
            outcome.metadata.error_message,
        )
        return TASK_FAILURE_REPLY

    async def _converse(self, state: ConversationState) -> str:
        toolbox = CoachingToolbox(self.activity, state.user_id)
        history = _model_history(state.messages)
        reply = await self.model.converse(
            build_coach_system_prompt(state.user_id, state.user_context),
            history,
            toolbox.definitions,
            toolbox.execute,
        )
        logger.info(
            "Chat reply: user=%s context=%s messages=%d reply_chars=%d",
            state.user_id,
            state.user_context,
            len(state.messages),
            len(reply),
        )
        return reply


def _reply(content: str) -> dict[str, Any]:
    return {"messages": [ConversationTurn(role=Role.ASSISTANT, content=content)]}


def _model_history(turns: list[ConversationTurn]) -> list[dict[str, str]]:
    """Model-facing history: non-empty turns, starting at the first user turn."""
    history = [{"role": t.role.value, "content": t.content} for t in turns if t.content.strip()]
    while history and history[0]["role"] != Role.USER.value:
        history.pop(0)
    return history
