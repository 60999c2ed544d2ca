"""
Intent classification for coaching messages.

Keyword patterns run first. When the pattern confidence is below 0.8 and a
model is available, a structured model call refines the result; any model
failure or unusable reply keeps the pattern result.

Uses the STANDARD tier -- classification sits on the interactive path.
"""

import logging
import re
from typing import Literal

from pydantic import BaseModel, Field

from aimcoach.ai.llm_client import GenerativeModel, ModelTier
from aimcoach.ai.prompts import INTENT_SYSTEM_PROMPT
from aimcoach.core import constants
from aimcoach.core.constants import Intent, TaskType
from aimcoach.core.errors import ModelServiceError
from aimcoach.core.schemas import IntentResult

logger = logging.getLogger(__name__)


# =============================================================================
# Patterns
# =============================================================================

# Explicit task requests. Checked in order, first match wins.
TASK_PATTERNS: dict[TaskType, list[str]] = {
    TaskType.PLAYLIST_BUILDING: [
        r"\b(make|build|create|generate|give)\b.*\b(playlist|routine|practice plan|training plan)\b",
        r"\bplaylist\b.*\b(for me|please)\b",
        r"\bcustom (plan|routine|playlist)\b",
        r"\bnew playlist\b",
    ],
    TaskType.DAILY_REPORT: [
        r"\bdaily report\b",
        r"\btoday'?s (report|recap|summary)\b",
        r"\b(recap|summary|sum up|summarize) (of )?(my )?(today|the day|my day)\b",
        r"\bhow did (i|my practice) do today\b",
    ],
    TaskType.SCORE_ANALYSIS: [
        r"\banaly[sz]e\b.*\b(score|scores|runs|results|performance)\b",
        r"\b(score|performance) (analysis|breakdown|evaluation)\b",
        r"\btoday'?s (scores|results)\b",
        r"\banaly[sz]e (it|this|that|them)\b",
    ],
    TaskType.PROGRESS_REVIEW: [
        r"\bprogress (review|check|report)\b",
        r"\breview (my )?(progress|growth|improvement)\b",
        r"\bhave i (improved|gotten better|been improving)\b",
        r"\bhow (am i|have i been) (progressing|improving)\b",
    ],
}

# Task nouns without an explicit request. Classified as a task with low
# confidence so the player is asked which task they meant.
WEAK_TASK_HINTS: dict[TaskType, list[str]] = {
    TaskType.PLAYLIST_BUILDING: [r"\bplaylist\b", r"\broutine\b"],
    TaskType.DAILY_REPORT: [r"\breport\b", r"\brecap\b"],
    TaskType.SCORE_ANALYSIS: [r"\bscores?\b", r"\banaly(sis|ze|se)\b"],
    TaskType.PROGRESS_REVIEW: [r"\bprogress\b", r"\bimprov(e|ed|ing|ement)\b"],
}

INFO_PATTERNS: list[str] = [
    r"\bwhat (is|are|does)\b",
    r"\bhow (do|does|can|should) (i|you|it|this)\b",
    r"\bexplain\b",
    r"\btell me about\b",
    r"\bwhy (is|are|do|does)\b",
    r"\bwhat'?s the difference\b",
]

GREETING_PATTERNS: list[str] = [
    r"^\s*(hi|hello|hey|yo|hiya|howdy)\b",
    r"\bgood (morning|afternoon|evening)\b",
    r"\bnice to meet you\b",
]

_COMPILED_TASK = {t: [re.compile(p) for p in ps] for t, ps in TASK_PATTERNS.items()}
_COMPILED_WEAK = {t: [re.compile(p) for p in ps] for t, ps in WEAK_TASK_HINTS.items()}
_COMPILED_INFO = [re.compile(p) for p in INFO_PATTERNS]
_COMPILED_GREETING = [re.compile(p) for p in GREETING_PATTERNS]


class IntentDraft(BaseModel):
    """Model output for intent refinement."""

    intent: Literal["task_execution", "information_request", "general_conversation"]
    task_type: (
        Literal["daily_report", "score_analysis", "playlist_building", "progress_review"] | None
    ) = None
    confidence: float = Field(ge=0.0, le=1.0)


# =============================================================================
# IntentClassifier
# =============================================================================


class IntentClassifier:
    """Maps an utterance to an IntentResult."""

    def __init__(
        self,
        model: GenerativeModel | None = None,
        refine_with_model: bool = True,
        refinement_threshold: float = constants.MODEL_REFINEMENT_THRESHOLD,
    ) -> None:
        self.model = model
        self.refine_with_model = refine_with_model and model is not None
        self.refinement_threshold = refinement_threshold
        # Refined results per utterance so repeated input gets the same answer
        self._refined: dict[str, IntentResult] = {}

    async def classify(self, utterance: str) -> IntentResult:
        """
        Classify a single utterance.

        Args:
            utterance: Raw text of the latest user turn.

        Returns:
            IntentResult with task_type set iff intent is task_execution.
        """
        if not utterance or not utterance.strip():
            return IntentResult(
                intent=Intent.GENERAL_CONVERSATION,
                confidence=constants.EMPTY_MESSAGE_CONFIDENCE,
            )

        pattern_result = self.classify_by_patterns(utterance)
        if pattern_result.confidence >= self.refinement_threshold or not self.refine_with_model:
            logger.debug(
                "Intent by pattern: intent=%s task=%s confidence=%.2f",
                pattern_result.intent,
                pattern_result.task_type,
                pattern_result.confidence,
            )
            return pattern_result

        key = utterance.strip().lower()
        if key in self._refined:
            return self._refined[key]

        refined = await self._classify_with_model(utterance)
        self._refined[key] = refined if refined is not None else pattern_result
        return self._refined[key]

    # -------------------------------------------------------------------------
    # Pattern classification
    # -------------------------------------------------------------------------

    @staticmethod
    def classify_by_patterns(utterance: str) -> IntentResult:
        """Keyword-based classification. Pure function of the utterance."""
        text = utterance.lower().strip()

        for task_type, patterns in _COMPILED_TASK.items():
            if any(p.search(text) for p in patterns):
                return IntentResult(
                    intent=Intent.TASK_EXECUTION,
                    task_type=task_type,
                    confidence=constants.STRONG_TASK_CONFIDENCE,
                )

        if any(p.search(text) for p in _COMPILED_INFO):
            return IntentResult(
                intent=Intent.INFORMATION_REQUEST,
                confidence=constants.INFORMATION_CONFIDENCE,
            )

        if any(p.search(text) for p in _COMPILED_GREETING):
            return IntentResult(
                intent=Intent.GENERAL_CONVERSATION,
                confidence=constants.GREETING_CONFIDENCE,
            )

        for task_type, patterns in _COMPILED_WEAK.items():
            if any(p.search(text) for p in patterns):
                return IntentResult(
                    intent=Intent.TASK_EXECUTION,
                    task_type=task_type,
                    confidence=constants.WEAK_TASK_CONFIDENCE,
                )

        return IntentResult(
            intent=Intent.GENERAL_CONVERSATION,
            confidence=constants.DEFAULT_CONFIDENCE,
        )

    # -------------------------------------------------------------------------
    # Model refinement
    # -------------------------------------------------------------------------

    async def _classify_with_model(self, utterance: str) -> IntentResult | None:
        """Ask the model; None when the call fails or the reply is unusable."""
        try:
            draft = await self.model.complete(
                f'Message: "{utterance}"',
                IntentDraft,
                system=INTENT_SYSTEM_PROMPT,
                tier=ModelTier.STANDARD,
            )
        except ModelServiceError as e:
            logger.warning("Model intent refinement failed, using pattern result: %s", e)
            return None

        intent = Intent(draft.intent)
        task_type = TaskType(draft.task_type) if draft.task_type else None
        if (intent == Intent.TASK_EXECUTION) != (task_type is not None):
            logger.warning(
                "Model intent reply inconsistent (intent=%s task=%s), using pattern result",
                draft.intent,
                draft.task_type,
            )
            return None

        logger.info(
            "Intent by model: intent=%s task=%s confidence=%.2f",
            intent,
            task_type,
            draft.confidence,
        )
        return IntentResult(intent=intent, task_type=task_type, confidence=draft.confidence)
