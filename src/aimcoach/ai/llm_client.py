"""
Two-Tier Generative Model Client for aim coaching.

Architecture:
  - STANDARD tier (Haiku 4.5): conversational replies and intent refinement
  - DEEP tier (Sonnet 4.5): task pipeline synthesis

Structured output: `complete()` forces a single tool call whose input_schema
is the pydantic model's JSON schema, then validates the tool input with
that model. Callers get a typed object or a ModelServiceError.

Cost tracking: Every API call logs model, tokens, estimated cost,
and cache hit status.
"""

import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any, TypeVar

import anthropic
from pydantic import BaseModel, ValidationError

from aimcoach.core.errors import ModelServiceError

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

# (tool_name, tool_input) -> tool result text
ToolHandler = Callable[[str, dict[str, Any]], Awaitable[str]]


# =============================================================================
# Model Tier Configuration
# =============================================================================


class ModelTier(StrEnum):
    """Two-tier model selection for cost optimization."""

    STANDARD = "claude-haiku-4-5-20251001"  # Chat and classification
    DEEP = "claude-sonnet-4-5-20250929"  # Task synthesis


def tier_from_name(name: str | ModelTier | None, default: ModelTier = ModelTier.STANDARD) -> ModelTier:
    """Map a config value ("standard", "deep" or a model id) to a ModelTier."""
    if name is None:
        return default
    if isinstance(name, ModelTier):
        return name
    value = str(name).lower().strip()
    if value == "deep":
        return ModelTier.DEEP
    if value == "standard":
        return ModelTier.STANDARD
    for tier in ModelTier:
        if tier.value == value:
            return tier
    logger.warning("Unknown model tier %r, using %s", name, default.name)
    return default


# Returned when the tool budget runs out before the model writes any text
NO_REPLY_FALLBACK = (
    "I looked through your recent runs but couldn't put an answer together. "
    "Could you ask again, a bit more specifically?"
)

# Pricing per million tokens (USD)
_PRICING = {
    ModelTier.STANDARD: {"input": 1.0, "output": 5.0, "cache_read": 0.1},
    ModelTier.DEEP: {"input": 3.0, "output": 15.0, "cache_read": 0.3},
}


def _log_usage(tier: ModelTier, usage: Any) -> None:
    """Log token usage and estimated cost after each API call."""
    prices = _PRICING[tier]
    input_tokens = getattr(usage, "input_tokens", 0) or 0
    output_tokens = getattr(usage, "output_tokens", 0) or 0
    cache_read = getattr(usage, "cache_read_input_tokens", 0) or 0
    cache_creation = getattr(usage, "cache_creation_input_tokens", 0) or 0

    # Non-cached input tokens = total input - cache_read - cache_creation
    regular_input = max(0, input_tokens - cache_read - cache_creation)

    input_cost = regular_input * prices["input"] / 1_000_000
    output_cost = output_tokens * prices["output"] / 1_000_000
    cache_read_cost = cache_read * prices["cache_read"] / 1_000_000
    # Cache creation costs 25% more than regular input
    cache_create_cost = cache_creation * prices["input"] * 1.25 / 1_000_000
    total_cost = input_cost + output_cost + cache_read_cost + cache_create_cost

    logger.info(
        "LLM call: model=%s in_tok=%d out_tok=%d cache_read=%d cache_create=%d cost=$%.4f",
        tier.value,
        input_tokens,
        output_tokens,
        cache_read,
        cache_creation,
        total_cost,
    )


def _build_cached_system(prompt_text: str) -> list[dict[str, Any]]:
    """Wrap a system prompt string in the Anthropic cache_control format."""
    return [
        {
            "type": "text",
            "text": prompt_text,
            "cache_control": {"type": "ephemeral"},
        }
    ]


def _schema_tool(schema: type[BaseModel]) -> dict[str, Any]:
    """Build the forced tool definition used for structured output."""
    return {
        "name": f"record_{schema.__name__.lower()}",
        "description": f"Record the result as a {schema.__name__} object.",
        "input_schema": schema.model_json_schema(),
    }


# =============================================================================
# GenerativeModel interface
# =============================================================================


class GenerativeModel(ABC):
    """What the coaching engine needs from a model service."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        schema: type[SchemaT],
        *,
        system: str | None = None,
        tier: ModelTier | None = None,
    ) -> SchemaT:
        """
        Produce an instance of `schema` for the prompt.

        Raises:
            ModelServiceError: call failed or the reply violated the schema
        """

    @abstractmethod
    async def converse(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        tool_handler: ToolHandler | None = None,
        *,
        tier: ModelTier | None = None,
    ) -> str:
        """
        Produce a free-text assistant reply, running tool calls through tool_handler.

        Raises:
            ModelServiceError: call failed
        """


# =============================================================================
# AnthropicModel
# =============================================================================


class AnthropicModel(GenerativeModel):
    """
    GenerativeModel backed by the Anthropic Messages API.

    Uses two-tier model selection:
      - chat_tier for converse() and intent refinement
      - task_tier for complete() calls from task pipelines
    """

    def __init__(
        self,
        api_key: str | None = None,
        chat_tier: ModelTier = ModelTier.STANDARD,
        task_tier: ModelTier = ModelTier.DEEP,
        timeout: int = 60,
        max_tokens: int = 2048,
        max_tool_iterations: int = 5,
    ):
        """
        Initialize the model client.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var)
            chat_tier: Tier for conversational replies
            task_tier: Default tier for structured completions
            timeout: Request timeout in seconds
            max_tokens: Output token cap per call
            max_tool_iterations: Tool-use round trips allowed per reply
        """
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self.chat_tier = chat_tier
        self.task_tier = task_tier
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.max_tool_iterations = max_tool_iterations
        self._client: anthropic.AsyncAnthropic | None = None

    def _get_client(self) -> anthropic.AsyncAnthropic:
        """Lazy initialization of the async Anthropic client."""
        if self._client is None:
            if not self.api_key:
                raise ModelServiceError(
                    "ANTHROPIC_API_KEY not configured. "
                    "Set environment variable or pass api_key to constructor."
                )
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def complete(
        self,
        prompt: str,
        schema: type[SchemaT],
        *,
        system: str | None = None,
        tier: ModelTier | None = None,
    ) -> SchemaT:
        use_tier = tier or self.task_tier
        tool = _schema_tool(schema)
        client = self._get_client()

        request: dict[str, Any] = {
            "model": use_tier.value,
            "max_tokens": self.max_tokens,
            "tools": [tool],
            "tool_choice": {"type": "tool", "name": tool["name"]},
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            request["system"] = _build_cached_system(system)

        logger.debug("Structured completion: tier=%s schema=%s", use_tier.name, schema.__name__)
        try:
            response = await client.messages.create(**request)
        except anthropic.APIError as e:
            raise ModelServiceError(
                f"Model call failed: {type(e).__name__}: {e}", model=use_tier.value
            ) from e

        _log_usage(use_tier, response.usage)

        payload = next(
            (block.input for block in response.content if block.type == "tool_use"), None
        )
        if payload is None:
            raise ModelServiceError(
                f"Model returned no {schema.__name__} tool call", model=use_tier.value
            )

        try:
            return schema.model_validate(payload)
        except ValidationError as e:
            logger.warning("Model reply violated %s schema: %s", schema.__name__, e)
            raise ModelServiceError(
                f"Model reply violated the {schema.__name__} schema",
                model=use_tier.value,
                details={"errors": e.errors()},
            ) from e

    async def converse(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        tool_handler: ToolHandler | None = None,
        *,
        tier: ModelTier | None = None,
    ) -> str:
        use_tier = tier or self.chat_tier
        client = self._get_client()
        history = list(messages)

        request: dict[str, Any] = {
            "model": use_tier.value,
            "max_tokens": self.max_tokens,
            "system": _build_cached_system(system),
        }
        if tools and tool_handler is not None:
            request["tools"] = tools

        # Tool-use loop, bounded to prevent infinite loops
        iterations_count = 0
        response = None
        try:
            for _ in range(max(1, self.max_tool_iterations)):
                iterations_count += 1
                response = await client.messages.create(messages=history, **request)
                _log_usage(use_tier, response.usage)

                if response.stop_reason != "tool_use" or tool_handler is None:
                    break

                tool_results = []
                for block in response.content:
                    if block.type == "tool_use":
                        logger.debug(f"Tool call: {block.name}({block.input})")
                        result = await tool_handler(block.name, dict(block.input))
                        tool_results.append(
                            {
                                "type": "tool_result",
                                "tool_use_id": block.id,
                                "content": result,
                            }
                        )

                history.append({"role": "assistant", "content": response.content})
                history.append({"role": "user", "content": tool_results})
        except anthropic.APIError as e:
            raise ModelServiceError(
                f"Model call failed: {type(e).__name__}: {e}", model=use_tier.value
            ) from e

        final_text = ""
        if response is not None:
            for block in response.content:
                if block.type == "text":
                    final_text += block.text

        final_text = final_text.strip()
        if not final_text:
            logger.warning(
                f"Conversational reply had no text after {iterations_count} iterations, using fallback"
            )
            final_text = NO_REPLY_FALLBACK

        logger.info(
            f"Conversational reply complete ({len(final_text)} chars, {iterations_count} iterations)"
        )
        return final_text


# Singleton instance for reuse
_model_instance: AnthropicModel | None = None


def get_model() -> AnthropicModel:
    """Get or create the singleton model client from the global configuration."""
    global _model_instance
    if _model_instance is None:
        from aimcoach.core.config import get_config

        config = get_config()
        _model_instance = AnthropicModel(
            api_key=config.model.api_key,
            chat_tier=tier_from_name(config.model.chat_tier, ModelTier.STANDARD),
            task_tier=tier_from_name(config.model.task_tier, ModelTier.DEEP),
            timeout=config.model.timeout,
            max_tokens=config.model.max_tokens,
            max_tool_iterations=config.chat.max_tool_iterations,
        )
    return _model_instance
