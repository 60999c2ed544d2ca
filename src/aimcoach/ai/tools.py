"""
Read-only coaching tools for conversational replies.

The model may call these during a plain conversational turn. Every tool is
scoped to the player the conversation belongs to and only reads activity.
"""

import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from aimcoach.infra.sources import ActivitySource
from aimcoach.pipelines.stats import summarize_activity

logger = logging.getLogger(__name__)

MAX_SCORES_LIMIT = 100
DEFAULT_STATS_DAYS = 14


COACHING_TOOLS: list[dict[str, Any]] = [
    {
        "name": "find_recent_scores",
        "description": "Get the player's recent aim-trainer runs (KovaaK's and Aim Lab), newest first",
        "input_schema": {
            "type": "object",
            "properties": {
                "limit": {
                    "type": "integer",
                    "description": "Maximum number of runs to return (1-100, default 20)",
                },
                "days": {
                    "type": "integer",
                    "description": "Only include runs from the last N days",
                },
                "scenario": {
                    "type": "string",
                    "description": "Only include runs whose scenario name contains this text",
                },
            },
        },
    },
    {
        "name": "calculate_user_stats",
        "description": (
            "Calculate aggregate statistics of the player's performance over a period: "
            "averages, best scores, trend and a per-scenario breakdown"
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "days": {
                    "type": "integer",
                    "description": "Number of days to analyze (default 14)",
                },
            },
        },
    },
]


class CoachingToolbox:
    """Executes COACHING_TOOLS calls for one player."""

    def __init__(
        self,
        activity: ActivitySource,
        user_id: str,
        clock: Callable[[], datetime] | None = None,
    ):
        self.activity = activity
        self.user_id = user_id
        self.clock = clock or (lambda: datetime.now(UTC))

    @property
    def definitions(self) -> list[dict[str, Any]]:
        return COACHING_TOOLS

    async def execute(self, tool_name: str, tool_input: dict[str, Any]) -> str:
        """Execute a tool call and return its JSON result."""
        if tool_name == "find_recent_scores":
            return json.dumps(await self._find_recent_scores(tool_input), default=str)
        elif tool_name == "calculate_user_stats":
            return json.dumps(await self._calculate_user_stats(tool_input), default=str)

        logger.warning("Unknown tool requested: %s", tool_name)
        return json.dumps({"error": f"Unknown tool: {tool_name}"})

    async def _find_recent_scores(self, tool_input: dict[str, Any]) -> dict[str, Any]:
        limit = _clamp_int(tool_input.get("limit"), default=20, low=1, high=MAX_SCORES_LIMIT)
        days = tool_input.get("days")
        scenario = (tool_input.get("scenario") or "").lower().strip()

        if days:
            start = self.clock() - timedelta(days=_clamp_int(days, default=7, low=1, high=365))
            records = await self.activity.since(self.user_id, start)
        else:
            records = await self.activity.recent(self.user_id, MAX_SCORES_LIMIT)

        if scenario:
            records = [r for r in records if scenario in r.scenario.lower()]

        records = records[:limit]
        return {"count": len(records), "runs": [r.to_dict() for r in records]}

    async def _calculate_user_stats(self, tool_input: dict[str, Any]) -> dict[str, Any]:
        days = _clamp_int(tool_input.get("days"), default=DEFAULT_STATS_DAYS, low=1, high=365)
        records = await self.activity.since(self.user_id, self.clock() - timedelta(days=days))
        summary = summarize_activity(records)
        return {"days": days, **summary.to_dict()}


def _clamp_int(value: Any, default: int, low: int, high: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))
