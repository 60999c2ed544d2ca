"""Compact statistics over a window of aim-trainer runs.

The task pipelines send these summaries to the model instead of raw rows,
and the chat tools return them as JSON.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from aimcoach.core import constants
from aimcoach.core.constants import TrendDirection
from aimcoach.core.schemas import ActivityRecord

# Scenarios listed in prompt summaries
MAX_PROMPT_SCENARIOS = 10

_COLUMNS = ["timestamp", "scenario", "score", "accuracy", "source"]


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass
class ScenarioStats:
    """Aggregates for one scenario inside a window."""

    name: str
    attempts: int
    average_score: float
    average_accuracy: float
    best_score: float


@dataclass
class ActivitySummary:
    """Aggregates for a whole window of runs."""

    count: int
    average_score: float
    average_accuracy: float
    best_score: float
    active_days: int
    date_range: tuple[str, str] | None
    trend: TrendDirection
    change_pct: float
    scenarios: list[ScenarioStats] = field(default_factory=list)

    @classmethod
    def empty(cls) -> ActivitySummary:
        return cls(
            count=0,
            average_score=0.0,
            average_accuracy=0.0,
            best_score=0.0,
            active_days=0,
            date_range=None,
            trend=TrendDirection.STABLE,
            change_pct=0.0,
        )

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "average_score": self.average_score,
            "average_accuracy": self.average_accuracy,
            "best_score": self.best_score,
            "active_days": self.active_days,
            "date_range": list(self.date_range) if self.date_range else None,
            "trend": self.trend.value,
            "change_pct": self.change_pct,
            "scenarios": [vars(s) for s in self.scenarios],
        }

    def to_prompt(self) -> str:
        """Render the summary as a compact text block for a model prompt."""
        if self.count == 0:
            return "No runs in this window."

        lines = [
            f"Runs: {self.count} | Active days: {self.active_days} | "
            f"Avg score: {self.average_score:.1f} | Avg accuracy: {self.average_accuracy:.1%} | "
            f"Best score: {self.best_score:.1f}",
        ]
        if self.date_range:
            lines.append(f"Date range: {self.date_range[0]} -> {self.date_range[1]}")
        lines.append(f"Trend (earlier vs later half): {self.trend.value} ({self.change_pct:+.1f}%)")
        lines.append("Per scenario:")
        for s in self.scenarios[:MAX_PROMPT_SCENARIOS]:
            lines.append(
                f"- {s.name}: {s.attempts} runs, avg score {s.average_score:.1f}, "
                f"avg accuracy {s.average_accuracy:.1%}, best {s.best_score:.1f}"
            )
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Computation
# ---------------------------------------------------------------------------


def records_to_frame(records: Sequence[ActivityRecord]) -> pd.DataFrame:
    """Build a chronologically ordered DataFrame from activity records."""
    if not records:
        return pd.DataFrame(columns=_COLUMNS)
    df = pd.DataFrame(
        [
            {
                "timestamp": r.timestamp,
                "scenario": r.scenario,
                "score": float(r.score),
                "accuracy": float(r.accuracy),
                "source": str(r.source),
            }
            for r in records
        ],
        columns=_COLUMNS,
    )
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    return df.sort_values("timestamp", kind="stable").reset_index(drop=True)


def compute_direction(
    earlier_avg: float, later_avg: float, threshold: float = constants.TREND_THRESHOLD
) -> tuple[TrendDirection, float]:
    """Compute trend direction and change percentage between two averages."""
    if earlier_avg == 0:
        return (TrendDirection.STABLE, 0.0)

    change_pct = ((later_avg - earlier_avg) / abs(earlier_avg)) * 100

    if change_pct > threshold * 100:
        return (TrendDirection.IMPROVING, change_pct)
    elif change_pct < -threshold * 100:
        return (TrendDirection.DECLINING, change_pct)
    return (TrendDirection.STABLE, change_pct)


def summarize_activity(
    records: Sequence[ActivityRecord], trend_threshold: float = constants.TREND_THRESHOLD
) -> ActivitySummary:
    """Summarize a window of runs.

    Scores from different scenarios live on different scales, so the trend
    compares each run's score relative to its scenario mean between the
    earlier and later half of the window.
    """
    df = records_to_frame(records)
    if df.empty:
        return ActivitySummary.empty()

    grouped = (
        df.groupby("scenario")
        .agg(
            attempts=("score", "size"),
            average_score=("score", "mean"),
            average_accuracy=("accuracy", "mean"),
            best_score=("score", "max"),
        )
        .sort_values(["attempts", "average_score"], ascending=[False, False])
    )
    scenarios = [
        ScenarioStats(
            name=str(name),
            attempts=int(row.attempts),
            average_score=round(float(row.average_score), 2),
            average_accuracy=round(float(row.average_accuracy), 4),
            best_score=round(float(row.best_score), 2),
        )
        for name, row in grouped.iterrows()
    ]

    scenario_mean = df.groupby("scenario")["score"].transform("mean").replace(0, np.nan)
    relative = (df["score"] / scenario_mean).fillna(1.0).to_numpy()

    half = len(relative) // 2
    if half == 0:
        trend, change_pct = TrendDirection.STABLE, 0.0
    else:
        trend, change_pct = compute_direction(
            float(np.mean(relative[:half])), float(np.mean(relative[half:])), trend_threshold
        )

    return ActivitySummary(
        count=len(df),
        average_score=round(float(df["score"].mean()), 2),
        average_accuracy=round(float(df["accuracy"].mean()), 4),
        best_score=round(float(df["score"].max()), 2),
        active_days=int(df["timestamp"].dt.date.nunique()),
        date_range=(
            df["timestamp"].iloc[0].isoformat(),
            df["timestamp"].iloc[-1].isoformat(),
        ),
        trend=trend,
        change_pct=round(change_pct, 1),
        scenarios=scenarios,
    )
