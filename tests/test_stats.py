"""Tests for activity statistics."""

import pytest

from aimcoach.core.constants import TrendDirection
from aimcoach.pipelines.stats import (
    ActivitySummary,
    compute_direction,
    records_to_frame,
    summarize_activity,
)


# ---------------------------------------------------------------------------
# compute_direction
# ---------------------------------------------------------------------------


class TestComputeDirection:
    def test_improving(self):
        direction, change = compute_direction(100.0, 110.0)
        assert direction == TrendDirection.IMPROVING
        assert change == pytest.approx(10.0)

    def test_declining(self):
        direction, change = compute_direction(100.0, 90.0)
        assert direction == TrendDirection.DECLINING
        assert change == pytest.approx(-10.0)

    def test_within_threshold_is_stable(self):
        direction, _ = compute_direction(100.0, 103.0)
        assert direction == TrendDirection.STABLE

    def test_zero_baseline_is_stable(self):
        assert compute_direction(0.0, 50.0) == (TrendDirection.STABLE, 0.0)

    def test_custom_threshold(self):
        direction, _ = compute_direction(100.0, 103.0, threshold=0.02)
        assert direction == TrendDirection.IMPROVING


# ---------------------------------------------------------------------------
# summarize_activity
# ---------------------------------------------------------------------------


class TestSummarizeActivity:
    def test_empty(self):
        summary = summarize_activity([])

        assert summary == ActivitySummary.empty()
        assert summary.to_prompt() == "No runs in this window."

    def test_aggregates(self, make_record):
        records = [
            make_record(hours_ago=1, scenario="Tile Frenzy", score=120.0, accuracy=0.9),
            make_record(hours_ago=2, scenario="Tile Frenzy", score=100.0, accuracy=0.7),
            make_record(hours_ago=30, scenario="1wall 6targets", score=80.0, accuracy=0.5),
        ]

        summary = summarize_activity(records)

        assert summary.count == 3
        assert summary.average_score == pytest.approx(100.0)
        assert summary.average_accuracy == pytest.approx(0.7)
        assert summary.best_score == 120.0
        assert summary.active_days == 2
        assert [s.name for s in summary.scenarios] == ["Tile Frenzy", "1wall 6targets"]
        assert summary.scenarios[0].attempts == 2
        assert summary.scenarios[0].best_score == 120.0

    def test_date_range_is_chronological(self, make_record):
        records = [make_record(hours_ago=1), make_record(hours_ago=5)]

        summary = summarize_activity(records)

        start, end = summary.date_range
        assert start < end

    def test_improving_trend(self, make_record):
        # Newest first, as sources return them
        records = [
            make_record(hours_ago=1, score=120.0),
            make_record(hours_ago=2, score=120.0),
            make_record(hours_ago=3, score=100.0),
            make_record(hours_ago=4, score=100.0),
        ]

        summary = summarize_activity(records)

        assert summary.trend == TrendDirection.IMPROVING
        assert summary.change_pct == pytest.approx(20.0)

    def test_declining_trend(self, make_record):
        records = [
            make_record(hours_ago=1, score=80.0),
            make_record(hours_ago=2, score=80.0),
            make_record(hours_ago=3, score=100.0),
            make_record(hours_ago=4, score=100.0),
        ]

        assert summarize_activity(records).trend == TrendDirection.DECLINING

    def test_trend_is_relative_to_each_scenario(self, make_record):
        # A high-scoring scenario played late must not read as improvement
        records = [
            make_record(hours_ago=1, scenario="Gridshot", score=1000.0),
            make_record(hours_ago=2, scenario="Gridshot", score=1000.0),
            make_record(hours_ago=3, scenario="Tile Frenzy", score=50.0),
            make_record(hours_ago=4, scenario="Tile Frenzy", score=50.0),
        ]

        assert summarize_activity(records).trend == TrendDirection.STABLE

    def test_single_run_is_stable(self, make_record):
        summary = summarize_activity([make_record()])

        assert summary.trend == TrendDirection.STABLE
        assert summary.change_pct == 0.0

    def test_to_prompt_lists_scenarios(self, make_record):
        summary = summarize_activity([make_record(scenario="Close Long Strafes")])

        prompt = summary.to_prompt()

        assert "Runs: 1" in prompt
        assert "Close Long Strafes" in prompt

    def test_to_dict_is_json_friendly(self, make_record):
        data = summarize_activity([make_record()]).to_dict()

        assert data["trend"] == "stable"
        assert isinstance(data["date_range"], list)
        assert data["scenarios"][0]["name"] == "1wall 6targets"


class TestRecordsToFrame:
    def test_sorted_oldest_first(self, make_record):
        df = records_to_frame([make_record(hours_ago=1), make_record(hours_ago=3)])

        assert df["timestamp"].is_monotonic_increasing

    def test_empty_has_columns(self):
        df = records_to_frame([])

        assert df.empty
        assert "score" in df.columns
