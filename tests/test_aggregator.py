"""Tests for window aggregation and the finish pressure score."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from pomodoro_insights.core.aggregator import (
    build_summary,
    count_active_days,
    count_streak_days,
    filter_window,
    finish_pressure_score,
    format_duration,
    pressure_message,
    saturate,
    summarize_window,
)
from pomodoro_insights.core.normalizer import normalize_session
from pomodoro_insights.models.summary import WindowSummary

NOW = datetime(2024, 3, 10, 18, 0, 0, tzinfo=timezone.utc)


def make_record(days_ago=0, hours_ago=0, **fields):
    """Helper to build a normalized record ending relative to NOW."""
    ended = NOW - timedelta(days=days_ago, hours=hours_ago)
    payload = {
        "plannedSeconds": 1500,
        "actualSeconds": 1500,
        "mode": "focus",
        "reason": "completed",
        "endedAt": ended.isoformat(),
        "startedAt": (ended - timedelta(seconds=1500)).isoformat(),
    }
    payload.update(fields)
    return normalize_session(payload, now=NOW)


class TestStreak:
    """Streak counting over completed focus days."""

    def test_three_consecutive_days(self):
        records = [make_record(days_ago=d) for d in (0, 1, 2)]
        records.append(make_record(days_ago=4))
        assert count_streak_days(records, NOW) == 3

    def test_grace_day_when_today_missing(self):
        records = [make_record(days_ago=1)]
        assert count_streak_days(records, NOW) == 1

    def test_grace_day_continues_backward(self):
        records = [make_record(days_ago=d) for d in (1, 2, 3)]
        assert count_streak_days(records, NOW) == 3

    def test_only_one_grace_day(self):
        records = [make_record(days_ago=2), make_record(days_ago=3)]
        assert count_streak_days(records, NOW) == 0

    def test_no_completions(self):
        assert count_streak_days([], NOW) == 0
        unfinished = [make_record(actualSeconds=100, reason="reset")]
        assert count_streak_days(unfinished, NOW) == 0

    def test_breaks_do_not_count(self):
        records = [make_record(days_ago=0, mode="shortBreak")]
        assert count_streak_days(records, NOW) == 0

    def test_uses_utc_calendar_days(self):
        # 23:30 UTC yesterday and 00:30 UTC today are different days
        late = datetime(2024, 3, 9, 23, 30, tzinfo=timezone.utc)
        early = datetime(2024, 3, 10, 0, 30, tzinfo=timezone.utc)
        records = [
            normalize_session(
                {"plannedSeconds": 60, "reason": "completed", "endedAt": ts.isoformat()},
                now=NOW,
            )
            for ts in (late, early)
        ]
        assert count_streak_days(records, NOW) == 2

    def test_streak_ignores_window(self):
        """Test that a window summary still reports the full-history streak."""
        records = [make_record(days_ago=d) for d in range(10)]
        assert summarize_window(records, 7, now=NOW).streak_days == 10


def test_filter_window_cutoff():
    """Test that only records ending inside the window are kept."""
    inside = make_record(days_ago=6)
    edge = make_record(days_ago=7)
    outside = make_record(days_ago=7, hours_ago=1)
    bad = make_record()
    bad = bad.model_copy(update={"ended_at": "not a date"})

    kept = filter_window([inside, edge, outside, bad], 7, NOW)
    assert kept == [inside, edge]

    assert filter_window([inside, outside, bad], None, NOW) == [inside, outside, bad]


def test_active_days_counts_distinct_dates():
    records = [
        make_record(days_ago=0),
        make_record(days_ago=0, hours_ago=2),
        make_record(days_ago=3),
    ]
    assert count_active_days(records) == 2


def test_empty_window_is_all_zero():
    summary = summarize_window([], 7, now=NOW)

    assert summary.total_sessions == 0
    assert summary.completion_rate == 0
    assert summary.average_completion == 0
    assert summary.unfinished_ratio == 0
    assert summary.finish_pressure_score == 0


def test_window_metrics():
    """Test the aggregate counts for a mixed window."""
    records = [
        make_record(days_ago=0, plannedSeconds=3000, actualSeconds=3000),
        make_record(days_ago=1, plannedSeconds=1500, actualSeconds=750, reason="reset"),
        make_record(
            days_ago=1,
            mode="shortBreak",
            plannedSeconds=300,
            actualSeconds=100,
            reason="skipped",
            wasSkipped=True,
        ),
        make_record(days_ago=20),
    ]

    summary = summarize_window(records, 7, now=NOW)

    assert summary.window_days == 7
    assert summary.total_sessions == 3
    assert summary.completed_sessions == 1
    assert summary.unfinished_sessions == 2
    assert summary.completion_rate == pytest.approx(1 / 3)
    assert summary.total_planned_seconds == 4800
    assert summary.total_actual_seconds == 3850
    assert summary.focus_actual_seconds == 3750
    assert summary.deep_focus_sessions == 1
    assert summary.deep_focus_rate == pytest.approx(0.5)
    assert summary.unfinished_seconds == 950
    assert summary.unfinished_ratio == pytest.approx(950 / 4800)
    assert summary.average_completion == pytest.approx((1 + 0.5 + 1 / 3) / 3)
    assert summary.active_days == 2
    assert summary.consistency_rate == pytest.approx(2 / 7)
    assert summary.streak_days == 1


def test_unbounded_consistency_falls_back_to_completion_rate():
    records = [make_record(), make_record(actualSeconds=100, reason="reset")]
    summary = summarize_window(records, None, now=NOW)

    assert summary.window_days is None
    assert summary.consistency_rate == pytest.approx(summary.completion_rate)


def test_deep_focus_requires_45_minutes():
    records = [
        make_record(plannedSeconds=2700, actualSeconds=2700),
        make_record(plannedSeconds=2699, actualSeconds=2699),
    ]
    assert summarize_window(records, None, now=NOW).deep_focus_sessions == 1


def test_saturate_endpoints():
    assert saturate(0) == 0
    assert saturate(1) == pytest.approx(1)
    assert saturate(-2) == 0
    assert saturate(3) == pytest.approx(1)
    # Concave: midpoint maps well above linear
    assert saturate(0.5) > 0.8


def test_finish_pressure_perfect_and_empty():
    assert finish_pressure_score(1, 1, 1, 1000, 1, 0) == 100
    assert finish_pressure_score(0, 0, 0, 0, 0, 0) == 0


def test_finish_pressure_known_value():
    """Test the score against a hand-computed value."""
    base = 0.35 * 0.5 + 0.25 * 0.6 + 0.2 * 0.4 + 0.13 * (1 - math.exp(-0.5)) + 0.07 * 0.25
    adjusted = base - (0.3 ** 0.7) * 0.32
    expected = round(
        100 * (1 - math.exp(-4.5 * adjusted)) / (1 - math.exp(-4.5))
    )
    assert finish_pressure_score(0.5, 0.6, 0.4, 3, 0.25, 0.3) == expected


@pytest.mark.parametrize("unfinished_ratio", [0.0, 0.2, 0.6])
@pytest.mark.parametrize("streak", [0, 2, 9])
def test_finish_pressure_monotonic_in_completion_rate(unfinished_ratio, streak):
    """Test that raising the completion rate never lowers the score."""
    scores = [
        finish_pressure_score(rate / 20, 0.5, 0.3, streak, 0.2, unfinished_ratio)
        for rate in range(21)
    ]
    assert scores == sorted(scores)


def test_interruptions_lower_the_score():
    clean = finish_pressure_score(0.8, 0.8, 0.5, 3, 0.2, 0.0)
    interrupted = finish_pressure_score(0.8, 0.8, 0.5, 3, 0.2, 0.5)
    assert interrupted < clean


def test_build_summary_windows():
    records = [make_record(days_ago=d) for d in (0, 10, 40)]
    summary = build_summary(records, storage_path="/tmp/sessions.csv", now=NOW)

    assert summary.seven_day.total_sessions == 1
    assert summary.thirty_day.total_sessions == 2
    assert summary.all_time.total_sessions == 3
    assert summary.last_updated_at == "2024-03-10T18:00:00.000Z"

    payload = summary.model_dump(by_alias=True)
    assert set(payload) == {
        "lastUpdatedAt",
        "storagePath",
        "sevenDay",
        "thirtyDay",
        "allTime",
    }
    assert payload["allTime"]["finishPressureScore"] == summary.all_time.finish_pressure_score
    assert payload["sevenDay"]["windowDays"] == 7


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "0m"), (30, "1m"), (1499, "25m"), (3600, "1h"), (5400, "1h 30m")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


class TestPressureMessage:
    """Coaching line chosen from the window's completion rate."""

    def test_empty_window(self):
        assert pressure_message(WindowSummary()) == (
            "Finish your first session to start a momentum streak."
        )

    def test_leaking_reports_unfinished_time(self):
        summary = WindowSummary(
            total_sessions=4, completion_rate=0.5, unfinished_seconds=5400
        )
        assert pressure_message(summary) == (
            "You leaked 1h 30m this window. Closing sessions now recovers your pace."
        )

    def test_close_to_consistency(self):
        summary = WindowSummary(total_sessions=10, completion_rate=0.7)
        assert pressure_message(summary).startswith("You are close to consistency.")

    def test_high_completion(self):
        summary = WindowSummary(total_sessions=10, completion_rate=0.8)
        assert pressure_message(summary).startswith(
            "You are in a high-completion rhythm."
        )

    def test_uses_summarized_window(self):
        records = [
            make_record(),
            make_record(hours_ago=1, actualSeconds=300, reason="reset"),
            make_record(hours_ago=2, actualSeconds=0, reason="skipped"),
        ]
        summary = summarize_window(records, 7, now=NOW)

        assert summary.unfinished_seconds == 2700
        assert "You leaked 45m this window." in pressure_message(summary)
