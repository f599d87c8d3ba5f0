"""Rolling-window productivity metrics over the session history.

Everything here is a pure function of the record list and ``now``. Callers
pass the clock in explicitly; the defaults read wall-clock UTC.

The headline number is the finish pressure score: a weighted blend of
completion, consistency, streak and deep-focus signals, penalized by the
share of planned time left unfinished, then pushed through a saturating
curve so the 0-1 momentum maps onto a 0-100 score.
"""

import math
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Set

from pomodoro_insights.core.normalizer import clamp, round_half_up
from pomodoro_insights.models.session import SessionRecord, format_timestamp
from pomodoro_insights.models.summary import AnalyticsSummary, WindowSummary

DEEP_FOCUS_SECONDS = 45 * 60

COMPLETION_WEIGHT = 0.35
AVERAGE_COMPLETION_WEIGHT = 0.25
CONSISTENCY_WEIGHT = 0.20
STREAK_WEIGHT = 0.13
DEEP_FOCUS_WEIGHT = 0.07

STREAK_HALF_LIFE_DAYS = 6
INTERRUPTION_EXPONENT = 0.7
INTERRUPTION_WEIGHT = 0.32
SATURATION_CURVE = 4.5

SUMMARY_WINDOWS = (7, 30, None)

LEAKING_COMPLETION_RATE = 0.55
CONSISTENT_COMPLETION_RATE = 0.8


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_bounded(window_days: Optional[int]) -> bool:
    return window_days is not None and window_days > 0


def filter_window(
    records: Iterable[SessionRecord], window_days: Optional[int], now: datetime
) -> List[SessionRecord]:
    """Records that ended within the trailing window. Unbounded keeps everything."""
    if not is_bounded(window_days):
        return list(records)

    cutoff = _as_utc(now) - timedelta(days=window_days)
    relevant = []
    for record in records:
        ended = record.ended
        if ended is not None and ended >= cutoff:
            relevant.append(record)
    return relevant


def _end_dates(records: Iterable[SessionRecord]) -> Set[date]:
    days = set()
    for record in records:
        ended = record.ended
        if ended is not None:
            days.add(ended.date())
    return days


def count_active_days(records: Iterable[SessionRecord]) -> int:
    """Number of distinct UTC calendar days on which a record ended."""
    return len(_end_dates(records))


def count_streak_days(records: Iterable[SessionRecord], now: datetime) -> int:
    """Consecutive days, ending today, with at least one completed focus session.

    If today has nothing yet, yesterday may start the streak instead (one
    grace day). Counting stops at the first gap.
    """
    days = _end_dates(r for r in records if r.is_focus and r.completed)
    if not days:
        return 0

    streak = 0
    cursor = _as_utc(now).date()

    while True:
        if cursor in days:
            streak += 1
            cursor -= timedelta(days=1)
            continue

        if streak == 0:
            cursor -= timedelta(days=1)
            if cursor in days:
                streak += 1
                cursor -= timedelta(days=1)
                continue

        break

    return streak


def saturate(value: float) -> float:
    """Map [0, 1] onto [0, 1] with a concave exponential curve."""
    bounded = clamp(value, 0.0, 1.0)
    curve = (1 - math.exp(-SATURATION_CURVE * bounded)) / (
        1 - math.exp(-SATURATION_CURVE)
    )
    return clamp(curve, 0.0, 1.0)


def streak_momentum(streak_days: int) -> float:
    return 1 - math.exp(-streak_days / STREAK_HALF_LIFE_DAYS)


def finish_pressure_score(
    completion_rate: float,
    average_completion: float,
    consistency_rate: float,
    streak_days: int,
    deep_focus_rate: float,
    unfinished_ratio: float,
) -> int:
    """Blend the window's rates into a 0-100 score."""
    base_momentum = clamp(
        COMPLETION_WEIGHT * completion_rate
        + AVERAGE_COMPLETION_WEIGHT * average_completion
        + CONSISTENCY_WEIGHT * consistency_rate
        + STREAK_WEIGHT * streak_momentum(streak_days)
        + DEEP_FOCUS_WEIGHT * deep_focus_rate,
        0.0,
        1.0,
    )
    interruption_penalty = (
        clamp(unfinished_ratio, 0.0, 1.0) ** INTERRUPTION_EXPONENT * INTERRUPTION_WEIGHT
    )
    adjusted_momentum = clamp(base_momentum - interruption_penalty, 0.0, 1.0)
    return int(math.floor(saturate(adjusted_momentum) * 100 + 0.5))


def summarize_window(
    records: Sequence[SessionRecord],
    window_days: Optional[int],
    now: Optional[datetime] = None,
) -> WindowSummary:
    """Compute the metric set for one trailing window.

    ``records`` is the full history. The streak is always computed over
    all of it; every other metric only sees the records in the window.
    """
    if now is None:
        now = _utc_now()

    relevant = filter_window(records, window_days, now)

    total_sessions = len(relevant)
    completed_sessions = sum(1 for r in relevant if r.completed)
    completion_rate = completed_sessions / total_sessions if total_sessions else 0.0

    total_planned_seconds = sum(r.planned_seconds for r in relevant)
    total_actual_seconds = sum(r.actual_seconds for r in relevant)

    focus_sessions = [r for r in relevant if r.is_focus]
    focus_actual_seconds = sum(r.actual_seconds for r in focus_sessions)
    deep_focus_sessions = sum(
        1
        for r in focus_sessions
        if r.completed and r.actual_seconds >= DEEP_FOCUS_SECONDS
    )

    unfinished_sessions = total_sessions - completed_sessions
    unfinished_seconds = max(0, total_planned_seconds - total_actual_seconds)

    average_completion = (
        sum(clamp(r.completion_ratio, 0.0, 1.0) for r in relevant) / total_sessions
        if total_sessions
        else 0.0
    )

    active_days = count_active_days(relevant)
    streak_days = count_streak_days(records, now)

    if is_bounded(window_days):
        consistency_rate = clamp(active_days / window_days, 0.0, 1.0)
    else:
        consistency_rate = clamp(completion_rate, 0.0, 1.0)

    deep_focus_rate = (
        clamp(deep_focus_sessions / len(focus_sessions), 0.0, 1.0)
        if focus_sessions
        else 0.0
    )
    unfinished_ratio = (
        clamp(unfinished_seconds / total_planned_seconds, 0.0, 1.0)
        if total_planned_seconds > 0
        else 0.0
    )

    return WindowSummary(
        window_days=window_days,
        total_sessions=total_sessions,
        completed_sessions=completed_sessions,
        unfinished_sessions=unfinished_sessions,
        completion_rate=completion_rate,
        average_completion=average_completion,
        total_planned_seconds=total_planned_seconds,
        total_actual_seconds=total_actual_seconds,
        focus_actual_seconds=focus_actual_seconds,
        deep_focus_sessions=deep_focus_sessions,
        unfinished_seconds=unfinished_seconds,
        active_days=active_days,
        streak_days=streak_days,
        consistency_rate=consistency_rate,
        deep_focus_rate=deep_focus_rate,
        unfinished_ratio=unfinished_ratio,
        finish_pressure_score=finish_pressure_score(
            completion_rate,
            average_completion,
            consistency_rate,
            streak_days,
            deep_focus_rate,
            unfinished_ratio,
        ),
    )


def format_duration(seconds: float) -> str:
    """Whole minutes, or hours and minutes from an hour up (90m -> "1h 30m")."""
    total_minutes = max(0, round_half_up(seconds / 60))
    if total_minutes >= 60:
        hours, minutes = divmod(total_minutes, 60)
        return f"{hours}h" if minutes == 0 else f"{hours}h {minutes}m"
    return f"{total_minutes}m"


def pressure_message(summary: WindowSummary) -> str:
    """One line of coaching for a window, keyed off its completion rate."""
    if summary.total_sessions == 0:
        return "Finish your first session to start a momentum streak."

    if summary.completion_rate < LEAKING_COMPLETION_RATE:
        return (
            f"You leaked {format_duration(summary.unfinished_seconds)} this window. "
            "Closing sessions now recovers your pace."
        )

    if summary.completion_rate < CONSISTENT_COMPLETION_RATE:
        return (
            "You are close to consistency. Finish the next session fully "
            "to tighten your finish discipline."
        )

    return (
        "You are in a high-completion rhythm. "
        "Keep finishing to protect your momentum streak."
    )


def build_summary(
    records: Sequence[SessionRecord],
    storage_path: str,
    now: Optional[datetime] = None,
) -> AnalyticsSummary:
    """Summaries for the last 7 days, last 30 days and all time."""
    if now is None:
        now = _utc_now()

    seven_day, thirty_day, all_time = (
        summarize_window(records, window, now) for window in SUMMARY_WINDOWS
    )
    return AnalyticsSummary(
        last_updated_at=format_timestamp(now),
        storage_path=storage_path,
        seven_day=seven_day,
        thirty_day=thirty_day,
        all_time=all_time,
    )
