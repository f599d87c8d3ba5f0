"""Normalize raw session events into well-formed session records.

Malformed input is never rejected. Every field falls back to a safe
default so recording analytics can't get in the way of the timer itself.
"""

import math
import secrets
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

from pomodoro_insights.models.session import (
    SessionEvent,
    SessionMode,
    SessionReason,
    SessionRecord,
    format_timestamp,
    parse_timestamp,
)

# Ratios at or above this count as a finished stage.
COMPLETION_THRESHOLD = 0.999

_TRUE_STRINGS = {"true", "1", "yes", "y", "on"}


def safe_number(value: Any) -> float:
    """Coerce a value to a finite float; anything else becomes 0."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _finite_number(value: Any) -> Optional[float]:
    """A real number that is finite, else None. Strings and booleans don't count."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def safe_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    if isinstance(value, float) and not math.isfinite(value):
        return False
    return bool(value)


def normalize_mode(value: Any) -> SessionMode:
    try:
        return SessionMode(value)
    except ValueError:
        return SessionMode.FOCUS


def normalize_reason(value: Any) -> SessionReason:
    try:
        return SessionReason(value)
    except ValueError:
        return SessionReason.ABANDONED


def normalize_timestamp(value: Any, now: datetime) -> str:
    parsed = parse_timestamp(value)
    return format_timestamp(parsed if parsed is not None else now)


def generate_session_id(now: datetime) -> str:
    """Build a session id from the current time and a short random suffix."""
    millis = int(now.timestamp() * 1000)
    return f"session_{millis}_{secrets.token_hex(3)}"


def normalize_session(
    raw: Union[SessionEvent, Mapping[str, Any], None],
    now: Optional[datetime] = None,
) -> SessionRecord:
    """Turn a raw event into a canonical SessionRecord.

    Pure apart from reading the clock and random id generation when the
    event lacks timestamps or an id; pass ``now`` to pin the clock.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    if raw is None:
        event = SessionEvent()
    elif isinstance(raw, SessionEvent):
        event = raw
    else:
        event = SessionEvent.model_validate(dict(raw))

    planned_seconds = max(1, round_half_up(safe_number(event.planned_seconds)))
    actual_seconds = min(
        planned_seconds, max(0, round_half_up(safe_number(event.actual_seconds)))
    )

    completion_ratio = _finite_number(event.completion_ratio)
    if completion_ratio is None:
        completion_ratio = actual_seconds / planned_seconds
    completion_ratio = clamp(completion_ratio, 0.0, 1.0)

    reason = normalize_reason(event.reason)
    completed = (
        safe_flag(event.completed)
        or reason == SessionReason.COMPLETED
        or completion_ratio >= COMPLETION_THRESHOLD
    )

    cycle_index = max(1, round_half_up(safe_number(event.cycle_index) or 1))

    session_id = event.session_id
    if not session_id:
        session_id = generate_session_id(now)

    return SessionRecord(
        session_id=str(session_id),
        started_at=normalize_timestamp(event.started_at, now),
        ended_at=normalize_timestamp(event.ended_at, now),
        mode=normalize_mode(event.mode),
        planned_seconds=planned_seconds,
        actual_seconds=actual_seconds,
        completion_ratio=completion_ratio,
        completed=completed,
        was_skipped=safe_flag(event.was_skipped),
        cycle_index=cycle_index,
        reason=reason,
    )


def has_signal(record: SessionRecord) -> bool:
    """Whether a record carries anything worth persisting."""
    return record.actual_seconds > 0 or record.reason == SessionReason.COMPLETED
