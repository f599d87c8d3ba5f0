"""Stage drafts and the front-end side of session recording.

A draft is opened when a timer stage starts and finalized exactly once
when the stage completes, is skipped, reset, reconfigured or abandoned.
Finalizing produces the raw event the analytics backend persists.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from pomodoro_insights.core.backend import AnalyticsBackend
from pomodoro_insights.core.errors import InsightsError
from pomodoro_insights.core.normalizer import COMPLETION_THRESHOLD, round_half_up
from pomodoro_insights.models.session import (
    SessionEvent,
    SessionMode,
    SessionReason,
    format_timestamp,
)
from pomodoro_insights.models.summary import AnalyticsSummary

logger = logging.getLogger(__name__)

PERSIST_FAILED_MESSAGE = "Session tracking failed to persist for one event."
SUMMARY_FAILED_MESSAGE = "Unable to load insights right now."


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionDraft(BaseModel):
    """An in-progress stage that hasn't been recorded yet."""

    session_id: str
    started_at: str
    mode: SessionMode
    planned_seconds: int = Field(ge=1)
    cycle_index: int = Field(default=1, ge=1)

    @classmethod
    def create(
        cls,
        mode: SessionMode,
        cycle_index: int,
        planned_seconds: int,
        now: Optional[datetime] = None,
    ) -> "SessionDraft":
        return cls(
            session_id=str(uuid.uuid4()),
            started_at=format_timestamp(now or _utc_now()),
            mode=mode,
            planned_seconds=max(1, round_half_up(planned_seconds)),
            cycle_index=cycle_index,
        )

    def finalize(
        self,
        reason: SessionReason,
        seconds_left: int = 0,
        forced_actual_seconds: Optional[float] = None,
        mark_skipped: bool = False,
        now: Optional[datetime] = None,
    ) -> Optional[SessionEvent]:
        """Build the event for this stage, or None if no time elapsed.

        Elapsed time is ``planned - seconds_left`` unless
        ``forced_actual_seconds`` is given. Completions are always kept.
        """
        if forced_actual_seconds is None:
            elapsed = self.planned_seconds - seconds_left
        else:
            elapsed = forced_actual_seconds
        actual_seconds = max(0, min(self.planned_seconds, round_half_up(elapsed)))

        if actual_seconds <= 0 and reason != SessionReason.COMPLETED:
            return None

        completion_ratio = (
            min(1.0, actual_seconds / self.planned_seconds)
            if self.planned_seconds > 0
            else 0.0
        )

        return SessionEvent(
            session_id=self.session_id,
            started_at=self.started_at,
            ended_at=format_timestamp(now or _utc_now()),
            mode=self.mode.value,
            planned_seconds=self.planned_seconds,
            actual_seconds=actual_seconds,
            completion_ratio=completion_ratio,
            completed=(
                reason == SessionReason.COMPLETED
                or completion_ratio >= COMPLETION_THRESHOLD
            ),
            was_skipped=mark_skipped,
            cycle_index=self.cycle_index,
            reason=reason.value,
        )


class SessionTracker:
    """Drives drafts for a timer and records them without ever raising.

    Persistence problems are logged and surfaced through ``last_error`` so
    the timer keeps running when analytics are unavailable.
    """

    def __init__(self, backend: AnalyticsBackend):
        self.backend = backend
        self.active: Optional[SessionDraft] = None
        self.summary: Optional[AnalyticsSummary] = None
        self.last_error: Optional[str] = None

    def start(
        self,
        mode: SessionMode,
        cycle_index: int,
        planned_seconds: int,
        now: Optional[datetime] = None,
    ) -> SessionDraft:
        """Open a draft for a new stage, replacing any unfinished one."""
        self.active = SessionDraft.create(mode, cycle_index, planned_seconds, now=now)
        return self.active

    def finish(
        self,
        reason: SessionReason,
        seconds_left: int = 0,
        forced_actual_seconds: Optional[float] = None,
        mark_skipped: bool = False,
        now: Optional[datetime] = None,
    ) -> Optional[SessionEvent]:
        """Finalize the active draft and persist it.

        Returns the event that was sent, or None when there was no draft
        or nothing to record. The draft is closed either way.
        """
        draft = self.active
        if draft is None:
            return None
        self.active = None

        event = draft.finalize(
            reason,
            seconds_left=seconds_left,
            forced_actual_seconds=forced_actual_seconds,
            mark_skipped=mark_skipped,
            now=now,
        )
        if event is None:
            return None

        try:
            self.backend.record_session(event, now=now)
            self.summary = self.backend.get_summary(now=now)
            self.last_error = None
        except InsightsError as e:
            logger.error("Failed to persist session analytics: %s", e)
            self.last_error = PERSIST_FAILED_MESSAGE
        return event

    def refresh_summary(self, now: Optional[datetime] = None) -> Optional[AnalyticsSummary]:
        """Reload the summary; on failure keep the previous one and set last_error."""
        try:
            self.summary = self.backend.get_summary(now=now)
            self.last_error = None
        except InsightsError as e:
            logger.error("Failed to load analytics summary: %s", e)
            self.last_error = SUMMARY_FAILED_MESSAGE
        return self.summary
