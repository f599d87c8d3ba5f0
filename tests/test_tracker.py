"""Tests for stage drafts, the tracker and the analytics backend boundary."""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from pomodoro_insights.core.backend import AnalyticsBackend
from pomodoro_insights.core.errors import BackendNotInitializedError, StorageError
from pomodoro_insights.core.store import RecordStore
from pomodoro_insights.core.tracker import (
    PERSIST_FAILED_MESSAGE,
    SUMMARY_FAILED_MESSAGE,
    SessionDraft,
    SessionTracker,
)
from pomodoro_insights.models.session import SessionMode, SessionReason

START = datetime(2024, 3, 10, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def backend():
    """Create a backend over a temporary data directory."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield AnalyticsBackend(RecordStore(Path(temp_dir)))


class TestSessionDraft:
    def test_create(self):
        draft = SessionDraft.create(SessionMode.FOCUS, 2, 1500, now=START)

        assert draft.started_at == "2024-03-10T09:00:00.000Z"
        assert draft.cycle_index == 2
        assert draft.session_id

    @pytest.mark.parametrize("planned, expected", [(1499.6, 1500), (0, 1), (-30, 1)])
    def test_create_rounds_and_floors_planned_seconds(self, planned, expected):
        draft = SessionDraft.create(SessionMode.FOCUS, 1, planned, now=START)
        assert draft.planned_seconds == expected

    def test_zero_length_completion_finalizes(self):
        draft = SessionDraft.create(SessionMode.FOCUS, 1, 0, now=START)
        event = draft.finalize(SessionReason.COMPLETED, now=START)

        assert event.planned_seconds == 1
        assert event.actual_seconds == 1
        assert event.completed is True

    def test_finalize_from_seconds_left(self):
        draft = SessionDraft.create(SessionMode.FOCUS, 1, 1500, now=START)
        event = draft.finalize(
            SessionReason.RESET, seconds_left=500, now=START + timedelta(minutes=17)
        )

        assert event.actual_seconds == 1000
        assert event.completion_ratio == pytest.approx(1000 / 1500)
        assert event.completed is False
        assert event.reason == "reset"
        assert event.ended_at == "2024-03-10T09:17:00.000Z"

    def test_finalize_forced_actual_is_clamped(self):
        draft = SessionDraft.create(SessionMode.SHORT_BREAK, 1, 300, now=START)
        event = draft.finalize(
            SessionReason.SKIPPED, forced_actual_seconds=900, mark_skipped=True, now=START
        )

        assert event.actual_seconds == 300
        assert event.completed is True
        assert event.was_skipped is True

    def test_finalize_without_elapsed_time_returns_none(self):
        draft = SessionDraft.create(SessionMode.FOCUS, 1, 1500, now=START)
        assert draft.finalize(SessionReason.RESET, seconds_left=1500, now=START) is None

    def test_completion_always_finalizes(self):
        draft = SessionDraft.create(SessionMode.FOCUS, 1, 1500, now=START)
        event = draft.finalize(SessionReason.COMPLETED, seconds_left=1500, now=START)

        assert event is not None
        assert event.completed is True


class TestSessionTracker:
    def test_finish_persists_and_refreshes_summary(self, backend):
        tracker = SessionTracker(backend)
        tracker.start(SessionMode.FOCUS, 1, 1500, now=START)

        event = tracker.finish(SessionReason.COMPLETED, now=START + timedelta(minutes=25))

        assert event is not None
        assert tracker.active is None
        assert tracker.last_error is None
        assert tracker.summary.all_time.completed_sessions == 1
        (record,) = backend.store.read_all_records()
        assert record.session_id == event.session_id

    def test_finish_is_once_per_stage(self, backend):
        tracker = SessionTracker(backend)
        tracker.start(SessionMode.FOCUS, 1, 1500, now=START)
        tracker.finish(SessionReason.COMPLETED, now=START)

        assert tracker.finish(SessionReason.COMPLETED, now=START) is None
        assert len(backend.store.read_all_records()) == 1

    def test_finish_survives_undecodable_log(self, backend):
        backend.store.initialize()
        with open(backend.store.records_path, "ab") as f:
            f.write(b"\xff\xfe\n")

        tracker = SessionTracker(backend)
        tracker.start(SessionMode.FOCUS, 1, 1500, now=START)
        tracker.finish(SessionReason.COMPLETED, now=START)

        assert tracker.last_error is None
        assert tracker.summary.all_time.total_sessions == 1

    def test_persist_failure_is_not_raised(self, backend):
        tracker = SessionTracker(backend)
        tracker.start(SessionMode.FOCUS, 1, 1500, now=START)

        with patch.object(
            backend.store, "append_session", side_effect=StorageError("disk full")
        ):
            event = tracker.finish(SessionReason.COMPLETED, now=START)

        assert event is not None
        assert tracker.last_error == PERSIST_FAILED_MESSAGE

    def test_unstarted_backend_is_tolerated(self):
        tracker = SessionTracker(AnalyticsBackend())
        tracker.start(SessionMode.FOCUS, 1, 60, now=START)

        tracker.finish(SessionReason.COMPLETED, now=START)
        assert tracker.last_error == PERSIST_FAILED_MESSAGE

        assert tracker.refresh_summary(now=START) is None
        assert tracker.last_error == SUMMARY_FAILED_MESSAGE

    def test_refresh_summary(self, backend):
        tracker = SessionTracker(backend)
        summary = tracker.refresh_summary(now=START)

        assert summary.all_time.total_sessions == 0
        assert tracker.last_error is None


class TestAnalyticsBackend:
    def test_calls_before_start_raise(self):
        backend = AnalyticsBackend()

        assert not backend.started
        with pytest.raises(BackendNotInitializedError, match="not initialized"):
            backend.get_summary()
        with pytest.raises(BackendNotInitializedError):
            backend.record_session({"plannedSeconds": 60})

    def test_start_uses_data_dir(self, tmp_path):
        backend = AnalyticsBackend()
        store = backend.start(tmp_path)

        assert backend.started
        assert store.records_path == tmp_path / "analytics" / "sessions.csv"
        assert backend.start(tmp_path / "elsewhere") is store

    def test_record_and_summarize(self, backend):
        record = backend.record_session(
            {"plannedSeconds": 1500, "actualSeconds": 1500, "reason": "completed"},
            now=START,
        )
        summary = backend.get_summary(now=START)

        assert record.completed
        assert summary.all_time.focus_actual_seconds == 1500
