"""Append-only session log backed by a single local text file."""

import logging
import math
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from pomodoro_insights.core import aggregator, codec
from pomodoro_insights.core.config import InsightsConfig
from pomodoro_insights.core.errors import StorageError
from pomodoro_insights.core.normalizer import (
    clamp,
    has_signal,
    normalize_mode,
    normalize_reason,
    normalize_session,
    round_half_up,
    safe_number,
)
from pomodoro_insights.models.session import SessionEvent, SessionRecord
from pomodoro_insights.models.summary import AnalyticsSummary

logger = logging.getLogger(__name__)

ANALYTICS_DIR = "analytics"
RECORDS_FILE = "sessions.csv"
HEADERS = (
    "session_id",
    "started_at",
    "ended_at",
    "mode",
    "planned_seconds",
    "actual_seconds",
    "completion_ratio",
    "completed",
    "was_skipped",
    "cycle_index",
    "reason",
)


def _bool_text(value: bool) -> str:
    return "true" if value else "false"


def record_to_fields(record: SessionRecord) -> List[str]:
    """Flatten a record into the column order of HEADERS."""
    return [
        record.session_id,
        record.started_at,
        record.ended_at,
        record.mode.value,
        str(record.planned_seconds),
        str(record.actual_seconds),
        f"{record.completion_ratio:.4f}",
        _bool_text(record.completed),
        _bool_text(record.was_skipped),
        str(record.cycle_index),
        record.reason.value,
    ]


def _strict_number(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        return math.nan


def record_from_fields(row: Sequence[str]) -> Optional[SessionRecord]:
    """Rebuild a record from decoded fields; None if the row is unusable."""
    if len(row) != len(HEADERS):
        return None

    (
        session_id,
        started_at,
        ended_at,
        mode,
        planned_seconds,
        actual_seconds,
        completion_ratio,
        completed,
        was_skipped,
        cycle_index,
        reason,
    ) = row

    planned = _strict_number(planned_seconds)
    actual = _strict_number(actual_seconds)
    if not (math.isfinite(planned) and math.isfinite(actual)):
        return None

    try:
        return SessionRecord(
            session_id=session_id,
            started_at=started_at,
            ended_at=ended_at,
            mode=normalize_mode(mode),
            planned_seconds=round_half_up(planned),
            actual_seconds=round_half_up(actual),
            completion_ratio=clamp(safe_number(completion_ratio), 0.0, 1.0),
            completed=completed == "true",
            was_skipped=was_skipped == "true",
            cycle_index=max(1, round_half_up(safe_number(cycle_index))),
            reason=normalize_reason(reason),
        )
    except ValidationError:
        return None


class RecordStore:
    """Durable append-only log of session records.

    The log lives at ``<base_dir>/analytics/sessions.csv``. Every public
    operation initializes storage lazily, so callers never need to call
    initialize() themselves.
    """

    def __init__(
        self,
        base_dir: Union[str, Path],
        analytics_dir_name: str = ANALYTICS_DIR,
        records_file_name: str = RECORDS_FILE,
    ):
        self.base_dir = Path(base_dir)
        self.analytics_dir = self.base_dir / analytics_dir_name
        self.records_path = self.analytics_dir / records_file_name
        self._initialized = False
        self._init_lock = threading.Lock()
        self._io_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: InsightsConfig) -> "RecordStore":
        return cls(
            config.data_dir,
            analytics_dir_name=config.analytics_dir_name,
            records_file_name=config.records_file_name,
        )

    @property
    def initialized(self) -> bool:
        return self._initialized

    def exists(self) -> bool:
        """Check if the session log has been created on disk."""
        return self.records_path.is_file()

    def initialize(self) -> None:
        """Create the storage directory and log file with its header.

        Idempotent and safe to call from several threads; at most one
        caller creates the file.
        """
        if self._initialized:
            return

        with self._init_lock:
            if self._initialized:
                return

            try:
                self.analytics_dir.mkdir(parents=True, exist_ok=True)
                try:
                    with open(self.records_path, "x", encoding="utf-8", newline="") as f:
                        f.write(codec.encode(HEADERS) + "\n")
                    logger.info("Created session log at %s", self.records_path)
                except FileExistsError:
                    pass
            except OSError as e:
                raise StorageError(
                    f"Failed to initialize session log at {self.records_path}: {e}"
                ) from e

            self._initialized = True

    def append_session(
        self,
        raw_event: Union[SessionEvent, Mapping[str, Any], None],
        now: Optional[datetime] = None,
    ) -> Optional[SessionRecord]:
        """Normalize an event and append it to the log.

        Returns the persisted record, or None when the event carried no
        elapsed time and wasn't a completion (nothing worth keeping).
        Raises StorageError if the write fails.
        """
        self.initialize()

        record = normalize_session(raw_event, now=now)
        if not has_signal(record):
            logger.debug(
                "Skipping %s: no elapsed time for reason %s",
                record.session_id,
                record.reason.value,
            )
            return None

        line = codec.encode(record_to_fields(record)) + "\n"
        with self._io_lock:
            try:
                with open(self.records_path, "a", encoding="utf-8", newline="") as f:
                    f.write(line)
            except OSError as e:
                raise StorageError(
                    f"Failed to append session {record.session_id}: {e}"
                ) from e

        logger.debug(
            "Recorded %s session %s (%s)",
            record.mode.value,
            record.session_id,
            record.reason.value,
        )
        return record

    def read_all_records(self) -> List[SessionRecord]:
        """Read every well-formed record, oldest first.

        Lines that don't decode to the full column set, or whose duration
        fields aren't numbers, are dropped.
        """
        self.initialize()

        with self._io_lock:
            try:
                raw = self.records_path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                raise StorageError(
                    f"Failed to read session log {self.records_path}: {e}"
                ) from e

        lines = [line.rstrip("\r") for line in codec.split_lines(raw)]
        lines = [line for line in lines if line]
        if lines and codec.decode(lines[0]) == list(HEADERS):
            lines = lines[1:]

        records = []
        dropped = 0
        for line in lines:
            record = record_from_fields(codec.decode(line))
            if record is None:
                dropped += 1
                continue
            records.append(record)

        if dropped:
            logger.debug("Dropped %d malformed line(s) from %s", dropped, self.records_path)
        return records

    def get_summary(self, now: Optional[datetime] = None) -> AnalyticsSummary:
        """Summarize the whole log over the 7-day, 30-day and all-time windows."""
        records = self.read_all_records()
        return aggregator.build_summary(
            records, storage_path=str(self.records_path), now=now
        )
