"""Boundary operations the timer front end calls into."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from pomodoro_insights.core.config import InsightsConfig, load_config
from pomodoro_insights.core.errors import BackendNotInitializedError
from pomodoro_insights.core.store import RecordStore
from pomodoro_insights.models.session import SessionEvent, SessionRecord
from pomodoro_insights.models.summary import AnalyticsSummary

logger = logging.getLogger(__name__)


class AnalyticsBackend:
    """Owns the record store for the lifetime of the process.

    Construct once at startup and hand the instance to whatever needs it.
    Calls made before start() raise BackendNotInitializedError.
    """

    def __init__(self, store: Optional[RecordStore] = None):
        self._store = store

    @classmethod
    def from_config(cls, config: InsightsConfig) -> "AnalyticsBackend":
        return cls(RecordStore.from_config(config))

    def start(self, data_dir: Optional[Union[str, Path]] = None) -> RecordStore:
        """Create the store from configuration if it doesn't exist yet."""
        if self._store is None:
            self._store = RecordStore.from_config(load_config(data_dir))
            logger.info("Analytics backend started at %s", self._store.records_path)
        return self._store

    @property
    def started(self) -> bool:
        return self._store is not None

    @property
    def store(self) -> RecordStore:
        if self._store is None:
            raise BackendNotInitializedError("Analytics backend is not initialized")
        return self._store

    def record_session(
        self,
        payload: Union[SessionEvent, Mapping[str, Any], None],
        now: Optional[datetime] = None,
    ) -> Optional[SessionRecord]:
        """Persist one finalized stage. Call once per stage transition."""
        return self.store.append_session(payload, now=now)

    def get_summary(self, now: Optional[datetime] = None) -> AnalyticsSummary:
        return self.store.get_summary(now=now)
