"""Derived analytics models. Recomputed on every query, never stored."""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WindowSummary(BaseModel):
    """Metrics for one trailing window (or all time when window_days is None)."""

    window_days: Optional[int] = None
    total_sessions: int = 0
    completed_sessions: int = 0
    unfinished_sessions: int = 0
    completion_rate: float = 0.0
    average_completion: float = 0.0
    total_planned_seconds: int = 0
    total_actual_seconds: int = 0
    focus_actual_seconds: int = 0
    deep_focus_sessions: int = 0
    unfinished_seconds: int = 0
    active_days: int = 0
    streak_days: int = 0
    consistency_rate: float = 0.0
    deep_focus_rate: float = 0.0
    unfinished_ratio: float = 0.0
    finish_pressure_score: int = 0

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalyticsSummary(BaseModel):
    """The read aggregate handed back to the front end."""

    last_updated_at: str
    storage_path: str
    seven_day: WindowSummary
    thirty_day: WindowSummary
    all_time: WindowSummary

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
