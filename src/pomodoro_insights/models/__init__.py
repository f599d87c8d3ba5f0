"""Data models for Pomodoro Insights."""

from .session import SessionEvent, SessionMode, SessionReason, SessionRecord
from .summary import AnalyticsSummary, WindowSummary

__all__ = [
    "SessionEvent",
    "SessionMode",
    "SessionReason",
    "SessionRecord",
    "WindowSummary",
    "AnalyticsSummary",
]
