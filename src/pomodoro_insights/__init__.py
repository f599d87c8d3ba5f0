"""Pomodoro Insights - session telemetry and productivity analytics."""

__version__ = "0.1.0"
