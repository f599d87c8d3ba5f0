"""Command-line interface for Pomodoro Insights."""
