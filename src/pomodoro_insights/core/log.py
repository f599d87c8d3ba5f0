"""Logging setup for the CLI and hook entry points."""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "WARNING", log_file: Optional[Path] = None) -> None:
    """Send package logs to stderr through rich, and optionally to a file."""
    package_logger = logging.getLogger("pomodoro_insights")
    package_logger.setLevel(level.upper())

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=Console(stderr=True), show_path=False, rich_tracebacks=True
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(file_handler)
