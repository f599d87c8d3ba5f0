"""Configuration for the analytics store."""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

import click
from pydantic import BaseModel, ValidationError, field_validator

logger = logging.getLogger(__name__)

APP_NAME = "pomodoro-insights"
HOME_ENV = "POMODORO_INSIGHTS_HOME"
LOG_LEVEL_ENV = "POMODORO_INSIGHTS_LOG_LEVEL"
CONFIG_FILE_NAME = "config.json"


class InsightsConfig(BaseModel):
    """Where session records live and how the engine logs."""

    data_dir: Path
    analytics_dir_name: str = "analytics"
    records_file_name: str = "sessions.csv"
    log_level: str = "WARNING"
    log_file: Optional[Path] = None

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {value}")
        return level

    @property
    def analytics_dir(self) -> Path:
        return self.data_dir / self.analytics_dir_name

    @property
    def records_path(self) -> Path:
        return self.analytics_dir / self.records_file_name


def default_data_dir() -> Path:
    """Per-user application directory, overridable through the environment."""
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path(click.get_app_dir(APP_NAME))


def load_config(data_dir: Optional[Union[str, Path]] = None) -> InsightsConfig:
    """Resolve configuration from arguments, config.json and the environment.

    Precedence for the data directory: explicit argument, then
    POMODORO_INSIGHTS_HOME, then the platform app directory. Settings in
    ``<data_dir>/config.json`` override defaults; POMODORO_INSIGHTS_LOG_LEVEL
    overrides the log level.
    """
    root = Path(data_dir).expanduser() if data_dir else default_data_dir()
    settings = {"data_dir": root}

    config_file = root / CONFIG_FILE_NAME
    if config_file.exists():
        try:
            stored = json.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable config file %s: %s", config_file, e)
        else:
            if isinstance(stored, dict):
                stored.pop("data_dir", None)
                settings.update(stored)

    level = os.environ.get(LOG_LEVEL_ENV)
    if level:
        settings["log_level"] = level.upper()

    try:
        return InsightsConfig(**settings)
    except ValidationError as e:
        logger.warning("Invalid settings in %s, using defaults: %s", config_file, e)
        return InsightsConfig(data_dir=root)
