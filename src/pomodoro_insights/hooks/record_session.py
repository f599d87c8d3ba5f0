#!/usr/bin/env python3
"""Hook that records one finalized stage from a JSON payload on stdin.

Timer front ends call this when a stage completes, is skipped, reset,
reconfigured or abandoned. It never fails the caller: problems are logged
and the hook exits 0 so the timer keeps working.
"""

import json
import logging
import sys
from typing import Any, Dict

from pomodoro_insights.core.backend import AnalyticsBackend
from pomodoro_insights.core.config import load_config
from pomodoro_insights.core.errors import InsightsError
from pomodoro_insights.core.log import configure_logging

logger = logging.getLogger("pomodoro_insights.hooks")


def parse_hook_input(hook_input: str) -> Dict[str, Any]:
    """Parse the hook payload; anything but a JSON object yields {}."""
    if not hook_input.strip():
        return {}
    try:
        data = json.loads(hook_input)
    except json.JSONDecodeError as e:
        logger.warning("Error parsing hook input: %s", e)
        return {}
    return data if isinstance(data, dict) else {}


def main() -> int:
    """Handle one session-ended event."""
    config = load_config()
    configure_logging(config.log_level, config.log_file or config.data_dir / "hook-debug.log")

    payload = parse_hook_input(sys.stdin.read())
    if not payload:
        logger.info("Record hook called with no data")
        return 0

    backend = AnalyticsBackend.from_config(config)
    try:
        session = backend.record_session(payload)
    except InsightsError as e:
        logger.error("Error recording session: %s", e)
        return 0

    if session is None:
        logger.info("Nothing to record for payload keys %s", sorted(payload))
        return 0

    print(json.dumps(session.model_dump(mode="json", by_alias=True)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
