from __future__ import annotations

import logging
import os
from typing import Optional, Union

from pythonjsonlogger import jsonlogger

# Worker threads are named "weatherwiz-query_N"; threadName tells query logs apart from callbacks
PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(threadName)s %(name)s %(message)s"

# Per-request access lines from the Dash dev server drown out dispatch logs
QUIET_LOGGERS = ("werkzeug",)


def configure_logging(
        level: Union[int, str, None] = None,
        force_format: Optional[str] = None,
) -> None:
    """
    Configure root logger for the dashboard

    Format:
        1) force_format argument ("json" or "plain") if provided
        2) env var WEATHERWIZ_LOG_FORMAT
        3) default = "json"

    Level:
        1) level argument (int or level name) if provided
        2) env var WEATHERWIZ_LOG_LEVEL
        3) default = INFO
    """
    format_mode = (force_format or os.getenv("WEATHERWIZ_LOG_FORMAT", "json")).lower()

    if level is None:
        level = os.getenv("WEATHERWIZ_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler()
    if format_mode == "plain":
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    else:
        # extra={...} fields on records end up as JSON keys
        handler.setFormatter(jsonlogger.JsonFormatter(JSON_FORMAT))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
