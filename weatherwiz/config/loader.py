from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from weatherwiz.config.model import DEFAULT_WIDGETS, GlobalConfig, WidgetConfig
from weatherwiz.core.exceptions import ConfigError
from weatherwiz.core.predicate import CombineMode

logger = logging.getLogger(__name__)


def _is_url(source: str) -> bool:
    return "://" in source


def _resolve_data_source(root: Path, raw_source: str) -> str:
    """
    - URLs are used as-is.
    - Absolute paths are used as-is.
    - Relative paths are resolved relative to the config root directory.
    """
    if _is_url(raw_source):
        return raw_source
    path = Path(raw_source)
    if path.is_absolute():
        return str(path)
    return str((root / path).resolve())


def _parse_timeout(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"query_timeout must be a number, got {value!r}")
    if timeout <= 0:
        raise ConfigError(f"query_timeout must be positive, got {timeout}")
    return timeout


def _parse_widgets(raw_widgets: Any) -> List[WidgetConfig]:
    if not isinstance(raw_widgets, list):
        raise ConfigError("'widgets' must be a list of objects")

    widgets: List[WidgetConfig] = []
    seen: set[str] = set()
    for idx, raw in enumerate(raw_widgets):
        if not isinstance(raw, dict) or "kind" not in raw:
            raise ConfigError(f"Widget #{idx} must be an object with a 'kind': {raw!r}")
        widget = WidgetConfig.from_raw(dict(raw), index=idx)
        if widget.id in seen:
            raise ConfigError(f"Duplicate widget id '{widget.id}'")
        seen.add(widget.id)
        widgets.append(widget)
    return widgets


def load_global_config(root: Path) -> GlobalConfig:
    """
    Load the dashboard configuration from a directory.

    Expected structure:

        root/
            global.json

    Recognised keys (all optional except data_source):

    - ui_title: title for UI, defaults to 'Weather Data Visualization'
    - table: table name the CSV is loaded into, defaults to 'weather'
    - data_source: CSV path (relative to root) or URL
    - parse_dates: columns parsed as datetimes
    - combine_mode: 'intersect' (default) or 'union'
    - max_workers / query_timeout: coordinator worker pool and per-query bound
    - widgets: list of {kind, id, ...options}; defaults to DEFAULT_WIDGETS

    Environment overrides: WEATHERWIZ_DATA_SOURCE, WEATHERWIZ_QUERY_TIMEOUT.

    :param root: Directory containing 'global.json'.
    :return: A GlobalConfig instance.
    :raises FileNotFoundError: if global.json does not exist.
    :raises ConfigError: if the file is not valid JSON or holds invalid values.
    """
    root = Path(root)
    logger.info("Loading global config", extra={"config_root": str(root)})

    global_path = root / "global.json"
    if not global_path.is_file():
        raise FileNotFoundError(f"File not found at {global_path}")

    try:
        with global_path.open() as f:
            raw: Dict[str, Any] = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {global_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{global_path} must contain a JSON object")

    raw_source = os.getenv("WEATHERWIZ_DATA_SOURCE") or raw.get("data_source")
    if not raw_source:
        raise ConfigError(f"No 'data_source' configured in {global_path}")

    try:
        combine_mode = CombineMode(str(raw.get("combine_mode", "intersect")).lower())
    except ValueError:
        raise ConfigError(f"Unknown combine_mode {raw.get('combine_mode')!r}")

    max_workers = raw.get("max_workers", 4)
    if not isinstance(max_workers, int) or isinstance(max_workers, bool) or max_workers < 1:
        raise ConfigError(f"max_workers must be a positive integer, got {max_workers!r}")

    timeout_raw = os.getenv("WEATHERWIZ_QUERY_TIMEOUT", raw.get("query_timeout"))

    config = GlobalConfig(
        ui_title=raw.get("ui_title", "Weather Data Visualization"),
        table=raw.get("table", "weather"),
        data_source=_resolve_data_source(root, str(raw_source)),
        config_root=root,
        parse_dates=list(raw.get("parse_dates", [])),
        combine_mode=combine_mode,
        max_workers=max_workers,
        query_timeout=_parse_timeout(timeout_raw),
        widgets=_parse_widgets(raw.get("widgets", DEFAULT_WIDGETS)),
    )

    logger.info(
        "Global config loaded",
        extra={
            "table": config.table,
            "data_source": config.data_source,
            "n_widgets": len(config.widgets),
            "combine_mode": config.combine_mode.value,
        },
    )
    return config
