from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from weatherwiz.core.predicate import CombineMode

# Default dashboard: weather menu, precipitation histogram,
# temp_max x wind scatter with an x brush, average precipitation.
DEFAULT_WIDGETS: List[Dict[str, Any]] = [
    {"kind": "menu", "id": "weather-menu", "column": "weather", "title": "Weather"},
    {"kind": "histogram", "id": "precipitation-histogram", "column": "precipitation", "step": 5},
    {"kind": "scatter", "id": "temp-wind-scatter", "x": "temp_max", "y": "wind"},
    {
        "kind": "stat",
        "id": "avg-precipitation",
        "column": "precipitation",
        "func": "mean",
        "unit": "mm",
        "title": "Average precipitation",
    },
]


@dataclass
class WidgetConfig:
    """
    Parsed config entry for a single dashboard widget (one client).
    """

    raw: Dict[str, Any]
    index: int

    @property
    def kind(self) -> str:
        return self.raw["kind"]

    @property
    def id(self) -> str:
        return self.raw.get("id", f"{self.kind}-{self.index}")

    @property
    def options(self) -> Dict[str, Any]:
        """Constructor options for the client class: everything but kind/id."""
        return {k: v for k, v in self.raw.items() if k not in ("kind", "id")}

    @classmethod
    def from_raw(cls, raw: Dict[str, Any], index: int) -> WidgetConfig:
        return cls(raw=raw, index=index)


@dataclass
class GlobalConfig:
    ui_title: str
    table: str
    data_source: str
    config_root: Optional[Path] = None
    parse_dates: List[str] = field(default_factory=list)
    combine_mode: CombineMode = CombineMode.INTERSECT
    max_workers: int = 4
    query_timeout: Optional[float] = None
    widgets: List[WidgetConfig] = field(default_factory=list)
