from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from weatherwiz.config.model import GlobalConfig
from weatherwiz.services.session_service import DashboardSession


@dataclass
class AppContext:
    """
    Holds shared state for the Dash app: config root, parsed config and the
    started dashboard session. This is passed into layout + callback registration
    functions instead of using module-level globals.
    """
    config_root: Path
    global_config: GlobalConfig
    session: DashboardSession
