"""
Config package for weatherwiz.

Responsible for:
- config models (GlobalConfig, WidgetConfig)
- config I/O helpers (load_global_config)
"""

from .model import GlobalConfig, WidgetConfig
from .loader import load_global_config
