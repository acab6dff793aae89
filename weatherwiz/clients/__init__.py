from .histogram_client import HistogramClient
from .menu_client import MenuClient
from .scatter_client import ScatterClient
from .stat_client import StatClient

__all__ = ["HistogramClient", "MenuClient", "ScatterClient", "StatClient"]
