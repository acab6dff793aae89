from __future__ import annotations

__all__ = ["IDs", "menu_id", "graph_id", "stat_id"]


class IDs:
    class Control:
        NAVBAR_SUBTITLE = "navbar-subtitle"
        STATUS_BAR = "status-bar"

    class Pattern:
        # pattern-matching "type" strings, one component per client
        MENU = "menu-select"
        GRAPH = "client-graph"
        STAT = "stat-value"


def menu_id(client_id: str) -> dict:
    return {"type": IDs.Pattern.MENU, "index": client_id}


def graph_id(client_id: str) -> dict:
    return {"type": IDs.Pattern.GRAPH, "index": client_id}


def stat_id(client_id: str) -> dict:
    return {"type": IDs.Pattern.STAT, "index": client_id}
