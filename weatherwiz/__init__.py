"""
Top-level package for the weather dashboard.

This package exposes the cross-filtering architecture (core, clients, UI adapters).
Most code should import from submodules such as:
    weatherwiz.core
    weatherwiz.clients
    weatherwiz.ui
"""

__all__: list[str] = []
