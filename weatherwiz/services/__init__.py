"""
Service layer: session lifecycle around the core coordinator.
"""

from .session_service import DashboardSession, build_client_registry

__all__ = ["DashboardSession", "build_client_registry"]
