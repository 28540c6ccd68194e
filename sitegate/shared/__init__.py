"""
Shared utilities for SiteGate.

Provides access to common functionality used across Gate implementations.
"""

from sitegate.shared.gate import (
    GateLogger,
    ConfigLoader,
    PathUtils,
    build_health_status,
    get_logger,
)

__all__ = [
    "GateLogger",
    "ConfigLoader",
    "PathUtils",
    "build_health_status",
    "get_logger",
]
