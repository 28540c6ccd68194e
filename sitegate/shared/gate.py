"""
Shared Gate utilities for SiteGate.

Provides consolidated patterns for all Gate implementations:
- GateLogger: Unified logging with Python's logging module
- ConfigLoader: Unified JSON config loading
- PathUtils: Common path operations
- build_health_status: Standardized health dicts
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Union,
)


# =============================================================================
# GateLogger - Unified logging for all Gates
# =============================================================================


class GateLogger:
    """
    Unified logging for all Gates.

    Each gate gets its own namespaced logger under ``sitegate``.
    """

    _loggers: Dict[str, logging.Logger] = {}
    _configured = False

    @classmethod
    def _ensure_configured(cls):
        """Ensure basic logging is configured."""
        if cls._configured:
            return

        root_logger = logging.getLogger("sitegate")
        if not root_logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "[%(name)s] %(levelname)s: %(message)s"
            )
            handler.setFormatter(formatter)
            root_logger.addHandler(handler)
            root_logger.setLevel(logging.INFO)

        cls._configured = True

    @classmethod
    def get(cls, gate_name: str) -> logging.Logger:
        """
        Get a logger for a specific gate.

        Args:
            gate_name: Name of the gate (e.g., "FileSystemGate", "AbilityGate")

        Returns:
            Logger instance for the gate
        """
        cls._ensure_configured()

        logger_name = f"sitegate.{gate_name}"
        if logger_name not in cls._loggers:
            cls._loggers[logger_name] = logging.getLogger(logger_name)

        return cls._loggers[logger_name]

    @classmethod
    def set_level(cls, level: int, gate_name: Optional[str] = None):
        """
        Set logging level.

        Args:
            level: Logging level (e.g., logging.DEBUG)
            gate_name: Specific gate to set level for, or None for all
        """
        if gate_name:
            cls.get(gate_name).setLevel(level)
        else:
            logging.getLogger("sitegate").setLevel(level)


# =============================================================================
# Health
# =============================================================================


def build_health_status(
    gate_name: str,
    initialized: bool,
    dependencies: List[str],
    checks: Dict[str, bool],
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build a standardized health status dict.

    Args:
        gate_name: Name of the gate
        initialized: Whether the gate is initialized
        dependencies: List of dependency names
        checks: Dict of check name -> passed
        details: Additional details

    Returns:
        Standardized health status dict
    """
    all_checks_passed = all(checks.values()) if checks else True

    return {
        "gate": gate_name,
        "healthy": initialized and all_checks_passed,
        "initialized": initialized,
        "dependencies": dependencies,
        "checks": checks,
        "details": details or {},
    }


# =============================================================================
# ConfigLoader - Unified JSON config loading
# =============================================================================


class ConfigLoader:
    """Unified JSON configuration loading."""

    @staticmethod
    def load_dict(path: Union[str, Path]) -> Dict[str, Any]:
        """
        Load a JSON object from disk.

        Returns an empty dict if the file is missing or unreadable.
        """
        path = Path(path)
        if not path.exists():
            return {}

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            GateLogger.get("ConfigLoader").error(f"Failed to load config from {path}: {e}")
            return {}

        if not isinstance(data, dict):
            GateLogger.get("ConfigLoader").error(f"Config at {path} is not a JSON object")
            return {}
        return data


# =============================================================================
# PathUtils - Common path operations
# =============================================================================


class PathUtils:
    """Common path utilities for Gates."""

    @staticmethod
    def ensure_dirs(*dirs: Union[str, Path]) -> None:
        """Create each directory (and its parents) if missing."""
        for directory in dirs:
            Path(directory).mkdir(parents=True, exist_ok=True)

    @staticmethod
    def ensure_parent(file_path: Union[str, Path]) -> None:
        """Create the directory that will hold a file."""
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def is_within(path: Union[str, Path], base: Union[str, Path]) -> bool:
        """
        Component-wise containment check for two absolute paths.

        ``/var/www2`` is not within ``/var/www``.
        """
        path = os.path.normpath(str(path))
        base = os.path.normpath(str(base))
        try:
            return os.path.commonpath([path, base]) == base
        except ValueError:
            # Different drives on Windows
            return False


def get_logger(gate_name: str) -> logging.Logger:
    """Shortcut for GateLogger.get()."""
    return GateLogger.get(gate_name)
