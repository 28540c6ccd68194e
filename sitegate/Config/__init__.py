"""
SiteGate Configuration Manager.

Centralized configuration with:
- Schema-driven validation
- .env loading (python-dotenv) with environment variable override
- Optional JSON config file
- GuardConfig construction for FileSystemGate
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from dotenv import load_dotenv, set_key

from sitegate.shared.gate import ConfigLoader, GateLogger

_log = GateLogger.get("Config")

from sitegate.Config.schema import (
    CONFIG_SCHEMA,
    ConfigField,
    ConfigType,
    ConfigCategory,
    get_schema_by_key,
    get_required_fields,
    schema_to_dict,
)
from sitegate.FileSystemGate.models import GuardConfig


# Config file paths (relative to the working directory)
ENV_FILE = Path(".env")
CONFIG_JSON = Path("sitegate.json")


class ConfigManager:
    """
    Manages SiteGate configuration.

    Priority order:
    1. Environment variables (after .env is loaded)
    2. JSON config file
    3. Schema defaults
    """

    def __init__(
        self,
        env_file: Optional[Union[str, Path]] = None,
        config_json: Optional[Union[str, Path]] = None,
    ):
        self.env_file = Path(env_file) if env_file else ENV_FILE
        self.config_json = Path(config_json) if config_json else CONFIG_JSON
        self._cache: Dict[str, Any] = {}
        self._loaded = False
        self._load()

    def _load(self):
        """Load configuration from all sources."""
        # Existing environment variables win over .env entries
        load_dotenv(self.env_file)

        json_config = ConfigLoader.load_dict(self.config_json)

        for field in CONFIG_SCHEMA:
            # Priority: env var > json config > default
            value = os.environ.get(field.env_var)

            if value is None and field.key in json_config:
                value = json_config[field.key]

            if value is None or value == "":
                value = field.default

            self._cache[field.key] = self._convert_type(value, field.config_type)

        self._loaded = True

    def _convert_type(self, value: Any, config_type: ConfigType) -> Any:
        """Convert value to appropriate type (left unchanged if it does not convert)."""
        if value is None:
            return None

        try:
            if config_type == ConfigType.INTEGER:
                return int(value)
            elif config_type == ConfigType.FLOAT:
                return float(value)
            elif config_type == ConfigType.BOOLEAN:
                if isinstance(value, bool):
                    return value
                return str(value).lower() in ("true", "1", "yes", "on")
            elif config_type == ConfigType.LIST:
                if isinstance(value, list):
                    return value
                return [v.strip() for v in str(value).split(",") if v.strip()]
            else:
                return str(value) if value else None
        except (ValueError, TypeError):
            return value

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        if not self._loaded:
            self._load()
        value = self._cache.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any, persist: bool = False) -> bool:
        """
        Set a configuration value.

        Args:
            key: Config key
            value: New value
            persist: Also write it to the .env file

        Returns:
            True if successful
        """
        field = get_schema_by_key(key)
        if not field:
            return False

        value = self._convert_type(value, field.config_type)
        self._cache[key] = value

        if persist:
            self._update_env(field.env_var, value, field.config_type)

        return True

    def _update_env(self, key: str, value: Any, config_type: ConfigType):
        """Update .env file."""
        if config_type == ConfigType.BOOLEAN:
            str_value = "true" if value else "false"
        elif config_type == ConfigType.LIST:
            str_value = ",".join(value) if isinstance(value, list) else str(value)
        else:
            str_value = str(value) if value is not None else ""

        try:
            set_key(str(self.env_file), key, str_value)
            os.environ[key] = str_value
        except OSError as e:
            _log.warning(f"Could not update .env: {e}")

    def get_all(self) -> Dict[str, Any]:
        """Get all configuration values."""
        return {field.key: self._cache.get(field.key) for field in CONFIG_SCHEMA}

    def validate(self) -> Tuple[bool, List[str]]:
        """
        Validate configuration.

        Returns:
            (is_valid, list of error messages)
        """
        errors = []

        for field in CONFIG_SCHEMA:
            value = self._cache.get(field.key)

            # Check required
            if field.required and (value is None or value == ""):
                errors.append(f"Required config missing: {field.key}")
                continue
            if value is None:
                continue

            # Values that did not convert are still strings
            if field.config_type == ConfigType.INTEGER and not isinstance(value, int):
                errors.append(f"Invalid integer for {field.key}: {value}")
                continue
            if field.config_type == ConfigType.FLOAT and not isinstance(value, float):
                errors.append(f"Invalid number for {field.key}: {value}")
                continue

            # Check options
            if field.options and str(value).upper() not in field.options:
                errors.append(f"Invalid option for {field.key}: {value}")

        install_root = self._cache.get("SITEGATE_INSTALL_ROOT")
        if install_root and not os.path.isdir(install_root):
            errors.append(f"SITEGATE_INSTALL_ROOT is not a directory: {install_root}")

        retention = self._cache.get("SITEGATE_BACKUP_RETENTION_DAYS")
        if isinstance(retention, int) and retention < 1:
            errors.append("SITEGATE_BACKUP_RETENTION_DAYS must be at least 1")

        max_bytes = self._cache.get("SITEGATE_MAX_WRITE_BYTES")
        if isinstance(max_bytes, int) and max_bytes < 1:
            errors.append("SITEGATE_MAX_WRITE_BYTES must be at least 1")

        rate = self._cache.get("SITEGATE_INLINE_SWEEP_RATE")
        if isinstance(rate, float) and not 0.0 <= rate <= 1.0:
            errors.append("SITEGATE_INLINE_SWEEP_RATE must be between 0 and 1")

        return len(errors) == 0, errors

    def apply_log_level(self) -> None:
        """Apply SITEGATE_LOG_LEVEL to the sitegate loggers."""
        level_name = str(self.get("SITEGATE_LOG_LEVEL", "INFO")).upper()
        GateLogger.set_level(getattr(logging, level_name, logging.INFO))

    def build_guard_config(self) -> GuardConfig:
        """
        Build the GuardConfig used by FileSystemGate.

        Raises:
            ValueError: Configuration is missing or invalid
        """
        valid, errors = self.validate()
        if not valid:
            raise ValueError("; ".join(errors))

        values = {
            field.guard_field: self._cache.get(field.key)
            for field in CONFIG_SCHEMA
            if field.guard_field and self._cache.get(field.key) is not None
        }
        return GuardConfig(**values)

    def create_env_template(self) -> str:
        """Generate .env.example template."""
        lines = [
            "# SiteGate Configuration",
            "# Copy this file to .env and fill in your values",
            "",
        ]

        current_category = None
        for field in CONFIG_SCHEMA:
            if field.category != current_category:
                current_category = field.category
                lines.append(f"# === {current_category.value.replace('_', ' ').title()} ===")
                lines.append("")

            lines.append(f"# {field.description}")
            if field.required:
                lines.append("# (REQUIRED)")
            if field.options:
                lines.append(f"# Options: {', '.join(field.options)}")

            default = field.default
            if isinstance(default, bool):
                default = "true" if default else "false"
            lines.append(f"{field.env_var}={'' if default is None else default}")
            lines.append("")

        return "\n".join(lines)


# Global instance
_manager: Optional[ConfigManager] = None


def get_manager() -> ConfigManager:
    """Get or create the global ConfigManager."""
    global _manager
    if _manager is None:
        _manager = ConfigManager()
    return _manager


def reload(
    env_file: Optional[Union[str, Path]] = None,
    config_json: Optional[Union[str, Path]] = None,
) -> ConfigManager:
    """Reload configuration from files."""
    global _manager
    _manager = ConfigManager(env_file, config_json)
    return _manager


# Convenience functions
def get(key: str, default: Any = None) -> Any:
    """Get a config value."""
    return get_manager().get(key, default)


def set(key: str, value: Any, persist: bool = False) -> bool:
    """Set a config value."""
    return get_manager().set(key, value, persist)


def get_all() -> Dict:
    """Get all config values."""
    return get_manager().get_all()


def validate() -> Tuple[bool, List[str]]:
    """Validate configuration."""
    return get_manager().validate()


def build_guard_config() -> GuardConfig:
    """Build a GuardConfig from the current configuration."""
    manager = get_manager()
    manager.apply_log_level()
    return manager.build_guard_config()


def get_schema() -> Dict:
    """Get schema as dict."""
    return schema_to_dict()


__all__ = [
    "ConfigManager",
    "ConfigField",
    "ConfigType",
    "ConfigCategory",
    "CONFIG_SCHEMA",
    "get_manager",
    "reload",
    "get",
    "set",
    "get_all",
    "validate",
    "build_guard_config",
    "get_schema",
    "get_required_fields",
]
