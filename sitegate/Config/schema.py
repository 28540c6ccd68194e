"""
Configuration schema for SiteGate.

Defines all configurable options with metadata for validation and
documentation.
"""

from enum import Enum
from typing import Optional, List, Any
from dataclasses import dataclass


class ConfigType(Enum):
    """Configuration value types."""
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    PATH = "path"          # File system path
    LIST = "list"          # Comma-separated values


class ConfigCategory(Enum):
    """Configuration categories for grouping."""
    PATHS = "paths"
    LIMITS = "limits"
    SECURITY = "security"
    MAINTENANCE = "maintenance"
    LOGGING = "logging"


@dataclass
class ConfigField:
    """Definition of a configuration field."""
    key: str
    description: str
    config_type: ConfigType
    category: ConfigCategory
    required: bool = False
    default: Any = None
    env_var: str = None          # Override env var name (defaults to key)
    options: List[str] = None    # For enumerated types
    guard_field: str = None      # GuardConfig attribute this feeds

    def __post_init__(self):
        if self.env_var is None:
            self.env_var = self.key


# ==================== Schema Definition ====================

CONFIG_SCHEMA: List[ConfigField] = [
    # === Paths ===
    ConfigField(
        key="SITEGATE_INSTALL_ROOT",
        description="Installation root of the site (its ABSPATH); relative paths resolve against it",
        config_type=ConfigType.PATH,
        category=ConfigCategory.PATHS,
        required=True,
        guard_field="install_root",
    ),
    ConfigField(
        key="SITEGATE_BACKUP_DIR",
        description="Backup store (default: <install root>/wp-content/sitegate-backups)",
        config_type=ConfigType.PATH,
        category=ConfigCategory.PATHS,
        guard_field="backup_root",
    ),
    ConfigField(
        key="SITEGATE_CHANGELOG_PATH",
        description="Change log file (default: <install root>/wp-content/sitegate-changelog.log)",
        config_type=ConfigType.PATH,
        category=ConfigCategory.PATHS,
        guard_field="changelog_path",
    ),

    # === Limits ===
    ConfigField(
        key="SITEGATE_MAX_WRITE_BYTES",
        description="Largest file the gate will write, in bytes",
        config_type=ConfigType.INTEGER,
        category=ConfigCategory.LIMITS,
        default=10 * 1024 * 1024,
        guard_field="max_write_bytes",
    ),

    # === Security ===
    ConfigField(
        key="SITEGATE_DISALLOW_FILE_MODS",
        description="Refuse every write (the site's global file-modification switch)",
        config_type=ConfigType.BOOLEAN,
        category=ConfigCategory.SECURITY,
        default=False,
        guard_field="disallow_file_mods",
    ),
    ConfigField(
        key="SITEGATE_DISALLOW_FILE_EDIT",
        description="Refuse writes to PHP files (the site's file-edit switch)",
        config_type=ConfigType.BOOLEAN,
        category=ConfigCategory.SECURITY,
        default=False,
        guard_field="disallow_file_edit",
    ),
    ConfigField(
        key="SITEGATE_UPLOAD_EXTENSIONS",
        description="Extensions the host allows for uploads (comma-separated; default: common media and document types)",
        config_type=ConfigType.LIST,
        category=ConfigCategory.SECURITY,
        guard_field="upload_extensions",
    ),

    # === Maintenance ===
    ConfigField(
        key="SITEGATE_BACKUP_RETENTION_DAYS",
        description="Days of backups kept by the retention sweep",
        config_type=ConfigType.INTEGER,
        category=ConfigCategory.MAINTENANCE,
        default=7,
        guard_field="retention_days",
    ),
    ConfigField(
        key="SITEGATE_INLINE_SWEEP_RATE",
        description="Chance (0-1) of running the retention sweep after a logged change; 0 leaves it to scripts/sweep_backups.py",
        config_type=ConfigType.FLOAT,
        category=ConfigCategory.MAINTENANCE,
        default=0.0,
        guard_field="inline_sweep_rate",
    ),

    # === Logging ===
    ConfigField(
        key="SITEGATE_LOG_LEVEL",
        description="Diagnostic log level for the sitegate loggers",
        config_type=ConfigType.STRING,
        category=ConfigCategory.LOGGING,
        default="INFO",
        options=["DEBUG", "INFO", "WARNING", "ERROR"],
    ),
]


def get_schema_by_key(key: str) -> Optional[ConfigField]:
    """Get schema field by key."""
    for field in CONFIG_SCHEMA:
        if field.key == key:
            return field
    return None


def get_schema_by_category(category: ConfigCategory) -> List[ConfigField]:
    """Get all fields in a category."""
    return [f for f in CONFIG_SCHEMA if f.category == category]


def get_required_fields() -> List[ConfigField]:
    """Get all required fields."""
    return [f for f in CONFIG_SCHEMA if f.required]


def schema_to_dict() -> dict:
    """Convert schema to dict for documentation."""
    result = {}
    for cat in ConfigCategory:
        fields = get_schema_by_category(cat)
        result[cat.value] = [
            {
                "key": f.key,
                "description": f.description,
                "type": f.config_type.value,
                "required": f.required,
                "default": f.default,
                "options": f.options,
            }
            for f in fields
        ]
    return result
