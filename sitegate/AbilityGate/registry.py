"""
AbilityGate Registry.

Central registry of the filesystem abilities with their schemas and metadata.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from sitegate.shared.gate import GateLogger
from sitegate.AbilityGate.models import (
    AbilityAnnotations,
    AbilityDefinition,
    ArgSchema,
    PolicyClass,
)

_log = GateLogger.get("AbilityGate")

_PATH_HELP = "File path (absolute or relative to the installation root)."
_CONTEXT_HELP = "Why this change is being made; recorded in the change log."


# =============================================================================
# Ability Definitions
# =============================================================================

FILESYSTEM_ABILITIES: List[Dict[str, Any]] = [
    {
        "name": "filesystem/read-file",
        "label": "Read File",
        "method": "read_file",
        "description": "Read the contents of a file. Examples: \".htaccess\", \"wp-content/themes/mytheme/style.css\"",
        "policy": PolicyClass.READ_ONLY,
        "annotations": {"readonly": True, "destructive": False, "idempotent": True},
        "args": {
            "path": ArgSchema(type="string", description=_PATH_HELP, required=True),
        },
    },
    {
        "name": "filesystem/write-file",
        "label": "Write File",
        "method": "write_file",
        "description": "Create or overwrite a file. The existing file is backed up first.",
        "policy": PolicyClass.DESTRUCTIVE,
        "annotations": {"readonly": False, "destructive": True, "idempotent": False},
        "args": {
            "path": ArgSchema(type="string", description=_PATH_HELP, required=True),
            "content": ArgSchema(type="string", description="Content to write to the file.", required=True),
            "backup": ArgSchema(type="boolean", description="Create a backup before overwriting.", required=False, default=True),
            "context": ArgSchema(type="string", description=_CONTEXT_HELP, required=False),
        },
    },
    {
        "name": "filesystem/append-file",
        "label": "Append to File",
        "method": "append_file",
        "description": "Append content to the end (or beginning) of an existing file.",
        "policy": PolicyClass.WRITE,
        "annotations": {"readonly": False, "destructive": False, "idempotent": False},
        "args": {
            "path": ArgSchema(type="string", description=_PATH_HELP, required=True),
            "content": ArgSchema(type="string", description="Content to append to the file.", required=True),
            "prepend": ArgSchema(type="boolean", description="Add content to the beginning instead of the end.", required=False, default=False),
            "backup": ArgSchema(type="boolean", description="Create a backup before changing the file.", required=False, default=True),
            "context": ArgSchema(type="string", description=_CONTEXT_HELP, required=False),
        },
    },
    {
        "name": "filesystem/delete-file",
        "label": "Delete File",
        "method": "delete_file",
        "description": "Delete a file. Directories and critical root files cannot be deleted.",
        "policy": PolicyClass.DESTRUCTIVE,
        "annotations": {"readonly": False, "destructive": True, "idempotent": False},
        "args": {
            "path": ArgSchema(type="string", description="File path to delete.", required=True),
            "backup": ArgSchema(type="boolean", description="Create a backup before deleting.", required=False, default=True),
            "context": ArgSchema(type="string", description=_CONTEXT_HELP, required=False),
        },
    },
    {
        "name": "filesystem/copy-file",
        "label": "Copy File",
        "method": "copy_file",
        "description": "Copy a file to a new location.",
        "policy": PolicyClass.WRITE,
        "annotations": {"readonly": False, "destructive": False, "idempotent": False},
        "args": {
            "source": ArgSchema(type="string", description="Source file path.", required=True),
            "dest": ArgSchema(type="string", description="Destination file path.", required=True),
            "overwrite": ArgSchema(type="boolean", description="Overwrite the destination if it exists.", required=False, default=False),
            "context": ArgSchema(type="string", description=_CONTEXT_HELP, required=False),
        },
    },
    {
        "name": "filesystem/move-file",
        "label": "Move/Rename File",
        "method": "move_file",
        "description": "Move or rename a file. The source is backed up before it moves.",
        "policy": PolicyClass.DESTRUCTIVE,
        "annotations": {"readonly": False, "destructive": True, "idempotent": False},
        "args": {
            "source": ArgSchema(type="string", description="Source file path.", required=True),
            "dest": ArgSchema(type="string", description="Destination file path.", required=True),
            "overwrite": ArgSchema(type="boolean", description="Overwrite the destination if it exists.", required=False, default=False),
            "context": ArgSchema(type="string", description=_CONTEXT_HELP, required=False),
        },
    },
    {
        "name": "filesystem/list-directory",
        "label": "List Directory",
        "method": "list_directory",
        "description": "List files and directories.",
        "policy": PolicyClass.READ_ONLY,
        "annotations": {"readonly": True, "destructive": False, "idempotent": True},
        "args": {
            "path": ArgSchema(type="string", description="Directory path. Default is the installation root.", required=False, default="."),
            "recursive": ArgSchema(type="boolean", description="Include subdirectories recursively (max 2 levels deep).", required=False, default=False),
            "pattern": ArgSchema(type="string", description="Filter files by pattern (e.g., \"*.css\", \"*.log\").", required=False),
        },
    },
    {
        "name": "filesystem/file-info",
        "label": "Get File Info",
        "method": "file_info",
        "description": "Get detailed information about a file or directory.",
        "policy": PolicyClass.READ_ONLY,
        "annotations": {"readonly": True, "destructive": False, "idempotent": True},
        "args": {
            "path": ArgSchema(type="string", description="File or directory path.", required=True),
        },
    },
    {
        "name": "filesystem/create-directory",
        "label": "Create Directory",
        "method": "create_directory",
        "description": "Create a new directory.",
        "policy": PolicyClass.WRITE,
        "annotations": {"readonly": False, "destructive": False, "idempotent": False},
        "args": {
            "path": ArgSchema(type="string", description="Directory path to create.", required=True),
            "permissions": ArgSchema(type="string", description="Permissions for the new directory.", required=False, default="0755"),
            "recursive": ArgSchema(type="boolean", description="Create parent directories if they do not exist.", required=False, default=True),
        },
    },
    {
        "name": "filesystem/get-changelog",
        "label": "Get Change Log",
        "method": "get_changelog",
        "description": "Read recent entries of the file change log.",
        "policy": PolicyClass.READ_ONLY,
        "annotations": {"readonly": True, "destructive": False, "idempotent": True},
        "args": {
            "lines": ArgSchema(type="integer", description="Number of lines to return (max 500).", required=False, default=100),
        },
    },
    {
        "name": "filesystem/sweep-backups",
        "label": "Sweep Backups",
        "method": "sweep_backups",
        "description": "Remove backup directories older than the retention window.",
        "policy": PolicyClass.DESTRUCTIVE,
        "annotations": {"readonly": False, "destructive": True, "idempotent": True},
        "args": {},
    },
]


# =============================================================================
# Ability Registry
# =============================================================================


class AbilityRegistry:
    """Central registry of all available abilities."""

    _abilities: Dict[str, AbilityDefinition] = {}
    _initialized: bool = False

    @classmethod
    def initialize(cls) -> None:
        """Initialize registry with the filesystem abilities."""
        if cls._initialized:
            return

        cls._register_abilities("FileSystemGate", FILESYSTEM_ABILITIES)

        cls._initialized = True
        _log.info(f"Ability registry initialized with {len(cls._abilities)} abilities")

    @classmethod
    def _register_abilities(cls, gate_name: str, abilities: List[Dict[str, Any]]) -> None:
        """Register abilities backed by a gate."""
        for ability_config in abilities:
            # Convert args dict to ArgSchema instances if needed
            args_schema = {}
            for arg_name, arg_def in ability_config.get("args", {}).items():
                if isinstance(arg_def, ArgSchema):
                    args_schema[arg_name] = arg_def
                elif isinstance(arg_def, dict):
                    args_schema[arg_name] = ArgSchema(**arg_def)

            ability = AbilityDefinition(
                name=ability_config["name"],
                label=ability_config["label"],
                description=ability_config["description"],
                gate=gate_name,
                method=ability_config["method"],
                policy_class=ability_config.get("policy", PolicyClass.READ_ONLY),
                annotations=AbilityAnnotations(**ability_config.get("annotations", {})),
                args_schema=args_schema,
            )

            cls._abilities[ability.name] = ability

    @classmethod
    def get_ability(cls, name: str) -> Optional[AbilityDefinition]:
        """Get ability definition by name."""
        cls.initialize()
        return cls._abilities.get(name)

    @classmethod
    def list_abilities(
        cls,
        policy_filter: Optional[Set[PolicyClass]] = None,
    ) -> List[AbilityDefinition]:
        """List abilities, optionally filtered by policy class."""
        cls.initialize()

        abilities = list(cls._abilities.values())

        if policy_filter:
            abilities = [a for a in abilities if a.policy_class in policy_filter]

        return abilities

    @classmethod
    def list_ability_names(cls, policy_filter: Optional[Set[PolicyClass]] = None) -> List[str]:
        """List ability names, optionally filtered."""
        return [a.name for a in cls.list_abilities(policy_filter)]

    @classmethod
    def reset(cls) -> None:
        """Reset registry (for testing)."""
        cls._abilities = {}
        cls._initialized = False


__all__ = [
    "AbilityRegistry",
    "FILESYSTEM_ABILITIES",
]
