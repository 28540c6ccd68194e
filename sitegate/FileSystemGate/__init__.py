"""
FileSystemGate - Guarded file system access for a site installation.

Provides:
- Path containment (everything stays under the installation's parent directory)
- Core subtree protection (wp-includes/, wp-admin/ are never modified)
- Content security scanning of every byte that lands on disk
- Date-partitioned backups before destructive operations
- Append-only change log of every mutation

Usage:
    from sitegate import FileSystemGate
    from sitegate.FileSystemGate import GuardConfig

    # Initialize (call on startup; without a config the environment is used)
    FileSystemGate.initialize(GuardConfig(install_root="/srv/site"))

    # Read a file
    result = FileSystemGate.read_file("wp-content/debug.log")

    # Write a file (existing content is backed up first)
    result = FileSystemGate.write_file("wp-content/notes.txt", "Hello world")
"""

import os
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from sitegate.shared.gate import GateLogger, PathUtils, build_health_status

from .models import (
    Actor,
    AuditEntry,
    BackupRecord,
    BlockReason,
    ChangeKind,
    DirectoryItem,
    ErrorKind,
    FileInfo,
    GuardConfig,
    OperationResult,
    SecurityVerdict,
)
from .security import (
    AccessDeniedError,
    AlreadyExistsError,
    BackupError,
    ContentScanner,
    FileSystemGateError,
    InvalidInputError,
    NotFoundError,
    SecurityBlockedError,
    sanitize_filename,
)
from .resolver import PathResolver
from .backup import BackupManager
from .changelog import ChangeLogger
from .operations import ActorProvider, Authorizer, FileOperations, SYSTEM_ACTOR

# Logger for this gate
_log = GateLogger.get("FileSystemGate")

# Module-level state
_config: Optional[GuardConfig] = None
_operations: Optional[FileOperations] = None
_initialized: bool = False


class FileSystemGate:
    """
    Main interface for guarded file access.

    All methods are class methods for easy access throughout the application.
    """

    @classmethod
    def initialize(
        cls,
        config: Optional[GuardConfig] = None,
        actor_provider: Optional[ActorProvider] = None,
        authorizer: Optional[Authorizer] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> bool:
        """
        Initialize the file system gate.

        Args:
            config: Guard configuration (default: built from env / .env / JSON)
            actor_provider: Returns the Actor making the current call
            authorizer: (actor, capability) -> bool
            clock: Returns the current UTC time

        Returns:
            True if initialization successful
        """
        global _config, _operations, _initialized

        try:
            if config is None:
                from sitegate.Config import build_guard_config
                config = build_guard_config()

            if not os.path.isdir(config.install_root):
                _log.error(f"Installation root does not exist: {config.install_root}")
                return False

            PathUtils.ensure_dirs(config.backup_root)
            PathUtils.ensure_parent(config.changelog_path)

            _config = config
            _operations = FileOperations(
                config,
                authorizer=authorizer,
                actor_provider=actor_provider,
                clock=clock,
            )
            _initialized = True
            _log.info(f"Initialized for {config.install_root}")
            return True

        except (OSError, ValueError) as e:
            _log.error(f"Initialization failed: {e}")
            return False

    @classmethod
    def is_initialized(cls) -> bool:
        """Check if the gate is initialized."""
        return _initialized

    @classmethod
    def reset(cls):
        """Drop module state (tests and re-configuration)."""
        global _config, _operations, _initialized
        _config = None
        _operations = None
        _initialized = False

    @classmethod
    def _get_operations(cls) -> FileOperations:
        """Get the operations service, initializing if needed."""
        if _operations is None:
            if not cls.initialize():
                raise RuntimeError(
                    "FileSystemGate initialization failed. Check SITEGATE_INSTALL_ROOT and permissions."
                )
        return _operations

    @classmethod
    def for_actor(cls, actor: Optional[Actor] = None) -> FileOperations:
        """
        Get the operations service acting for a specific caller.

        Without an actor the configured actor provider is used.
        """
        operations = cls._get_operations()
        return operations.for_actor(actor) if actor is not None else operations

    @classmethod
    def get_config(cls) -> Dict[str, Any]:
        """Get the active guard configuration."""
        return cls._get_operations().config.to_dict()

    # ==================== Health Checks ====================

    @classmethod
    def is_healthy(cls) -> bool:
        """Check if the gate is operational."""
        return cls.get_health_status()["healthy"]

    @classmethod
    def get_health_status(cls) -> Dict[str, Any]:
        """Get detailed health information."""
        checks = {}
        details = {}

        if _initialized and _config is not None:
            backup_parent = os.path.dirname(_config.backup_root) or "."
            log_parent = os.path.dirname(_config.changelog_path) or "."
            checks["install_root_readable"] = os.access(_config.install_root, os.R_OK)
            checks["backup_root_writable"] = os.access(
                _config.backup_root if os.path.isdir(_config.backup_root) else backup_parent, os.W_OK
            )
            checks["changelog_writable"] = os.access(log_parent, os.W_OK)

            details["install_root"] = _config.install_root
            details["backup_root"] = _config.backup_root
            details["changelog_path"] = _config.changelog_path
            details["file_mods_disabled"] = _config.disallow_file_mods

        return build_health_status(
            gate_name="FileSystemGate",
            initialized=_initialized,
            dependencies=["filesystem"],
            checks=checks,
            details=details,
        )

    @classmethod
    def get_dependencies(cls) -> List[str]:
        """List external dependencies."""
        return ["filesystem"]

    # ==================== File Operations ====================

    @classmethod
    def read_file(cls, path: str) -> OperationResult:
        """
        Read a file.

        Args:
            path: Absolute path, or path relative to the installation root

        Returns:
            OperationResult with content, encoding, size and modified time
        """
        return cls._get_operations().read_file(path)

    @classmethod
    def write_file(
        cls,
        path: str,
        content: Union[str, bytes],
        backup: bool = True,
        context: Optional[str] = None,
    ) -> OperationResult:
        """
        Write content to a file (creates or overwrites).

        Args:
            path: Target file; its directory must exist
            content: Content to write
            backup: Back up the existing file first
            context: Free-text reason recorded in the change log

        Returns:
            OperationResult with bytes written and backup_path if one was made
        """
        return cls._get_operations().write_file(path, content, backup=backup, context=context)

    @classmethod
    def append_file(
        cls,
        path: str,
        content: Union[str, bytes],
        prepend: bool = False,
        backup: bool = True,
        context: Optional[str] = None,
    ) -> OperationResult:
        """Append (or prepend) content to an existing file."""
        return cls._get_operations().append_file(
            path, content, prepend=prepend, backup=backup, context=context
        )

    @classmethod
    def delete_file(cls, path: str, backup: bool = True, context: Optional[str] = None) -> OperationResult:
        """Delete a file. Directories and critical root files are refused."""
        return cls._get_operations().delete_file(path, backup=backup, context=context)

    @classmethod
    def copy_file(
        cls,
        source: str,
        dest: str,
        overwrite: bool = False,
        context: Optional[str] = None,
    ) -> OperationResult:
        """Copy a file."""
        return cls._get_operations().copy_file(source, dest, overwrite=overwrite, context=context)

    @classmethod
    def move_file(
        cls,
        source: str,
        dest: str,
        overwrite: bool = False,
        context: Optional[str] = None,
    ) -> OperationResult:
        """Move or rename a file."""
        return cls._get_operations().move_file(source, dest, overwrite=overwrite, context=context)

    @classmethod
    def list_directory(
        cls,
        path: str = ".",
        recursive: bool = False,
        pattern: Optional[str] = None,
    ) -> OperationResult:
        """List directory contents (at most two levels deep)."""
        return cls._get_operations().list_directory(path, recursive=recursive, pattern=pattern)

    @classmethod
    def file_info(cls, path: str) -> OperationResult:
        """Get detailed information about a file or directory."""
        return cls._get_operations().file_info(path)

    @classmethod
    def create_directory(
        cls,
        path: str,
        permissions: str = "0755",
        recursive: bool = True,
    ) -> OperationResult:
        """Create a directory."""
        return cls._get_operations().create_directory(
            path, permissions=permissions, recursive=recursive
        )

    @classmethod
    def get_changelog(cls, lines: int = 100) -> OperationResult:
        """Get the last lines of the change log."""
        return cls._get_operations().get_changelog(lines)

    # ==================== Backup Operations ====================

    @classmethod
    def sweep_backups(cls) -> OperationResult:
        """Remove backup directories older than the retention window."""
        return cls._get_operations().sweep_backups()

    @classmethod
    def list_backups(cls, limit: int = 50) -> List[Dict[str, Any]]:
        """
        List backups, newest first.

        Args:
            limit: Maximum records

        Returns:
            List of backup records
        """
        records = cls._get_operations().backups.list_backups(limit)
        return [r.to_dict() for r in records]

    @classmethod
    def get_backup_stats(cls) -> Dict[str, Any]:
        """Get backup statistics."""
        return cls._get_operations().backups.get_stats()


# ==================== Convenience Functions ====================

def initialize(
    config: Optional[GuardConfig] = None,
    actor_provider: Optional[ActorProvider] = None,
    authorizer: Optional[Authorizer] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> bool:
    """Initialize FileSystemGate."""
    return FileSystemGate.initialize(config, actor_provider, authorizer, clock)


def is_initialized() -> bool:
    """Check if initialized."""
    return FileSystemGate.is_initialized()


def read_file(path: str) -> OperationResult:
    """Read a file."""
    return FileSystemGate.read_file(path)


def write_file(path: str, content: Union[str, bytes], **kwargs) -> OperationResult:
    """Write a file."""
    return FileSystemGate.write_file(path, content, **kwargs)


def append_file(path: str, content: Union[str, bytes], **kwargs) -> OperationResult:
    """Append to a file."""
    return FileSystemGate.append_file(path, content, **kwargs)


def delete_file(path: str, **kwargs) -> OperationResult:
    """Delete a file."""
    return FileSystemGate.delete_file(path, **kwargs)


def copy_file(source: str, dest: str, **kwargs) -> OperationResult:
    """Copy a file."""
    return FileSystemGate.copy_file(source, dest, **kwargs)


def move_file(source: str, dest: str, **kwargs) -> OperationResult:
    """Move a file."""
    return FileSystemGate.move_file(source, dest, **kwargs)


def list_directory(path: str = ".", **kwargs) -> OperationResult:
    """List a directory."""
    return FileSystemGate.list_directory(path, **kwargs)


def file_info(path: str) -> OperationResult:
    """Get file information."""
    return FileSystemGate.file_info(path)


def create_directory(path: str, **kwargs) -> OperationResult:
    """Create a directory."""
    return FileSystemGate.create_directory(path, **kwargs)


def get_changelog(lines: int = 100) -> OperationResult:
    """Get the change log tail."""
    return FileSystemGate.get_changelog(lines)


def sweep_backups() -> OperationResult:
    """Run the backup retention sweep."""
    return FileSystemGate.sweep_backups()


def get_health_status() -> Dict[str, Any]:
    """Get detailed health information."""
    return FileSystemGate.get_health_status()


def get_info() -> dict:
    """
    Get comprehensive documentation for FileSystemGate.

    Returns tool documentation including purpose, call formats, expected
    responses and security information.
    """
    path_arg = {"type": "string", "required": True, "description": "Absolute path or path relative to the installation root"}
    context_arg = {"type": "string", "required": False, "description": "Why the change is made (recorded in the change log)"}

    return {
        "gate": "FileSystemGate",
        "version": "1.0",
        "purpose": "Guarded file access for a site installation. Every path is canonicalized and must stay under the installation's parent directory; core subtrees are read-only; every write is security-scanned, backed up and logged.",

        "concepts": {
            "installation_root": "Base directory of the site. Relative paths are resolved against it.",
            "containment": "Canonical paths must lie under the installation root's parent, so an outer .env stays reachable but nothing else does.",
            "core_subtrees": "wp-includes/ and wp-admin/ are never modified, whatever the caller's capability.",
            "backups": "Destructive operations copy the old file to <backup_root>/<YYYY-MM-DD>/<name>.bak.<HHMMSS> first.",
            "changelog": "Append-only text log of every write, append, delete, copy and move.",
        },

        "tools": {
            "read_file": {
                "purpose": "Read a file",
                "call_format": {"path": path_arg},
                "response": {
                    "success": "boolean",
                    "data": "content, encoding (utf-8 or base64), size, modified",
                },
                "example": 'FileSystemGate.read_file("wp-content/debug.log")',
            },
            "write_file": {
                "purpose": "Create or overwrite a file",
                "call_format": {
                    "path": path_arg,
                    "content": {"type": "string", "required": True, "description": "Content to write"},
                    "backup": {"type": "boolean", "required": False, "default": True, "description": "Back up the existing file"},
                    "context": context_arg,
                },
                "response": {"success": "boolean", "data": "bytes written", "backup_path": "string if a backup was made"},
                "example": 'FileSystemGate.write_file("wp-content/notes.txt", "Hello")',
                "note": "PHP files, executables and content carrying PHP open tags are refused.",
            },
            "append_file": {
                "purpose": "Append or prepend content to an existing file",
                "call_format": {
                    "path": path_arg,
                    "content": {"type": "string", "required": True, "description": "Content to add"},
                    "prepend": {"type": "boolean", "required": False, "default": False, "description": "Add at the start instead"},
                    "backup": {"type": "boolean", "required": False, "default": True, "description": "Back up the file first"},
                    "context": context_arg,
                },
                "response": {"success": "boolean", "data": "bytes added"},
            },
            "delete_file": {
                "purpose": "Delete a file",
                "call_format": {
                    "path": path_arg,
                    "backup": {"type": "boolean", "required": False, "default": True, "description": "Back up the file first"},
                    "context": context_arg,
                },
                "response": {"success": "boolean", "backup_path": "string if a backup was made"},
                "note": "Directories and wp-config.php, .htaccess, index.php in the root cannot be deleted.",
            },
            "copy_file": {
                "purpose": "Copy a file",
                "call_format": {
                    "source": path_arg,
                    "dest": path_arg,
                    "overwrite": {"type": "boolean", "required": False, "default": False, "description": "Replace an existing destination"},
                    "context": context_arg,
                },
                "response": {"success": "boolean", "data": "source, dest", "backup_path": "destination backup if overwritten"},
            },
            "move_file": {
                "purpose": "Move or rename a file",
                "call_format": {
                    "source": path_arg,
                    "dest": path_arg,
                    "overwrite": {"type": "boolean", "required": False, "default": False, "description": "Replace an existing destination"},
                    "context": context_arg,
                },
                "response": {"success": "boolean", "data": "source, dest, source_backup_path, dest_backup_path"},
            },
            "list_directory": {
                "purpose": "List a directory",
                "call_format": {
                    "path": {"type": "string", "required": False, "default": ".", "description": "Directory to list"},
                    "recursive": {"type": "boolean", "required": False, "default": False, "description": "Descend into subdirectories (max depth 2)"},
                    "pattern": {"type": "string", "required": False, "description": "Glob applied to file names, e.g. *.log"},
                },
                "response": {"success": "boolean", "data": "items: name, type, size, modified, path"},
            },
            "file_info": {
                "purpose": "Get information about a file or directory",
                "call_format": {"path": path_arg},
                "response": {"success": "boolean", "data": "type, size, permissions, owner, group, created, modified, accessed, readable, writable"},
            },
            "create_directory": {
                "purpose": "Create a directory",
                "call_format": {
                    "path": path_arg,
                    "permissions": {"type": "string", "required": False, "default": "0755", "description": "Octal mode"},
                    "recursive": {"type": "boolean", "required": False, "default": True, "description": "Create missing parents"},
                },
                "response": {"success": "boolean"},
            },
            "get_changelog": {
                "purpose": "Read the last lines of the change log",
                "call_format": {
                    "lines": {"type": "integer", "required": False, "default": 100, "description": "Lines to return (1-500)"},
                },
                "response": {"success": "boolean", "data": "log text, lines"},
            },
        },

        "security": {
            "path_validation": "Paths are canonicalized (symlinks and .. resolved) before the containment check",
            "core_protection": "wp-includes/ and wp-admin/ are refused for every mutation",
            "content_scanning": "Dangerous extensions, PHP files, web-shell names, double extensions, malicious PHP and PHP open tags in any file are refused",
            "backup_on_modify": "Backups are made before write, append, delete, move and overwriting copy",
        },

        "best_practices": [
            "Use get_changelog() to see what was changed recently",
            "Pass context on every mutation so the change log explains itself",
            "Check response.success before using response.data",
        ],
    }


__all__ = [
    # Class
    "FileSystemGate",
    "FileOperations",
    # Lifecycle / health
    "initialize",
    "is_initialized",
    "get_health_status",
    # File operations
    "read_file",
    "write_file",
    "append_file",
    "delete_file",
    "copy_file",
    "move_file",
    "list_directory",
    "file_info",
    "create_directory",
    "get_changelog",
    "sweep_backups",
    # Components
    "PathResolver",
    "ContentScanner",
    "BackupManager",
    "ChangeLogger",
    "sanitize_filename",
    # Models
    "GuardConfig",
    "Actor",
    "SYSTEM_ACTOR",
    "AuditEntry",
    "BackupRecord",
    "BlockReason",
    "ChangeKind",
    "DirectoryItem",
    "ErrorKind",
    "FileInfo",
    "OperationResult",
    "SecurityVerdict",
    # Errors
    "FileSystemGateError",
    "InvalidInputError",
    "NotFoundError",
    "AccessDeniedError",
    "AlreadyExistsError",
    "BackupError",
    "SecurityBlockedError",
    # Documentation
    "get_info",
]
