"""
FileSystemGate Pydantic models.

Defines the guard configuration, caller identity, scanner verdicts,
backup and audit records, and file metadata.
"""

import os
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, FrozenSet

from pydantic import BaseModel, ConfigDict, Field, model_validator


MIB = 1024 * 1024

DEFAULT_BACKUP_DIR = os.path.join("wp-content", "sitegate-backups")
DEFAULT_CHANGELOG = os.path.join("wp-content", "sitegate-changelog.log")

# Host's default allowed upload types (extension part only)
DEFAULT_UPLOAD_EXTENSIONS = [
    "jpg", "jpeg", "jpe", "gif", "png", "bmp", "tiff", "tif", "webp", "avif",
    "ico", "heic", "heif", "svg",
    "mp4", "m4v", "mov", "qt", "wmv", "avi", "mpeg", "mpg", "mpe", "ogv",
    "webm", "mkv", "3gp", "3g2",
    "mp3", "m4a", "m4b", "aac", "wav", "ogg", "oga", "flac", "mid", "midi",
    "wma", "mka",
    "csv", "tsv", "ics", "vtt", "srt", "asc", "rtf", "pdf",
    "doc", "docx", "docm", "dotx", "xls", "xlsx", "xlsm", "ppt", "pptx",
    "pps", "ppsx", "odt", "ods", "odp", "odg", "key", "numbers", "pages",
    "psd", "xcf", "zip", "gz", "gzip", "tar", "rar", "7z",
    "woff", "woff2", "ttf", "otf", "eot", "map",
]


class GuardConfig(BaseModel):
    """Configuration for the filesystem guard."""
    install_root: str = Field(description="Installation root (the site's ABSPATH)")
    backup_root: Optional[str] = Field(
        default=None,
        description="Backup store (default: <install_root>/wp-content/sitegate-backups)"
    )
    changelog_path: Optional[str] = Field(
        default=None,
        description="Audit change log (default: <install_root>/wp-content/sitegate-changelog.log)"
    )
    retention_days: int = Field(default=7, ge=1)
    max_write_bytes: int = Field(default=10 * MIB, ge=1)
    disallow_file_mods: bool = Field(default=False, description="Global write-disable flag")
    disallow_file_edit: bool = Field(default=False, description="PHP edit-disable flag")
    core_subtrees: List[str] = Field(default_factory=lambda: ["wp-includes", "wp-admin"])
    critical_files: List[str] = Field(
        default_factory=lambda: ["wp-config.php", ".htaccess", "index.php"]
    )
    upload_extensions: List[str] = Field(
        default_factory=lambda: list(DEFAULT_UPLOAD_EXTENSIONS)
    )
    inline_sweep_rate: float = Field(
        default=0.0, ge=0.0, le=1.0,
        description="Chance of running the retention sweep after a logged change (0 = never)"
    )
    required_capability: str = Field(default="manage_options")

    @model_validator(mode="after")
    def _fill_default_paths(self) -> "GuardConfig":
        if not self.backup_root:
            self.backup_root = os.path.join(self.install_root, DEFAULT_BACKUP_DIR)
        if not self.changelog_path:
            self.changelog_path = os.path.join(self.install_root, DEFAULT_CHANGELOG)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return self.model_dump(mode="json")


class Actor(BaseModel):
    """Identity of the caller, supplied by the host per request."""
    model_config = ConfigDict(frozen=True)

    user_id: int = 0
    email: str = ""
    ip: str = "unknown"
    capabilities: FrozenSet[str] = Field(default_factory=frozenset)

    def can(self, capability: str) -> bool:
        """Check if the actor holds a capability."""
        return capability in self.capabilities

    def describe(self) -> str:
        """Single-line identity used in the change log."""
        return f"{self.email or 'unknown'} (ID: {self.user_id}) from {self.ip}"


class BlockReason(str, Enum):
    """Why the content scanner refused a write."""
    GLOBAL_WRITE_DISABLED = "global_write_disabled"
    PHP_EDIT_DISABLED = "php_edit_disabled"
    OVERSIZE = "oversize"
    INVALID_FILENAME_CHARS = "invalid_filename_chars"
    DANGEROUS_EXTENSION = "dangerous_extension"
    PHP_EXTENSION = "php_extension"
    HTACCESS_LOCATION = "htaccess_location"
    HTACCESS_DIRECTIVE = "htaccess_directive"
    DISALLOWED_MIME = "disallowed_mime"
    SHELL_NAME_PATTERN = "shell_name_pattern"
    DOUBLE_EXTENSION = "double_extension"
    MALICIOUS_CODE_PATTERN = "malicious_code_pattern"
    POLYGLOT_PHP_SIGNATURE = "polyglot_php_signature"


class SecurityVerdict(BaseModel):
    """Result of scanning a (filename, content, size) triple."""
    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: Optional[BlockReason] = None
    message: str = ""

    @classmethod
    def allow(cls) -> "SecurityVerdict":
        return cls(allowed=True)

    @classmethod
    def block(cls, reason: BlockReason, message: str) -> "SecurityVerdict":
        return cls(allowed=False, reason=reason, message=message)

    def __bool__(self) -> bool:
        return self.allowed


class ErrorKind(str, Enum):
    """Failure taxonomy reported to callers."""
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    SECURITY_BLOCKED = "security_blocked"
    ALREADY_EXISTS = "already_exists"
    IO_FAILURE = "io_failure"
    BACKUP_FAILURE = "backup_failure"


class ChangeKind(str, Enum):
    """Destructive operations recorded in the change log."""
    WRITE = "WRITE"
    APPEND = "APPEND"
    DELETE = "DELETE"
    MOVE = "MOVE"
    COPY = "COPY"


class BackupRecord(BaseModel):
    """A backup copy made before a destructive operation."""
    source_path: str = Field(description="File that was backed up")
    backup_path: str = Field(description="Location of the copy in the backup store")
    size_bytes: int = Field(default=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return self.model_dump(mode="json")


class AuditEntry(BaseModel):
    """One record in the append-only change log."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    kind: ChangeKind
    path: str
    actor: Actor
    backup_path: Optional[str] = None
    destination: Optional[str] = None
    size_before: Optional[int] = None
    size_after: Optional[int] = None
    context: Optional[str] = None

    def render(self) -> str:
        """Render as a multi-line text block ending with a blank separator line."""
        stamp = self.timestamp.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        lines = [
            f"[{stamp} UTC] {self.kind.value}",
            f"File: {self.path}",
            f"User: {self.actor.describe()}",
        ]
        if self.backup_path:
            lines.append(f"Backup: {self.backup_path}")
        if self.destination:
            lines.append(f"Destination: {self.destination}")
        if self.size_before is not None or self.size_after is not None:
            before = "-" if self.size_before is None else self.size_before
            after = "-" if self.size_after is None else self.size_after
            lines.append(f"Size: {before} -> {after} bytes")
        if self.context:
            # Keep the record one block even if the caller sent newlines
            lines.append("Context: " + " ".join(self.context.split()))
        return "\n".join(lines) + "\n\n"


class DirectoryItem(BaseModel):
    """One entry of a directory listing."""
    name: str
    type: str = Field(description="file or directory")
    size: int = 0
    modified: str
    path: str

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class FileInfo(BaseModel):
    """Information about a file or directory."""
    path: str
    type: str
    size: int
    permissions: str = Field(description="Four-digit octal mode, e.g. 0644")
    owner: str
    group: str
    created: str
    modified: str
    accessed: str
    readable: bool
    writable: bool

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return self.model_dump(mode="json")


class OperationResult(BaseModel):
    """Result of a file system operation."""
    success: bool
    operation: str = Field(description="Operation type: read/write/append/delete/copy/move/list/info/mkdir/changelog")
    path: str = ""
    message: str = ""
    data: Optional[Any] = None
    backup_path: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    reason: Optional[BlockReason] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return self.model_dump(mode="json", exclude_none=True)
