"""
FileSystemGate file operations.

FileOperations composes the path resolver, content scanner, backup manager
and change logger into the read, write, append, delete, copy, move, list,
info, mkdir and changelog pipelines. Every public method returns an
OperationResult; nothing raises to the caller.
"""

import base64
import copy
import fnmatch
import grp
import os
import pwd
import random
import shutil
import stat as stat_module
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from sitegate.shared.gate import GateLogger

from .backup import BackupManager, utc_now
from .changelog import ChangeLogger, clamp_lines
from .models import (
    Actor,
    AuditEntry,
    ChangeKind,
    DirectoryItem,
    FileInfo,
    GuardConfig,
    OperationResult,
)
from .resolver import PathResolver
from .security import (
    AccessDeniedError,
    AlreadyExistsError,
    ContentScanner,
    FileSystemGateError,
    InvalidInputError,
    SecurityBlockedError,
)

_log = GateLogger.get("FileSystemGate")

# Listing never descends further than this below the start directory
MAX_LIST_DEPTH = 2

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

Authorizer = Callable[[Actor, str], bool]
ActorProvider = Callable[[], Actor]

SYSTEM_ACTOR = Actor(
    user_id=0,
    email="system",
    ip="local",
    capabilities=frozenset({"manage_options"}),
)


def default_authorizer(actor: Actor, capability: str) -> bool:
    return actor.can(capability)


def default_actor_provider() -> Actor:
    return SYSTEM_ACTOR


def _format_time(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime(TIME_FORMAT)


def _to_bytes(content: Union[str, bytes, None]) -> bytes:
    if content is None:
        return b""
    if isinstance(content, bytes):
        return content
    try:
        return content.encode("utf-8")
    except UnicodeEncodeError:
        # Lone surrogates, e.g. a JSON "\ud800" escape
        raise InvalidInputError("Content is not valid UTF-8 text")


def _owner_name(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def _group_name(gid: int) -> str:
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


def parse_permissions(permissions: Union[str, int, None]) -> int:
    """
    Parse an octal permission string such as "0755".

    Raises:
        InvalidInputError: Not an octal mode
    """
    if permissions is None or permissions == "":
        return 0o755
    text = str(permissions).strip()
    try:
        mode = int(text, 8)
    except ValueError:
        raise InvalidInputError(f"Invalid permissions: {permissions}. Use an octal mode like 0755.")
    if mode < 0 or mode > 0o7777:
        raise InvalidInputError(f"Invalid permissions: {permissions}. Use an octal mode like 0755.")
    return mode


class FileOperations:
    """
    Guarded filesystem operations for one installation.

    Collaborators are injected so each can be tested on its own; anything
    not supplied is built from the GuardConfig.
    """

    def __init__(
        self,
        config: GuardConfig,
        authorizer: Optional[Authorizer] = None,
        actor_provider: Optional[ActorProvider] = None,
        clock: Optional[Callable[[], datetime]] = None,
        resolver: Optional[PathResolver] = None,
        scanner: Optional[ContentScanner] = None,
        backups: Optional[BackupManager] = None,
        changelog: Optional[ChangeLogger] = None,
        sampler: Optional[Callable[[], float]] = None,
    ):
        self.config = config
        self.clock = clock or utc_now
        self.authorizer = authorizer or default_authorizer
        self.actor_provider = actor_provider or default_actor_provider
        self.resolver = resolver or PathResolver(config)
        self.scanner = scanner or ContentScanner(config)
        self.backups = backups or BackupManager(
            config.backup_root, config.retention_days, clock=self.clock
        )
        self.changelog = changelog or ChangeLogger(config.changelog_path)
        self._sampler = sampler or random.random

    def for_actor(self, actor: Actor) -> "FileOperations":
        """A view of this service that acts on behalf of a fixed actor."""
        bound = copy.copy(self)
        bound.actor_provider = lambda: actor
        return bound

    # ==================== Pipeline plumbing ====================

    def _authorize(self) -> Actor:
        actor = self.actor_provider()
        capability = self.config.required_capability
        if not self.authorizer(actor, capability):
            raise AccessDeniedError(
                f"Access denied. The '{capability}' capability is required."
            )
        return actor

    def _run(self, operation: str, path: str, handler: Callable[..., OperationResult], *args) -> OperationResult:
        """Authorize, run a handler and convert failures into an OperationResult."""
        try:
            actor = self._authorize()
            return handler(actor, *args)
        except SecurityBlockedError as e:
            _log.warning(f"Blocked {operation} on {path}: [{e.verdict.reason.value}] {e.verdict.message}")
            return OperationResult(
                success=False,
                operation=operation,
                path=path or "",
                message=e.message,
                error=e.message,
                error_kind=e.kind,
                reason=e.verdict.reason,
            )
        except FileSystemGateError as e:
            if isinstance(e, AccessDeniedError):
                _log.warning(f"Denied {operation} on {path}: {e.message}")
            return OperationResult(
                success=False,
                operation=operation,
                path=path or "",
                message=e.message,
                error=e.message,
                error_kind=e.kind,
            )
        except OSError as e:
            _log.error(f"{operation} failed on {path}: {e}")
            error = FileSystemGateError(f"Failed to {operation}: {e}")
            return OperationResult(
                success=False,
                operation=operation,
                path=path or "",
                message=error.message,
                error=error.message,
                error_kind=error.kind,
            )

    def _require(self, value: Optional[str], label: str) -> None:
        if not value:
            raise InvalidInputError(f"{label} is required.")

    def _scan(self, target: str, content: bytes, size_bytes: Optional[int] = None) -> None:
        verdict = self.scanner.check(
            os.path.basename(target),
            content,
            size_bytes=size_bytes,
            directory=os.path.dirname(target),
        )
        if not verdict:
            raise SecurityBlockedError(verdict)

    def _record(self, actor: Actor, kind: ChangeKind, path: str, **fields) -> None:
        entry = AuditEntry(timestamp=self.clock(), kind=kind, path=path, actor=actor, **fields)
        self.changelog.log(entry)
        _log.info(f"{kind.value} {path} by {actor.email or actor.user_id}")
        self._maybe_sweep()

    def _maybe_sweep(self) -> None:
        rate = self.config.inline_sweep_rate
        if rate <= 0 or self._sampler() >= rate:
            return
        try:
            self.backups.sweep()
        except OSError as e:
            _log.warning(f"Inline backup sweep failed: {e}")

    # ==================== Read-only operations ====================

    def read_file(self, path: str) -> OperationResult:
        """Read a file. Non-UTF-8 content comes back base64 encoded."""
        return self._run("read", path, self._read_file, path)

    def _read_file(self, actor: Actor, path: str) -> OperationResult:
        self._require(path, "Path")
        canonical = self.resolver.resolve(path, label="File")

        if not os.path.isfile(canonical):
            raise InvalidInputError(f"Path is not a file: {path}")
        if not os.access(canonical, os.R_OK):
            raise AccessDeniedError(f"File is not readable: {path}")

        with open(canonical, "rb") as f:
            raw = f.read()

        try:
            content, encoding = raw.decode("utf-8"), "utf-8"
        except UnicodeDecodeError:
            content, encoding = base64.b64encode(raw).decode("ascii"), "base64"

        return OperationResult(
            success=True,
            operation="read",
            path=canonical,
            message=f"Read {len(raw)} bytes",
            data={
                "content": content,
                "encoding": encoding,
                "size": len(raw),
                "modified": _format_time(os.path.getmtime(canonical)),
            },
        )

    def list_directory(self, path: str = ".", recursive: bool = False, pattern: Optional[str] = None) -> OperationResult:
        """
        List a directory.

        Recursion stops two levels below the start directory. ``pattern``
        is an fnmatch glob applied to file names only.
        """
        return self._run("list", path, self._list_directory, path, recursive, pattern)

    def _list_directory(self, actor: Actor, path: str, recursive: bool, pattern: Optional[str]) -> OperationResult:
        canonical = self.resolver.resolve(path or ".", label="Directory")
        if not os.path.isdir(canonical):
            raise InvalidInputError("Path is not a directory.")

        items: List[DirectoryItem] = []

        def walk(directory: str, depth: int) -> None:
            if depth > MAX_LIST_DEPTH:
                return
            for name in sorted(os.listdir(directory)):
                entry = os.path.join(directory, name)
                is_dir = os.path.isdir(entry)
                if pattern and not is_dir and not fnmatch.fnmatch(name, pattern):
                    continue
                try:
                    st = os.stat(entry)
                except OSError:
                    # Dangling link or entry removed mid-listing
                    continue
                items.append(DirectoryItem(
                    name=name,
                    type="directory" if is_dir else "file",
                    size=0 if is_dir else st.st_size,
                    modified=_format_time(st.st_mtime),
                    path=entry,
                ))
                if recursive and is_dir:
                    walk(entry, depth + 1)

        walk(canonical, 0)

        return OperationResult(
            success=True,
            operation="list",
            path=canonical,
            message=f"Listed {len(items)} items",
            data={"items": [item.to_dict() for item in items]},
        )

    def file_info(self, path: str) -> OperationResult:
        """Stat a file or directory."""
        return self._run("info", path, self._file_info, path)

    def _file_info(self, actor: Actor, path: str) -> OperationResult:
        self._require(path, "Path")
        canonical = self.resolver.resolve(path)
        st = os.stat(canonical)

        info = FileInfo(
            path=canonical,
            type="directory" if os.path.isdir(canonical) else "file",
            size=st.st_size,
            permissions=f"{stat_module.S_IMODE(st.st_mode):04o}",
            owner=_owner_name(st.st_uid),
            group=_group_name(st.st_gid),
            created=_format_time(st.st_ctime),
            modified=_format_time(st.st_mtime),
            accessed=_format_time(st.st_atime),
            readable=os.access(canonical, os.R_OK),
            writable=os.access(canonical, os.W_OK),
        )

        return OperationResult(
            success=True,
            operation="info",
            path=canonical,
            message="File information retrieved",
            data=info.to_dict(),
        )

    def get_changelog(self, lines: int = 100) -> OperationResult:
        """Return the tail of the change log."""
        return self._run("changelog", self.config.changelog_path, self._get_changelog, lines)

    def _get_changelog(self, actor: Actor, lines: int) -> OperationResult:
        count = clamp_lines(lines)
        text = self.changelog.tail(count)
        return OperationResult(
            success=True,
            operation="changelog",
            path=self.config.changelog_path,
            message="Change log is empty" if not text else f"Last {count} lines of the change log",
            data={"log": text, "lines": count},
        )

    # ==================== Mutating operations ====================

    def write_file(
        self,
        path: str,
        content: Union[str, bytes],
        backup: bool = True,
        context: Optional[str] = None,
    ) -> OperationResult:
        """Create or overwrite a file. The parent directory must exist."""
        return self._run("write", path, self._write_file, path, content, backup, context)

    def _write_file(self, actor: Actor, path: str, content, backup: bool, context: Optional[str]) -> OperationResult:
        self._require(path, "Path")
        target = self.resolver.resolve_target(path, label="File")
        self.resolver.assert_mutable(target)
        if os.path.isdir(target):
            raise InvalidInputError(f"Path is a directory: {path}")

        data = _to_bytes(content)
        self._scan(target, data)

        existed = os.path.isfile(target)
        size_before = os.path.getsize(target) if existed else None
        record = self.backups.backup(target) if backup and existed else None
        backup_path = record.backup_path if record else None

        with open(target, "wb") as f:
            written = f.write(data)

        self._record(
            actor, ChangeKind.WRITE, target,
            backup_path=backup_path,
            size_before=size_before,
            size_after=written,
            context=context,
        )

        return OperationResult(
            success=True,
            operation="write",
            path=target,
            message="File written successfully.",
            data={"bytes": written},
            backup_path=backup_path,
        )

    def append_file(
        self,
        path: str,
        content: Union[str, bytes],
        prepend: bool = False,
        backup: bool = True,
        context: Optional[str] = None,
    ) -> OperationResult:
        """Append (or prepend) content to an existing file."""
        return self._run("append", path, self._append_file, path, content, prepend, backup, context)

    def _append_file(
        self, actor: Actor, path: str, content, prepend: bool, backup: bool, context: Optional[str]
    ) -> OperationResult:
        self._require(path, "Path")
        canonical = self.resolver.resolve(path, label="File")
        if not os.path.isfile(canonical):
            raise InvalidInputError(f"Path is not a file: {path}")
        self.resolver.assert_mutable(canonical)

        data = _to_bytes(content)
        size_before = os.path.getsize(canonical)
        # Only the new bytes are scanned; the size rule sees the result
        self._scan(canonical, data, size_bytes=size_before + len(data))

        record = self.backups.backup(canonical) if backup else None
        backup_path = record.backup_path if record else None

        if prepend:
            with open(canonical, "rb") as f:
                existing = f.read()
            with open(canonical, "wb") as f:
                f.write(data + existing)
        else:
            with open(canonical, "ab") as f:
                f.write(data)

        self._record(
            actor, ChangeKind.APPEND, canonical,
            backup_path=backup_path,
            size_before=size_before,
            size_after=os.path.getsize(canonical),
            context=context,
        )

        return OperationResult(
            success=True,
            operation="append",
            path=canonical,
            message="Content prepended successfully." if prepend else "Content appended successfully.",
            data={"bytes": len(data)},
            backup_path=backup_path,
        )

    def delete_file(self, path: str, backup: bool = True, context: Optional[str] = None) -> OperationResult:
        """Delete a single file. Directories and critical root files are refused."""
        return self._run("delete", path, self._delete_file, path, backup, context)

    def _delete_file(self, actor: Actor, path: str, backup: bool, context: Optional[str]) -> OperationResult:
        self._require(path, "Path")
        canonical = self.resolver.resolve(path, label="File")
        if os.path.isdir(canonical):
            raise InvalidInputError("Cannot delete directories. Only files can be deleted.")
        self.resolver.assert_mutable(canonical)
        if self.resolver.is_critical(canonical):
            raise AccessDeniedError("Cannot delete critical site files. Use write-file to modify instead.")

        size_before = os.path.getsize(canonical)
        record = self.backups.backup(canonical) if backup else None
        backup_path = record.backup_path if record else None

        os.remove(canonical)

        self._record(
            actor, ChangeKind.DELETE, canonical,
            backup_path=backup_path,
            size_before=size_before,
            context=context,
        )

        return OperationResult(
            success=True,
            operation="delete",
            path=canonical,
            message="File deleted successfully.",
            backup_path=backup_path,
        )

    def _resolve_transfer(self, source: str, dest: str, overwrite: bool):
        """Shared source/destination checks for copy and move."""
        self._require(source, "Source")
        self._require(dest, "Destination")

        src = self.resolver.resolve(source, label="Source")
        if not os.path.isfile(src):
            raise InvalidInputError(f"Source is not a file: {source}")

        dst = self.resolver.resolve_target(dest, label="Destination")
        self.resolver.assert_mutable(dst)

        if src == dst:
            raise InvalidInputError("Source and destination are the same file.")
        if os.path.isdir(dst):
            raise InvalidInputError(f"Destination is a directory: {dest}")

        dest_exists = os.path.exists(dst)
        if dest_exists and not overwrite:
            raise AlreadyExistsError("Destination already exists. Set overwrite to true to replace it.")

        size = os.path.getsize(src)
        if size > self.config.max_write_bytes:
            # The size rule precedes every content rule, so the source is
            # never loaded just to be refused
            self._scan(dst, b"", size_bytes=size)

        with open(src, "rb") as f:
            content = f.read()
        self._scan(dst, content)

        return src, dst, dest_exists, content

    def copy_file(
        self,
        source: str,
        dest: str,
        overwrite: bool = False,
        context: Optional[str] = None,
    ) -> OperationResult:
        """Copy a file. An existing destination is backed up before being replaced."""
        return self._run("copy", source, self._copy_file, source, dest, overwrite, context)

    def _copy_file(self, actor: Actor, source: str, dest: str, overwrite: bool, context: Optional[str]) -> OperationResult:
        src, dst, dest_exists, content = self._resolve_transfer(source, dest, overwrite)

        size_before = os.path.getsize(dst) if dest_exists else None
        record = self.backups.backup(dst) if dest_exists else None
        backup_path = record.backup_path if record else None

        # Write the scanned bytes, not whatever the source holds now
        with open(dst, "wb") as f:
            f.write(content)
        shutil.copystat(src, dst)

        self._record(
            actor, ChangeKind.COPY, src,
            destination=dst,
            backup_path=backup_path,
            size_before=size_before,
            size_after=len(content),
            context=context,
        )

        return OperationResult(
            success=True,
            operation="copy",
            path=dst,
            message="File copied successfully.",
            data={"source": src, "dest": dst},
            backup_path=backup_path,
        )

    def move_file(
        self,
        source: str,
        dest: str,
        overwrite: bool = False,
        context: Optional[str] = None,
    ) -> OperationResult:
        """
        Move or rename a file.

        The source is always backed up first; an existing destination is
        backed up as well before it is replaced.
        """
        return self._run("move", source, self._move_file, source, dest, overwrite, context)

    def _move_file(self, actor: Actor, source: str, dest: str, overwrite: bool, context: Optional[str]) -> OperationResult:
        self._require(source, "Source")
        src = self.resolver.resolve(source, label="Source")
        self.resolver.assert_mutable(src)

        src, dst, dest_exists, content = self._resolve_transfer(source, dest, overwrite)

        source_record = self.backups.backup(src)
        dest_record = self.backups.backup(dst) if dest_exists else None
        dest_backup_path = dest_record.backup_path if dest_record else None

        shutil.move(src, dst)

        self._record(
            actor, ChangeKind.MOVE, src,
            destination=dst,
            backup_path=source_record.backup_path,
            size_after=len(content),
            context=context,
        )

        data: Dict[str, Any] = {
            "source": src,
            "dest": dst,
            "source_backup_path": source_record.backup_path,
        }
        if dest_backup_path:
            data["dest_backup_path"] = dest_backup_path

        return OperationResult(
            success=True,
            operation="move",
            path=dst,
            message="File moved successfully.",
            data=data,
            backup_path=source_record.backup_path,
        )

    def create_directory(
        self,
        path: str,
        permissions: Union[str, int] = "0755",
        recursive: bool = True,
    ) -> OperationResult:
        """Create a directory and apply the requested mode to it."""
        return self._run("mkdir", path, self._create_directory, path, permissions, recursive)

    def _create_directory(self, actor: Actor, path: str, permissions, recursive: bool) -> OperationResult:
        self._require(path, "Path")
        mode = parse_permissions(permissions)
        target, _ = self.resolver.resolve_new_directory(path, parents=recursive)
        self.resolver.assert_mutable(target)

        if os.path.lexists(target):
            raise AlreadyExistsError(f"Path already exists: {path}")

        if recursive:
            os.makedirs(target, mode)
        else:
            os.mkdir(target, mode)
        # mkdir's mode is filtered by the umask
        os.chmod(target, mode)

        _log.info(f"Created directory {target} ({mode:04o}) by {actor.email or actor.user_id}")
        return OperationResult(
            success=True,
            operation="mkdir",
            path=target,
            message="Directory created successfully.",
        )

    # ==================== Maintenance ====================

    def sweep_backups(self) -> OperationResult:
        """Remove backup partitions past the retention window."""
        return self._run("sweep", self.config.backup_root, self._sweep_backups)

    def _sweep_backups(self, actor: Actor) -> OperationResult:
        removed = self.backups.sweep()
        return OperationResult(
            success=True,
            operation="sweep",
            path=self.config.backup_root,
            message=f"Removed {removed} expired backup directories",
            data={"removed": removed, "retention_days": self.config.retention_days},
        )
