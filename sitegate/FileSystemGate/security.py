"""
FileSystemGate security module.

Provides the gate's error types, filename sanitizing and the content
security scanner that every write, append, copy and move destination
passes through.
"""

import mimetypes
import os
import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .models import BlockReason, ErrorKind, GuardConfig, SecurityVerdict


# ==================== Errors ====================


class FileSystemGateError(Exception):
    """Base class for failures inside a FileSystemGate operation."""
    kind: ErrorKind = ErrorKind.IO_FAILURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(FileSystemGateError):
    """A required argument is missing or malformed."""
    kind = ErrorKind.INVALID_INPUT


class NotFoundError(FileSystemGateError):
    """The path does not resolve to an existing entry."""
    kind = ErrorKind.NOT_FOUND


class AccessDeniedError(FileSystemGateError):
    """Containment, core-subtree or capability violation."""
    kind = ErrorKind.ACCESS_DENIED


class AlreadyExistsError(FileSystemGateError):
    """The destination exists and overwriting was not requested."""
    kind = ErrorKind.ALREADY_EXISTS


class BackupError(FileSystemGateError):
    """A required backup could not be made."""
    kind = ErrorKind.BACKUP_FAILURE


class SecurityBlockedError(FileSystemGateError):
    """The content scanner refused the write."""
    kind = ErrorKind.SECURITY_BLOCKED

    def __init__(self, verdict: SecurityVerdict):
        super().__init__(f"Security check failed: {verdict.message}")
        self.verdict = verdict


# ==================== Filenames ====================


PHP_EXTENSIONS = frozenset({
    "php", "phtml", "php3", "php4", "php5", "php6", "php7", "php8", "phps", "phar",
})

NEVER_WRITABLE_EXTENSIONS = frozenset({
    "exe", "com", "bat", "cmd", "sh", "bash", "zsh", "ksh", "csh", "cgi",
    "pl", "py", "pyc", "rb", "asp", "aspx", "ascx", "ashx", "jsp", "jspx",
    "cfm", "cfml", "shtml", "dll", "so", "ps1", "psm1", "vbs", "vbe", "wsf",
    "msi", "scr", "jar",
})

ALWAYS_ALLOWED_EXTENSIONS = frozenset({
    "htaccess", "php", "txt", "log", "json", "xml", "css", "js", "md", "html", "htm",
})

ALLOWED_DOTFILES = frozenset({".htaccess", ".htpasswd", ".user.ini"})

SHELL_NAME_FRAGMENTS = (
    "c99", "r57", "wso", "b374k", "weevely", "shell", "alfa", "bypass", "backdoor",
)

HTACCESS_DIRECTIVES = (
    "AddType", "SetHandler", "php_value", "php_flag", "auto_prepend", "auto_append",
)

# Same set the host's filename sanitizer strips
_SPECIAL_CHARS = set('?[]/\\=<>:;,\'"&$#*()|~`!{}%+’«»”“')

_DOUBLE_EXTENSION = re.compile(r"\.(php\d?|phtml|phar|phps)\.[a-z0-9]+$", re.IGNORECASE)


def get_extension(filename: str) -> str:
    """Lowercased text after the last dot ('' when there is none)."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def sanitize_filename(filename: str) -> str:
    """
    Sanitize a filename the way the host platform does.

    Removes path separators, control characters and shell/URL special
    characters, turns whitespace runs into dashes and trims leading and
    trailing dots, dashes and underscores.

    Args:
        filename: Raw filename

    Returns:
        Sanitized filename
    """
    filename = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", filename)
    filename = "".join(ch for ch in filename if ch not in _SPECIAL_CHARS)
    filename = re.sub(r"[\r\n\t -]+", "-", filename)
    return filename.strip(".-_")


# ==================== Content signatures ====================


MALICIOUS_CODE_PATTERNS: Tuple[Tuple[str, "re.Pattern[bytes]"], ...] = tuple(
    (label, re.compile(pattern, re.IGNORECASE))
    for label, pattern in (
        ("eval()", rb"\beval\s*\("),
        ("assert()", rb"\bassert\s*\("),
        ("create_function()", rb"\bcreate_function\s*\("),
        ("base64_decode()", rb"\bbase64_decode\s*\("),
        ("hex-escaped string", rb"(?:\\x[0-9a-f]{2}){4,}"),
        ("variable variable", rb"\$\$[a-z_{]|\$\{\s*\$"),
        ("XOR string obfuscation", rb"['\"]\s*\^\s*['\"]"),
        ("shell_exec()", rb"\bshell_exec\s*\("),
        ("command execution", rb"\b(?:exec|system|passthru|popen|proc_open|pcntl_exec)\s*\("),
        ("backtick execution", rb"`[^`\r\n]+`"),
        ("superglobal dynamic call", rb"\$_(?:GET|POST|REQUEST|COOKIE|SERVER|FILES)\s*\[[^\]]*\]\s*\("),
        ("preg_replace /e modifier", rb"\bpreg_replace\s*\(\s*(['\"]).*?/[a-z]*e[a-z]*\1"),
        ("call_user_func()", rb"\bcall_user_func(?:_array)?\s*\("),
        ("array callback execution", rb"\barray_(?:map|filter|walk|walk_recursive|reduce)\s*\(\s*(?:\$|['\"])"),
        ("sort callback execution", rb"\bu[ak]?sort\s*\([^,]+,\s*(?:\$|['\"])"),
        ("dynamic include", rb"\b(?:include|require)(?:_once)?\s*\(?\s*\$"),
    )
)

POLYGLOT_SIGNATURES: Tuple[Tuple[str, "re.Pattern[bytes]"], ...] = (
    ("<?php", re.compile(rb"<\?php", re.IGNORECASE)),
    ("<?=", re.compile(rb"<\?=")),
    ("<? short tag", re.compile(rb"<\?\s")),
    ("<% ASP-style tag", re.compile(rb"<%")),
    ('<script language="php">', re.compile(rb"<script[^>]*language\s*=\s*['\"]?php", re.IGNORECASE)),
    ("UTF-7 encoded <?", re.compile(rb"\+ADw(?:-\?|AP)")),
    ("UTF-16LE encoded <?", re.compile(re.escape("<?".encode("utf-16-le")))),
    ("UTF-16BE encoded <?", re.compile(re.escape("<?".encode("utf-16-be")))),
)


def _first_match(content: bytes, patterns) -> Optional[str]:
    for label, pattern in patterns:
        if pattern.search(content):
            return label
    return None


# ==================== Scanner ====================


@dataclass(frozen=True)
class ScanSubject:
    """Everything a scan rule may look at."""
    filename: str
    extension: str
    content: bytes
    size_bytes: int
    directory: Optional[str]

    @property
    def is_php(self) -> bool:
        return self.extension in PHP_EXTENSIONS


@dataclass(frozen=True)
class ScanRule:
    """A scanner rule: ``test`` returns a message when the rule fires."""
    name: str
    reason: BlockReason
    test: Callable[[ScanSubject], Optional[str]]


class ContentScanner:
    """
    Ordered rule scanner for files about to receive new bytes.

    Rules are evaluated in order and the first one that fires decides the
    verdict. Verdicts depend only on the inputs and the configuration.
    """

    def __init__(self, config: GuardConfig):
        self.config = config
        self._root = os.path.realpath(config.install_root)
        self._upload_extensions = frozenset(e.lower().lstrip(".") for e in config.upload_extensions)
        self._rules: Tuple[ScanRule, ...] = (
            ScanRule("global-write-disable", BlockReason.GLOBAL_WRITE_DISABLED, self._global_write_disabled),
            ScanRule("php-edit-disable", BlockReason.PHP_EDIT_DISABLED, self._php_edit_disabled),
            ScanRule("size-ceiling", BlockReason.OVERSIZE, self._oversize),
            ScanRule("filename-chars", BlockReason.INVALID_FILENAME_CHARS, self._invalid_filename),
            ScanRule("dangerous-extension", BlockReason.DANGEROUS_EXTENSION, self._dangerous_extension),
            ScanRule("php-extension", BlockReason.PHP_EXTENSION, self._php_extension),
            ScanRule("htaccess-location", BlockReason.HTACCESS_LOCATION, self._htaccess_location),
            ScanRule("htaccess-directive", BlockReason.HTACCESS_DIRECTIVE, self._htaccess_directive),
            ScanRule("mime-type", BlockReason.DISALLOWED_MIME, self._disallowed_mime),
            ScanRule("shell-name", BlockReason.SHELL_NAME_PATTERN, self._shell_name),
            ScanRule("double-extension", BlockReason.DOUBLE_EXTENSION, self._double_extension),
            ScanRule("malicious-code", BlockReason.MALICIOUS_CODE_PATTERN, self._malicious_code),
            ScanRule("polyglot", BlockReason.POLYGLOT_PHP_SIGNATURE, self._polyglot),
        )

    def rules(self) -> Tuple[ScanRule, ...]:
        """The rule list, in evaluation order."""
        return self._rules

    def check(
        self,
        filename: str,
        content: bytes | str = b"",
        size_bytes: Optional[int] = None,
        directory: Optional[str] = None,
    ) -> SecurityVerdict:
        """
        Scan a candidate file.

        Args:
            filename: Leaf name of the target
            content: Bytes that will land in the target
            size_bytes: Resulting file size (defaults to len(content))
            directory: Canonical directory of the target; ``.htaccess`` is
                only writable in the installation root

        Returns:
            SecurityVerdict
        """
        if isinstance(content, str):
            try:
                content = content.encode("utf-8")
            except UnicodeEncodeError:
                raise InvalidInputError("Content is not valid UTF-8 text")

        subject = ScanSubject(
            filename=filename,
            extension=get_extension(filename),
            content=content,
            size_bytes=len(content) if size_bytes is None else size_bytes,
            directory=directory,
        )

        for rule in self._rules:
            message = rule.test(subject)
            if message:
                return SecurityVerdict.block(rule.reason, message)

        return SecurityVerdict.allow()

    # ---- rules ----

    def _global_write_disabled(self, subject: ScanSubject) -> Optional[str]:
        if self.config.disallow_file_mods:
            return "File modifications are disabled on this site"
        return None

    def _php_edit_disabled(self, subject: ScanSubject) -> Optional[str]:
        if subject.is_php and self.config.disallow_file_edit:
            return "PHP file editing is disabled on this site"
        return None

    def _oversize(self, subject: ScanSubject) -> Optional[str]:
        if subject.size_bytes > self.config.max_write_bytes:
            limit_mb = self.config.max_write_bytes / (1024 * 1024)
            size_mb = subject.size_bytes / (1024 * 1024)
            return f"File size ({size_mb:.2f}MB) exceeds limit ({limit_mb:.0f}MB)"
        return None

    def _invalid_filename(self, subject: ScanSubject) -> Optional[str]:
        if subject.filename in ALLOWED_DOTFILES:
            return None
        if sanitize_filename(subject.filename) != subject.filename:
            return f"Filename contains invalid characters: {subject.filename}"
        return None

    def _dangerous_extension(self, subject: ScanSubject) -> Optional[str]:
        if subject.extension in NEVER_WRITABLE_EXTENSIONS:
            return f"Extension .{subject.extension} can never be written"
        return None

    def _php_extension(self, subject: ScanSubject) -> Optional[str]:
        if subject.is_php:
            return (
                f"PHP files (.{subject.extension}) cannot be written through the filesystem "
                "abilities; deploy code as a plugin instead"
            )
        return None

    def _htaccess_location(self, subject: ScanSubject) -> Optional[str]:
        if subject.filename != ".htaccess":
            return None
        if subject.directory is None or os.path.realpath(subject.directory) != self._root:
            return ".htaccess may only be written in the installation root"
        return None

    def _htaccess_directive(self, subject: ScanSubject) -> Optional[str]:
        if subject.filename != ".htaccess" or not subject.content:
            return None
        lowered = subject.content.lower()
        for directive in HTACCESS_DIRECTIVES:
            if directive.lower().encode("ascii") in lowered:
                return f".htaccess contains a forbidden directive: {directive}"
        return None

    def _disallowed_mime(self, subject: ScanSubject) -> Optional[str]:
        ext = subject.extension
        if ext in ALWAYS_ALLOWED_EXTENSIONS or ext in self._upload_extensions:
            return None
        mime, _ = mimetypes.guess_type(f"file.{ext}" if ext else subject.filename)
        return f"File type not allowed: .{ext or '(none)'} ({mime or 'unknown type'})"

    def _shell_name(self, subject: ScanSubject) -> Optional[str]:
        lowered = subject.filename.lower()
        for fragment in SHELL_NAME_FRAGMENTS:
            if fragment in lowered:
                return f"Filename matches a known web-shell pattern: {fragment}"
        return None

    def _double_extension(self, subject: ScanSubject) -> Optional[str]:
        if _DOUBLE_EXTENSION.search(subject.filename):
            return f"Double extension hiding a PHP file: {subject.filename}"
        return None

    def _malicious_code(self, subject: ScanSubject) -> Optional[str]:
        if not subject.is_php or not subject.content:
            return None
        label = _first_match(subject.content, MALICIOUS_CODE_PATTERNS)
        if label:
            return f"Content matches a malicious code pattern: {label}"
        return None

    def _polyglot(self, subject: ScanSubject) -> Optional[str]:
        if not subject.content:
            return None
        label = _first_match(subject.content, POLYGLOT_SIGNATURES)
        if label:
            return f"Content contains a PHP opening signature ({label})"
        return None
