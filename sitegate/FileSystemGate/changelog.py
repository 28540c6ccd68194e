"""
FileSystemGate change log.

Append-only text record of every destructive operation, kept beside the
site so an operator (or an agent that lost its context) can see what was
changed, by whom, and where the backup went.
"""

import fcntl
import os
from collections import deque

from sitegate.shared.gate import GateLogger

from .models import AuditEntry

_log = GateLogger.get("FileSystemGate")

DEFAULT_TAIL_LINES = 100
MAX_TAIL_LINES = 500


def clamp_lines(lines) -> int:
    """Clamp a requested line count to 1..MAX_TAIL_LINES."""
    try:
        lines = int(lines)
    except (TypeError, ValueError):
        lines = DEFAULT_TAIL_LINES
    return max(1, min(lines, MAX_TAIL_LINES))


class ChangeLogger:
    """Writes and tails the change log."""

    def __init__(self, log_path: str):
        self.log_path = log_path

    def log(self, entry: AuditEntry) -> bool:
        """
        Append one entry.

        The whole block goes out in a single write on an O_APPEND
        descriptor while holding an exclusive lock, so concurrent writers
        never interleave partial records. Failures are reported as a
        warning and never raised.

        Returns:
            True if the entry was written
        """
        block = entry.render().encode("utf-8")

        try:
            os.makedirs(os.path.dirname(self.log_path) or ".", exist_ok=True)
            fd = os.open(self.log_path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o640)
            try:
                fcntl.flock(fd, fcntl.LOCK_EX)
                try:
                    os.write(fd, block)
                finally:
                    fcntl.flock(fd, fcntl.LOCK_UN)
            finally:
                os.close(fd)
        except OSError as e:
            _log.warning(f"Could not write change log entry to {self.log_path}: {e}")
            return False

        return True

    def tail(self, lines: int = DEFAULT_TAIL_LINES) -> str:
        """
        Return the last ``lines`` lines of the log (clamped to 1..500).

        Returns an empty string when nothing has been logged yet.
        """
        lines = clamp_lines(lines)
        if not os.path.exists(self.log_path):
            return ""

        with open(self.log_path, "r", encoding="utf-8", errors="replace") as f:
            last = deque(f, maxlen=lines)

        return "".join(last)
