"""
Error types and error logging for the consolidation tool.

Logs full stack traces for debugging while showing clean messages to users.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class ConsolidationError(Exception):
    """Base class for consolidation failures."""


class LoadFailure(ConsolidationError):
    """Work items could not be enumerated. Fatal for the whole run."""


class WriteFailure(ConsolidationError):
    """
    A single item could not be persisted.

    Earlier writes of the same consolidation are not rolled back; the
    caller may retry.
    """

    def __init__(self, message: str, *, item_id: str = "", operation: str = ""):
        super().__init__(message)
        self.item_id = item_id
        self.operation = operation


class ApprovalDenied(ConsolidationError):
    """Consolidation was requested without explicit approval."""


class UnknownStrategy(ConsolidationError):
    """A candidate carries a strategy with no handler (should be unreachable)."""


class ItemNotFound(ConsolidationError):
    """No work item with the requested ID."""


class StaleCandidate(ConsolidationError):
    """A candidate refers to an item archived by an earlier consolidation."""


def _error_log_path(work_dir: Optional[Path] = None) -> Path:
    """Resolve error log path, respecting WORK_DIR."""
    if work_dir is None and os.environ.get("WORK_DIR"):
        work_dir = Path(os.environ["WORK_DIR"])
    if work_dir is not None and work_dir.is_dir():
        return work_dir / "worktrack-errors.log"
    return Path.home() / ".worktrack" / "worktrack-errors.log"


def log_exception(exc: Exception, context: str = "", work_dir: Optional[Path] = None) -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)
        work_dir: Work directory whose log should receive the trace

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path(work_dir)
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(exc)))
    except OSError:
        pass  # Can't write error log, don't crash over it
    return log_path
