"""
Storage Data Models

Plain dataclasses shared by the file store, the log store and the
gateway routers:

- FileRecord: transient view of one directory entry (never cached)
- LogLevel: severity names and their filtering rank
- LogEntry: immutable structured log record
- MoveOutcome: tri-state result of a move
"""

import json
import traceback
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union


# =============================================================================
# Files
# =============================================================================


@dataclass
class FileRecord:
    """One entry returned by FileStore.list_files."""

    file_name: str
    absolute_path: str
    relative_path: str
    size: Optional[int] = None
    created_at: Optional[str] = None
    modified_at: Optional[str] = None
    is_directory: Optional[bool] = None

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization, dropping unset stats."""
        return {k: v for k, v in asdict(self).items() if v is not None}


class MoveOutcome(str, Enum):
    """Result of copy-then-delete."""

    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"  # copied, source still present
    FAILURE = "failure"


def isoformat_timestamp(ts: float) -> str:
    """POSIX timestamp -> ISO-8601 UTC string."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


# =============================================================================
# Logs
# =============================================================================


class LogLevel(str, Enum):
    """
    Log severity.

    Filtering uses ``rank``: lower is more severe. SUCCESS is a
    positive-outcome tag at informational severity, so it shares INFO's
    rank and passes exactly when INFO passes.
    """

    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"
    DEBUG = "DEBUG"
    SUCCESS = "SUCCESS"

    @property
    def rank(self) -> int:
        return _LEVEL_RANKS[self]

    @classmethod
    def parse(cls, value: Union[str, "LogLevel"]) -> "LogLevel":
        """Case-insensitive lookup; raises ValueError for unknown names."""
        if isinstance(value, LogLevel):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(
                f"Invalid log level: {value!r}. Valid levels are: "
                f"{', '.join(level.value for level in cls)}"
            ) from None

    @classmethod
    def try_parse(cls, value: Optional[str]) -> Optional["LogLevel"]:
        if not value:
            return None
        try:
            return cls.parse(value)
        except ValueError:
            return None


_LEVEL_RANKS: Dict[LogLevel, int] = {
    LogLevel.ERROR: 0,
    LogLevel.WARNING: 1,
    LogLevel.INFO: 2,
    LogLevel.SUCCESS: 2,
    LogLevel.DEBUG: 3,
}


def utc_timestamp() -> str:
    """Current time as ISO-8601 UTC with millisecond precision and Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


ErrorInfo = Dict[str, Optional[str]]


def describe_error(error: Union[BaseException, Mapping[str, Any], None]) -> Optional[ErrorInfo]:
    """Normalize an exception (or an already-structured mapping) to {name, message, stack}."""
    if error is None:
        return None
    if isinstance(error, BaseException):
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip()
        return {
            "name": type(error).__name__,
            "message": str(error),
            "stack": stack or None,
        }
    return {
        "name": str(error.get("name") or "Error"),
        "message": str(error.get("message") or ""),
        "stack": error.get("stack"),
    }


@dataclass(frozen=True)
class LogEntry:
    """Immutable structured log record."""

    level: LogLevel
    message: str
    timestamp: str = field(default_factory=utc_timestamp)
    error: Optional[ErrorInfo] = None

    def matches(self, level: Optional[LogLevel] = None, search: Optional[str] = None) -> bool:
        """Inclusive max-severity filter plus case-insensitive text search."""
        if level is not None and self.level.rank > level.rank:
            return False
        if search:
            needle = search.lower()
            in_message = needle in self.message.lower()
            in_error = bool(self.error and needle in (self.error.get("message") or "").lower())
            if not (in_message or in_error):
                return False
        return True

    def format_line(self) -> str:
        """Plain-text file format: ``<ts> [<LEVEL>] <message>`` plus optional error lines."""
        text = f"{self.timestamp} [{self.level.value}] {self.message}"
        if self.error:
            text += f"\n  Error: {self.error.get('message')}"
            if self.error.get("stack"):
                text += f"\n  Stack: {self.error['stack']}"
        return text

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization."""
        data: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "message": self.message,
        }
        if self.error:
            data["error"] = dict(self.error)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)
