"""
Centralized Logging Configuration for the Artifact Gateway

Python logging from every component is routed to TWO places:

1. Console (stdout) - filtered at the configured LOG_LEVEL
2. The LogStore - ring buffer + rotating file_storage/logs/server.log,
   which also feeds the /api/logs live tail

Usage in any module:
    from libs.core.logging_config import setup_logging, get_logger

    # Call once at service startup
    setup_logging(log_store=store)

    # Get a logger for your module
    logger = get_logger(__name__)
    logger.info("My message")
    logger.log(SUCCESS, "Saved report")

Debugging:
    # Watch all activity in real-time:
    tail -f file_storage/logs/server.log
"""

import logging
import os
import sys
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from libs.storage.log_store import LogStore

# =============================================================================
# Configuration
# =============================================================================

# Default log level (can be overridden by LOG_LEVEL env var)
DEFAULT_LOG_LEVEL = "INFO"

# Positive-outcome level between INFO (20) and WARNING (30)
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

# Simplified format for console
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)-20s | %(message)s"
CONSOLE_DATE_FORMAT = "%H:%M:%S"

# The LogStore reports its own disk failures here; never fed back into it
LOG_STORE_DIAGNOSTIC_LOGGER = "libs.storage.log_store"

_NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "asyncio", "playwright", "multipart")

# =============================================================================
# Global State
# =============================================================================

_logging_configured = False
_store_handler: Optional["LogStoreHandler"] = None


class LogStoreHandler(logging.Handler):
    """Forwards stdlib log records into a LogStore."""

    def __init__(self, log_store: "LogStore"):
        super().__init__(level=logging.DEBUG)
        self.log_store = log_store
        self.addFilter(self._skip_diagnostics)

    @staticmethod
    def _skip_diagnostics(record: logging.LogRecord) -> bool:
        return not record.name.startswith(LOG_STORE_DIAGNOSTIC_LOGGER)

    @staticmethod
    def level_name(levelno: int) -> str:
        if levelno >= logging.ERROR:
            return "ERROR"
        if levelno >= logging.WARNING:
            return "WARNING"
        if levelno >= SUCCESS:
            return "SUCCESS"
        if levelno >= logging.INFO:
            return "INFO"
        return "DEBUG"

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
            error = record.exc_info[1] if record.exc_info else None
            self.log_store.append(self.level_name(record.levelno), message, error)
        except Exception:
            self.handleError(record)


# =============================================================================
# Setup Functions
# =============================================================================


def setup_logging(
    level: Optional[str] = None,
    log_to_console: bool = True,
    log_store: Optional["LogStore"] = None,
    service_name: str = "artifact_gateway",
) -> None:
    """
    Configure unified logging for the gateway.

    Safe to call more than once: console setup happens once, while a
    LogStore passed on a later call replaces the previously attached one.

    Args:
        level: Console level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var or INFO.
        log_to_console: Whether to log to stdout (default True)
        log_store: LogStore receiving every record; its own minimum level decides what is kept
        service_name: Service identifier for the startup marker
    """
    global _logging_configured, _store_handler

    root_logger = logging.getLogger()

    if log_store is not None:
        attach_log_store(log_store)

    if _logging_configured:
        return

    if level is None:
        level = os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL)
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    # Root passes everything; handlers filter
    root_logger.setLevel(logging.DEBUG)

    # Remove stale console handlers (prevents duplicates)
    for handler in root_logger.handlers[:]:
        if not isinstance(handler, LogStoreHandler):
            root_logger.removeHandler(handler)

    # === Console Handler (stdout) ===
    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, CONSOLE_DATE_FORMAT))
        root_logger.addHandler(console_handler)

    # === Reduce noise from chatty libraries ===
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logging_configured = True

    logger = logging.getLogger(service_name)
    logger.info(f"LOGGING INITIALIZED - {service_name.upper()} (console level {level.upper()})")


def attach_log_store(log_store: "LogStore") -> "LogStoreHandler":
    """Route root-logger records into ``log_store``, replacing any earlier store."""
    global _store_handler

    root_logger = logging.getLogger()
    if _store_handler is not None:
        root_logger.removeHandler(_store_handler)

    _store_handler = LogStoreHandler(log_store)
    root_logger.addHandler(_store_handler)
    return _store_handler


def detach_log_store() -> None:
    """Stop forwarding records to the attached LogStore (used on shutdown and in tests)."""
    global _store_handler

    if _store_handler is not None:
        logging.getLogger().removeHandler(_store_handler)
        _store_handler = None


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Usually __name__ to get the module's dotted path
    """
    return logging.getLogger(name)
