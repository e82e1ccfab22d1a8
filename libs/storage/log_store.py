"""
Log Store

Bounded in-memory ring buffer of structured log entries, mirrored to a
rotating file in the ``logs`` category, with listeners for live tailing.

Contract: nothing on the disk path (rotation, write) ever raises out of
``append``. Those failures are reported on this module's stdlib logger,
which LogStoreHandler filters out.

Features:
- Drop-oldest ring buffer (collections.deque)
- Size-triggered rotation: server.log -> server.log.1 .. server.log.K
- Synchronous, ordered listener dispatch
- LogStream: per-consumer bounded queue for async live tails
"""

import asyncio
import json
import logging
import os
import threading
from collections import deque
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Iterable, Optional, Union

from libs.storage.models import LogEntry, LogLevel, describe_error, isoformat_timestamp
from libs.storage.paths import PathResolver

logger = logging.getLogger(__name__)

LogCallback = Callable[[LogEntry], None]

DEFAULT_CAPACITY = 1000
DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024
DEFAULT_ROTATION_COUNT = 5
DEFAULT_STREAM_QUEUE = 500


class _Listener:
    __slots__ = ("callback", "active")

    def __init__(self, callback: LogCallback):
        self.callback = callback
        self.active = True


class LogStream:
    """
    Async live-tail consumer.

    The store-side listener only filters and enqueues. When the queue is
    full the oldest queued entry is discarded and ``dropped`` increments,
    so a slow reader never holds up ``append``.
    """

    def __init__(
        self,
        level: Optional[LogLevel] = None,
        search: Optional[str] = None,
        max_queue: int = DEFAULT_STREAM_QUEUE,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.level = level
        self.search = search
        self.max_queue = max(1, max_queue)
        self.dropped = 0
        self._queue: deque[LogEntry] = deque()
        self._lock = threading.Lock()
        self._event = asyncio.Event()
        self._loop = loop or asyncio.get_running_loop()
        self._closed = False
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    def offer(self, entry: LogEntry) -> None:
        """Listener callback: filter, enqueue, wake the reader."""
        if self._closed or not entry.matches(self.level, self.search):
            return

        with self._lock:
            if len(self._queue) >= self.max_queue:
                self._queue.popleft()
                self.dropped += 1
            self._queue.append(entry)

        self._wake()

    def _wake(self) -> None:
        try:
            self._loop.call_soon_threadsafe(self._event.set)
        except RuntimeError:
            # Loop already closed; nobody left to read
            pass

    async def get(self, timeout: Optional[float] = None) -> Optional[LogEntry]:
        """
        Next entry, or None on timeout or once the stream is closed and drained.
        """
        while True:
            with self._lock:
                if self._queue:
                    return self._queue.popleft()
                if self._closed:
                    return None
                self._event.clear()

            try:
                await asyncio.wait_for(self._event.wait(), timeout)
            except asyncio.TimeoutError:
                return None

    def close(self) -> None:
        """Unsubscribe; already-queued entries can still be drained."""
        if self._closed:
            return
        self._closed = True
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        self._wake()

    def __aiter__(self) -> AsyncIterator[LogEntry]:
        return self

    async def __anext__(self) -> LogEntry:
        entry = await self.get()
        if entry is None:
            raise StopAsyncIteration
        return entry


class LogStore:
    """Ring buffer + rotating file + listeners."""

    def __init__(
        self,
        resolver: PathResolver,
        capacity: int = DEFAULT_CAPACITY,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        rotation_count: int = DEFAULT_ROTATION_COUNT,
        minimum_level: Union[str, LogLevel] = LogLevel.INFO,
        category: str = "logs",
        file_name: str = "server.log",
        stream_queue_size: int = DEFAULT_STREAM_QUEUE,
        write_to_disk: bool = True,
    ):
        self.resolver = resolver
        self.capacity = capacity
        self.max_file_size = max_file_size
        self.rotation_count = max(0, rotation_count)
        self.category = category
        self.file_name = file_name
        self.stream_queue_size = stream_queue_size
        self.write_to_disk = write_to_disk
        self.file_path: Path = resolver.resolve_file_path(category, file_name)

        self._minimum = LogLevel.parse(minimum_level)
        self._buffer: deque[LogEntry] = deque(maxlen=capacity)
        self._listeners: list[_Listener] = []
        # Buffer + dispatch; re-entrant so a listener may log
        self._lock = threading.RLock()
        # Entries appended from inside a listener wait here for the outer drain,
        # which also writes them to disk in the same order
        self._pending: deque[LogEntry] = deque()
        self._local = threading.local()
        self._file_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    @property
    def minimum_level(self) -> LogLevel:
        return self._minimum

    def append(
        self,
        level: Union[str, LogLevel],
        message: Any,
        error: Union[BaseException, dict, None] = None,
    ) -> Optional[LogEntry]:
        """
        Record one entry. Returns it, or None if filtered out by the minimum level.

        Raises ValueError for an unknown level name.
        """
        level = LogLevel.parse(level)
        if level.rank > self._minimum.rank:
            return None

        entry = LogEntry(level=level, message=str(message), error=describe_error(error))

        with self._lock:
            self._buffer.append(entry)
            self._pending.append(entry)
            if getattr(self._local, "dispatching", False):
                return entry
            delivered = self._drain()

        for item in delivered:
            self._write(item)
        return entry

    def error(self, message: Any, error: Union[BaseException, dict, None] = None) -> Optional[LogEntry]:
        return self.append(LogLevel.ERROR, message, error)

    def warning(self, message: Any, error: Union[BaseException, dict, None] = None) -> Optional[LogEntry]:
        return self.append(LogLevel.WARNING, message, error)

    def info(self, message: Any, error: Union[BaseException, dict, None] = None) -> Optional[LogEntry]:
        return self.append(LogLevel.INFO, message, error)

    def debug(self, message: Any, error: Union[BaseException, dict, None] = None) -> Optional[LogEntry]:
        return self.append(LogLevel.DEBUG, message, error)

    def success(self, message: Any, error: Union[BaseException, dict, None] = None) -> Optional[LogEntry]:
        return self.append(LogLevel.SUCCESS, message, error)

    def _drain(self) -> list[LogEntry]:
        """Deliver pending entries in append order and return them. Caller holds the lock."""
        delivered = []
        self._local.dispatching = True
        try:
            while self._pending:
                entry = self._pending.popleft()
                self._dispatch(entry, list(self._listeners))
                delivered.append(entry)
        finally:
            self._local.dispatching = False
        return delivered

    def _dispatch(self, entry: LogEntry, listeners: Iterable[_Listener]) -> None:
        for listener in listeners:
            if not listener.active:
                continue
            try:
                listener.callback(entry)
            except Exception:
                logger.exception("[LogStore] Listener raised; continuing with remaining listeners")

    def set_minimum_level(self, level: Union[str, LogLevel]) -> bool:
        """Change the filter threshold. Invalid names keep the current one."""
        parsed = LogLevel.try_parse(level) if isinstance(level, str) else level
        if parsed is None:
            self.append(
                LogLevel.WARNING,
                f"Invalid log level: {level}. Using {self._minimum.value} instead.",
            )
            return False

        self._minimum = parsed
        self.append(LogLevel.INFO, f"Log level set to {parsed.value}")
        return True

    # -------------------------------------------------------------------------
    # Disk
    # -------------------------------------------------------------------------

    def backup_path(self, index: int) -> Path:
        return self.file_path.with_name(f"{self.file_path.name}.{index}")

    def _write(self, entry: LogEntry) -> None:
        if not self.write_to_disk:
            return

        with self._file_lock:
            self._rotate_if_needed()
            try:
                self.file_path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.file_path, "a", encoding="utf-8", errors="replace") as f:
                    f.write(entry.format_line() + "\n")
            except Exception as e:
                logger.error(f"[LogStore] Failed to write {self.file_path}: {e}")

    def _rotate_if_needed(self) -> None:
        try:
            size = self.file_path.stat().st_size
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error(f"[LogStore] Failed to stat {self.file_path}: {e}")
            return

        if size >= self.max_file_size:
            self._rotate()

    def _rotate(self) -> None:
        """Drop .K, shift .i -> .i+1, current -> .1. Best effort at every step."""
        if self.rotation_count == 0:
            self._best_effort(self.file_path.unlink, f"remove {self.file_path.name}")
            return

        oldest = self.backup_path(self.rotation_count)
        if oldest.exists():
            self._best_effort(oldest.unlink, f"remove {oldest.name}")

        for i in range(self.rotation_count - 1, 0, -1):
            source = self.backup_path(i)
            if source.exists():
                target = self.backup_path(i + 1)
                self._best_effort(lambda s=source, t=target: os.replace(s, t), f"shift {source.name}")

        self._best_effort(
            lambda: os.replace(self.file_path, self.backup_path(1)),
            f"archive {self.file_path.name}",
        )
        logger.debug(f"[LogStore] Rotated {self.file_path.name}")

    @staticmethod
    def _best_effort(action: Callable[[], Any], what: str) -> None:
        try:
            action()
        except OSError as e:
            logger.error(f"[LogStore] Rotation step failed ({what}): {e}")

    def list_log_files(self) -> list[dict]:
        """Current and rotated files, current first."""
        candidates = [self.file_path] + [self.backup_path(i) for i in range(1, self.rotation_count + 1)]
        files = []
        for path in candidates:
            try:
                stat = path.stat()
            except OSError:
                continue
            files.append({
                "file_name": path.name,
                "relative_path": self.resolver.relative_path(path),
                "size": stat.st_size,
                "modified_at": isoformat_timestamp(stat.st_mtime),
            })
        return files

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._buffer)

    def get_logs(
        self,
        level: Union[str, LogLevel, None] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[LogEntry]:
        """
        Filtered snapshot of the buffer.

        ``level`` is an inclusive maximum severity (an unknown name means
        no level filter). ``limit`` keeps only the newest entries.
        """
        max_level = LogLevel.try_parse(level) if isinstance(level, str) else level

        with self._lock:
            entries = list(self._buffer)

        entries = [e for e in entries if e.matches(max_level, search)]
        if limit is not None and limit > 0:
            entries = entries[-limit:]
        return entries

    def subscribe(self, callback: LogCallback, replay: bool = True) -> Callable[[], None]:
        """
        Register a listener and return its unsubscribe function.

        Buffered entries are replayed first, under the same lock that
        guards dispatch, so no live entry can overtake the replay.
        """
        if not callable(callback):
            raise TypeError("Listener must be callable")

        listener = _Listener(callback)
        with self._lock:
            if replay:
                self._dispatch_replay(listener, list(self._buffer))
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                listener.active = False
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _dispatch_replay(self, listener: _Listener, entries: list[LogEntry]) -> None:
        for entry in entries:
            try:
                listener.callback(entry)
            except Exception:
                logger.exception("[LogStore] Listener raised during replay")
                return

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def open_stream(
        self,
        level: Union[str, LogLevel, None] = None,
        search: Optional[str] = None,
        max_queue: Optional[int] = None,
        replay: bool = True,
    ) -> LogStream:
        """Create a LogStream bound to the running event loop."""
        max_level = LogLevel.try_parse(level) if isinstance(level, str) else level
        stream = LogStream(
            level=max_level,
            search=search,
            max_queue=max_queue or self.stream_queue_size,
        )
        stream._unsubscribe = self.subscribe(stream.offer, replay=replay)
        return stream

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    @staticmethod
    def format_logs(entries: Iterable[LogEntry], fmt: str = "text") -> str:
        """Render entries for download as ``text`` or ``json``."""
        fmt = (fmt or "text").lower()
        if fmt == "json":
            return json.dumps([e.to_dict() for e in entries], indent=2, ensure_ascii=False)
        if fmt == "text":
            return "\n\n".join(e.format_line() for e in entries)
        raise ValueError(f"Unsupported log format: {fmt}")

    def config(self) -> dict:
        return {
            "capacity": self.capacity,
            "buffered": len(self._buffer),
            "minimum_level": self._minimum.value,
            "max_file_size": self.max_file_size,
            "rotation_count": self.rotation_count,
            "file": self.resolver.relative_path(self.file_path),
            "levels": {level.value: level.rank for level in LogLevel},
        }
