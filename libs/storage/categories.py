"""
Category Registry

Maps category names to relative sub-paths under one storage root.
Seeded once at startup and extended at runtime (for example when a
folder is created), then shared by reference with the resolver, the
file store and the log store.
"""

import asyncio
import logging
import threading
from pathlib import Path
from typing import Iterable, Mapping, Optional

from libs.core.exceptions import InvalidPathError
from libs.storage.validation import validate_components

logger = logging.getLogger(__name__)


class CategoryRegistry:
    """Thread-safe category name -> relative path table."""

    def __init__(self, base_dir: Path, seed: Optional[Mapping[str, str]] = None):
        self._base_dir = Path(base_dir).expanduser().resolve()
        self._lock = threading.Lock()
        self._categories: dict[str, str] = {}
        self._pending: set[asyncio.Task] = set()

        for name, relative_path in (seed or {}).items():
            self._categories[self._check_name(name)] = validate_components(
                relative_path, what="category path"
            )

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @staticmethod
    def _check_name(name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise InvalidPathError("Category name cannot be empty")
        return name

    def register(self, name: str, relative_path: str) -> str:
        """
        Insert or overwrite a category.

        Returns the normalized relative path. A new or re-pointed entry
        gets its directory created in the background; failures there are
        logged and never raised.
        """
        name = self._check_name(name)
        normalized = validate_components(relative_path, what="category path")

        with self._lock:
            changed = self._categories.get(name) != normalized
            self._categories[name] = normalized

        if changed:
            logger.debug(f"[Categories] Registered '{name}' -> {normalized}")
            self._schedule_mkdir(self._base_dir / normalized)
        return normalized

    def resolve(self, name: str) -> Optional[str]:
        with self._lock:
            return self._categories.get(name)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._categories)

    def items(self) -> list[tuple[str, str]]:
        with self._lock:
            return sorted(self._categories.items())

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._categories

    def __len__(self) -> int:
        with self._lock:
            return len(self._categories)

    def ensure_directories(self, names: Optional[Iterable[str]] = None) -> None:
        """Create the root and every (or the given) category directory. Startup only."""
        self._base_dir.mkdir(parents=True, exist_ok=True)
        with self._lock:
            targets = [self._categories[n] for n in (names or self._categories) if n in self._categories]
        for relative_path in targets:
            self._mkdir(self._base_dir / relative_path)

    async def wait_pending(self) -> None:
        """Await background directory creation (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -------------------------------------------------------------------------

    def _schedule_mkdir(self, path: Path) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._mkdir(path)
            return

        task = loop.create_task(asyncio.to_thread(self._mkdir, path))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @staticmethod
    def _mkdir(path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"[Categories] Could not create {path}: {e}")
