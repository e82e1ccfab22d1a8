"""
Virtual File Store

CRUD over categories and file names, confined to one storage root.

Every public operation is async, runs blocking I/O via asyncio.to_thread
and returns a result envelope instead of raising:

    {"success": True, ...payload}
    {"success": False, "error": "...", "code": 400|404|409|413|500}

Mutations on the same path are serialized in-process with per-path
asyncio locks. The last completed write still wins; there is no locking
across processes.
"""

import asyncio
import codecs
import functools
import json
import logging
import os
import shutil
import stat as stat_module
import weakref
from contextlib import AsyncExitStack, asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional

from libs.core.exceptions import (
    BadRequestError,
    ConflictError,
    InternalStorageError,
    InvalidPathError,
    NotFoundError,
    StorageError,
    TooLargeError,
)
from libs.core.logging_config import SUCCESS
from libs.storage.models import FileRecord, MoveOutcome, isoformat_timestamp
from libs.storage.paths import PathResolver
from libs.storage.validation import sanitize_filename as clean_filename

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024

# Text content with these suffixes is parsed as JSON when possible
STRUCTURED_SUFFIXES = frozenset({".json"})

SORT_FIELDS = {"name": "file_name", "size": "size", "date": "modified_at"}


def storage_operation(action: str):
    """Convert StorageError and unexpected failures into result envelopes."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs) -> dict:
            try:
                return await func(self, *args, **kwargs)
            except StorageError as e:
                logger.warning(f"[FileStore] Cannot {action}: {e.message}")
                return e.to_result()
            except Exception:
                logger.exception(f"[FileStore] Failed to {action}")
                return InternalStorageError(f"Failed to {action}.").to_result()

        return wrapper

    return decorator


def _check_encoding(encoding: str) -> str:
    try:
        return codecs.lookup(encoding).name
    except LookupError:
        raise BadRequestError(f"Unsupported encoding: {encoding}") from None


def _file_stats(st: os.stat_result) -> dict:
    return {
        "size": st.st_size,
        "created_at": isoformat_timestamp(getattr(st, "st_birthtime", st.st_ctime)),
        "modified_at": isoformat_timestamp(st.st_mtime),
        "is_directory": stat_module.S_ISDIR(st.st_mode),
    }


class FileStore:
    """Category/file-name addressed storage under ``resolver.base_dir``."""

    def __init__(
        self,
        resolver: PathResolver,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        default_encoding: str = "utf-8",
    ):
        self.resolver = resolver
        self.registry = resolver.registry
        self.max_file_size = max_file_size
        self.default_encoding = _check_encoding(default_encoding)
        self._locks: "weakref.WeakValueDictionary[Path, asyncio.Lock]" = weakref.WeakValueDictionary()

    @property
    def base_dir(self) -> Path:
        return self.resolver.base_dir

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    def _lock_for(self, path: Path) -> asyncio.Lock:
        lock = self._locks.get(path)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[path] = lock
        return lock

    @asynccontextmanager
    async def _locked(self, *paths: Path) -> AsyncIterator[None]:
        # Fixed acquisition order so two multi-path operations cannot deadlock
        async with AsyncExitStack() as stack:
            for path in sorted(set(paths), key=str):
                await stack.enter_async_context(self._lock_for(path))
            yield

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    @storage_operation("list files")
    async def list_files(
        self,
        category: str = "",
        search: Optional[str] = None,
        include_stats: bool = False,
        sort_by: Optional[str] = None,
        sort_order: str = "asc",
    ) -> dict:
        dir_path = self.resolver.resolve_category_path(category)
        records = await asyncio.to_thread(self._scan, category, dir_path, include_stats)

        if search:
            needle = search.lower()
            records = [r for r in records if needle in r.file_name.lower()]

        if sort_by:
            records = self._sort(records, sort_by, sort_order)

        logger.info(f"[FileStore] Retrieved {len(records)} files from '{category}'")
        return {
            "success": True,
            "files": [r.to_dict() for r in records],
            "total_count": len(records),
            "path": category,
        }

    def _scan(self, category: str, dir_path: Path, include_stats: bool) -> list[FileRecord]:
        if not dir_path.exists():
            raise NotFoundError("Category does not exist.", {"category": category})
        if not dir_path.is_dir():
            raise InvalidPathError("Category is not a directory.", {"category": category})

        records = []
        for entry in sorted(dir_path.iterdir()):
            try:
                path = self.resolver.resolve_file_path(category, entry.name)
            except InvalidPathError as e:
                logger.warning(f"[FileStore] Skipping invalid entry {entry.name} in '{category}': {e.message}")
                continue

            record = FileRecord(
                file_name=entry.name,
                absolute_path=str(path),
                relative_path=self.resolver.relative_path(path) or f"{category}/{entry.name}",
            )
            if include_stats:
                try:
                    stats = _file_stats(path.stat())
                    record.size = stats["size"]
                    record.created_at = stats["created_at"]
                    record.modified_at = stats["modified_at"]
                    record.is_directory = stats["is_directory"]
                except OSError as e:
                    logger.warning(f"[FileStore] Failed to stat {path}: {e}")
            records.append(record)
        return records

    @staticmethod
    def _sort(records: list[FileRecord], sort_by: str, sort_order: str) -> list[FileRecord]:
        field_name = SORT_FIELDS.get(sort_by, "file_name")
        descending = (sort_order or "asc").lower() == "desc"

        def key(record: FileRecord):
            value = getattr(record, field_name)
            if isinstance(value, str):
                value = value.lower()
            # Records without the field sort first (ascending)
            return (value is not None, value if value is not None else 0)

        return sorted(records, key=key, reverse=descending)

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    @storage_operation("read file")
    async def get_file(
        self,
        category: str,
        file_name: str,
        raw: bool = False,
        encoding: Optional[str] = None,
    ) -> dict:
        path = self.resolver.resolve_file_path(category, file_name)
        encoding = _check_encoding(encoding or self.default_encoding)
        return await asyncio.to_thread(self._read, path, raw, encoding)

    def _read(self, path: Path, raw: bool, encoding: str) -> dict:
        if not path.exists():
            raise NotFoundError("File not found.", {"path": str(path)})
        if path.is_dir():
            raise InvalidPathError("Path is a directory, not a file.")

        st = path.stat()
        if st.st_size > self.max_file_size:
            raise TooLargeError("File too large to process.", st.st_size, self.max_file_size)

        data = path.read_bytes()
        content: Any = data
        if not raw:
            content = data.decode(encoding, errors="replace")
            if path.suffix.lower() in STRUCTURED_SUFFIXES:
                try:
                    content = json.loads(content)
                except ValueError:
                    logger.debug(f"[FileStore] {path.name} is not valid JSON; returning text")

        return {
            "success": True,
            "file_name": path.name,
            "content": content,
            "stats": _file_stats(st),
            "relative_path": self.resolver.relative_path(path),
        }

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    @staticmethod
    def serialize(data: Any, encoding: str = "utf-8") -> bytes:
        """Bytes pass through, text is encoded, anything else becomes indented JSON."""
        if isinstance(data, (bytes, bytearray, memoryview)):
            return bytes(data)
        if isinstance(data, str):
            return data.encode(encoding)
        return json.dumps(data, indent=2, ensure_ascii=False, default=str).encode(encoding)

    @storage_operation("save file")
    async def save_file(
        self,
        category: str,
        file_name: str,
        data: Any,
        overwrite: bool = True,
        append: bool = False,
        sanitize_filename: bool = False,
        encoding: Optional[str] = None,
    ) -> dict:
        if sanitize_filename:
            file_name = clean_filename(file_name)
            if not file_name:
                raise InvalidPathError("File name is empty after sanitizing.")

        path = self.resolver.resolve_file_path(category, file_name)
        payload = self.serialize(data, _check_encoding(encoding or self.default_encoding))

        async with self._locked(path):
            result = await asyncio.to_thread(self._write, path, payload, overwrite, append)

        logger.log(SUCCESS, f"[FileStore] Saved {result['relative_path']} ({result['bytes_written']} bytes)")
        return result

    def _write(self, path: Path, payload: bytes, overwrite: bool, append: bool) -> dict:
        exists = path.exists()
        if exists and path.is_dir():
            raise InvalidPathError("Path is a directory, not a file.")
        if exists and not overwrite and not append:
            raise ConflictError("File already exists.", {"path": str(path)})

        if len(payload) > self.max_file_size:
            raise TooLargeError("Content too large to save.", len(payload), self.max_file_size)
        if append and exists:
            combined = path.stat().st_size + len(payload)
            if combined > self.max_file_size:
                raise TooLargeError("Combined content too large to save.", combined, self.max_file_size)

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "ab" if append else "wb") as f:
            f.write(payload)

        return {
            "success": True,
            "file_path": str(path),
            "file_name": path.name,
            "relative_path": self.resolver.relative_path(path),
            "bytes_written": len(payload),
            "appended": append and exists,
        }

    # -------------------------------------------------------------------------
    # Deleting
    # -------------------------------------------------------------------------

    @staticmethod
    def _unlink(path: Path) -> None:
        path.unlink()

    def _remove(self, path: Path) -> None:
        if not path.exists():
            raise NotFoundError("File not found.", {"path": str(path)})
        if path.is_dir():
            raise InvalidPathError("Path is a directory, not a file.")
        self._unlink(path)

    @storage_operation("delete file")
    async def delete_file(self, category: str, file_name: str) -> dict:
        path = self.resolver.resolve_file_path(category, file_name)
        async with self._locked(path):
            await asyncio.to_thread(self._remove, path)

        logger.log(SUCCESS, f"[FileStore] Deleted {self.resolver.relative_path(path)}")
        return {"success": True, "file_name": path.name, "relative_path": self.resolver.relative_path(path)}

    # -------------------------------------------------------------------------
    # Folders
    # -------------------------------------------------------------------------

    @storage_operation("create folder")
    async def create_folder(self, category: str, folder_name: str) -> dict:
        """Create a sub-folder and register it as a category named by its relative path."""
        name = clean_filename(folder_name)
        if not name:
            raise InvalidPathError("Invalid folder name.", {"folder_name": folder_name})

        folder = self.resolver.resolve_file_path(category, name, allow_dangerous_extensions=True)
        async with self._locked(folder):
            await asyncio.to_thread(self._make_folder, folder)

        relative = self.resolver.relative_path(folder)
        existing = self.registry.resolve(relative)
        registered = existing is None or existing == relative
        if registered:
            self.registry.register(relative, relative)
        else:
            logger.warning(
                f"[FileStore] Category {relative} already maps to {existing}; leaving it unchanged"
            )

        logger.log(SUCCESS, f"[FileStore] Created folder {relative}")
        return {
            "success": True,
            "path": relative,
            "name": name,
            "full_path": str(folder),
            "registered": registered,
        }

    @staticmethod
    def _make_folder(folder: Path) -> None:
        if folder.exists():
            raise ConflictError("Folder already exists.", {"path": str(folder)})
        folder.mkdir(parents=True)

    # -------------------------------------------------------------------------
    # Copy / move
    # -------------------------------------------------------------------------

    def _copy(self, source: Path, target: Path, overwrite: bool) -> None:
        if not source.exists():
            raise NotFoundError("Source file not found.", {"path": str(source)})
        if source.is_dir():
            raise InvalidPathError("Source is a directory, not a file.")
        if source == target:
            raise ConflictError("Source and target are the same file.")
        if target.exists() and not overwrite:
            raise ConflictError("Target file already exists.", {"path": str(target)})

        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)

    def _resolve_pair(
        self,
        source_category: str,
        source_file_name: str,
        target_category: str,
        target_file_name: Optional[str],
    ) -> tuple[Path, Path]:
        source = self.resolver.resolve_file_path(source_category, source_file_name)
        target = self.resolver.resolve_file_path(target_category, target_file_name or source.name)
        return source, target

    @storage_operation("copy file")
    async def copy_file(
        self,
        source_category: str,
        source_file_name: str,
        target_category: str,
        target_file_name: Optional[str] = None,
        overwrite: bool = True,
    ) -> dict:
        source, target = self._resolve_pair(source_category, source_file_name, target_category, target_file_name)
        async with self._locked(source, target):
            await asyncio.to_thread(self._copy, source, target, overwrite)

        logger.log(SUCCESS, f"[FileStore] Copied {self.resolver.relative_path(source)} -> {self.resolver.relative_path(target)}")
        return {
            "success": True,
            "source_path": self.resolver.relative_path(source),
            "target_path": self.resolver.relative_path(target),
            "file_name": target.name,
        }

    async def move_file(
        self,
        source_category: str,
        source_file_name: str,
        target_category: str,
        target_file_name: Optional[str] = None,
        overwrite: bool = True,
    ) -> dict:
        """
        Copy, then delete the source.

        ``outcome`` distinguishes a full move, a copy whose source could
        not be removed (``partial_success``) and a failure.
        """
        result = await self._move(source_category, source_file_name, target_category, target_file_name, overwrite)
        if not result["success"]:
            result["outcome"] = MoveOutcome.FAILURE.value
        return result

    @storage_operation("move file")
    async def _move(
        self,
        source_category: str,
        source_file_name: str,
        target_category: str,
        target_file_name: Optional[str],
        overwrite: bool,
    ) -> dict:
        source, target = self._resolve_pair(source_category, source_file_name, target_category, target_file_name)
        paths = {
            "source_path": self.resolver.relative_path(source),
            "target_path": self.resolver.relative_path(target),
            "file_name": target.name,
        }

        async with self._locked(source, target):
            await asyncio.to_thread(self._copy, source, target, overwrite)
            try:
                await asyncio.to_thread(self._remove, source)
            except (StorageError, OSError) as e:
                delete_error = e.message if isinstance(e, StorageError) else str(e)
                logger.warning(
                    f"[FileStore] Copied but could not delete source {paths['source_path']}: {delete_error}"
                )
                return {
                    "success": True,
                    "outcome": MoveOutcome.PARTIAL_SUCCESS.value,
                    "partial_success": True,
                    "message": "File was copied but source file could not be deleted",
                    "delete_error": delete_error,
                    **paths,
                }

        logger.log(SUCCESS, f"[FileStore] Moved {paths['source_path']} -> {paths['target_path']}")
        return {"success": True, "outcome": MoveOutcome.SUCCESS.value, **paths}

    # -------------------------------------------------------------------------
    # Storage info
    # -------------------------------------------------------------------------

    @storage_operation("get storage information")
    async def storage_info(self) -> dict:
        return await asyncio.to_thread(self._storage_info)

    def _storage_info(self) -> dict:
        base = self.base_dir
        if not base.exists():
            raise NotFoundError("Base directory does not exist.")

        categories = []
        for item in sorted(base.iterdir()):
            if item.is_symlink() or not item.is_dir():
                continue
            st = item.stat()
            categories.append({
                "name": item.name,
                "path": item.name,
                "size": self._dir_size(item),
                "files": len(os.listdir(item)),
                "created_at": isoformat_timestamp(getattr(st, "st_birthtime", st.st_ctime)),
                "modified_at": isoformat_timestamp(st.st_mtime),
            })

        return {
            "success": True,
            "categories": categories,
            "total_size": sum(c["size"] for c in categories),
            "total_files": sum(c["files"] for c in categories),
            "base_directory": str(base),
            "registered_categories": dict(self.registry.items()),
        }

    @staticmethod
    def _dir_size(path: Path) -> int:
        total = 0
        for root, _dirs, files in os.walk(path):
            for name in files:
                try:
                    total += os.lstat(os.path.join(root, name)).st_size
                except OSError as e:
                    logger.debug(f"[FileStore] Could not stat {name}: {e}")
        return total
