"""Sandboxed virtual file storage and log store.

Everything is addressed by (category, file name) and confined beneath a
single storage root.

Key Components:
- CategoryRegistry: runtime-extensible category -> relative path table
- PathResolver: (category, file name) -> absolute path under the root
- FileStore: async list/get/save/delete/copy/move/create-folder
- LogStore: ring buffer + rotating file + live-tail listeners

Usage:
    from libs.storage import CategoryRegistry, PathResolver, FileStore, LogStore

    registry = CategoryRegistry(base_dir, seed={"reports": "reports"})
    resolver = PathResolver(registry)
    files = FileStore(resolver)

    result = await files.save_file("reports", "summary.json", {"a": 1})
    if result["success"]:
        print(result["relative_path"])

    logs = LogStore(resolver, capacity=1000)
    unsubscribe = logs.subscribe(print)
"""

from libs.storage.categories import CategoryRegistry
from libs.storage.file_store import FileStore
from libs.storage.log_store import LogStore, LogStream
from libs.storage.models import FileRecord, LogEntry, LogLevel, MoveOutcome
from libs.storage.paths import PathResolver
from libs.storage.validation import sanitize_filename

__all__ = [
    "CategoryRegistry",
    "PathResolver",
    "FileStore",
    "LogStore",
    "LogStream",
    "FileRecord",
    "LogEntry",
    "LogLevel",
    "MoveOutcome",
    "sanitize_filename",
]
