"""
Path Resolver

Turns (category, file name) pairs into absolute paths that are
guaranteed to stay under the storage root, both as written and after
symlinks are followed.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from libs.core.exceptions import InvalidPathError
from libs.storage.categories import CategoryRegistry
from libs.storage.validation import (
    has_dangerous_extension,
    is_within,
    validate_components,
)

logger = logging.getLogger(__name__)


class PathResolver:
    """Resolves category and file paths confined to ``registry.base_dir``."""

    def __init__(self, registry: CategoryRegistry):
        self.registry = registry

    @property
    def base_dir(self) -> Path:
        return self.registry.base_dir

    def resolve_category_path(self, category: Optional[str] = None) -> Path:
        """
        Empty category -> base root; registered -> its directory;
        otherwise the category is treated as a raw relative path.
        """
        if not category:
            return self.base_dir

        relative = self.registry.resolve(category)
        if relative is None:
            relative = validate_components(category, what="category")

        return self._confine(self.base_dir / relative, category)

    def resolve_file_path(
        self,
        category: Optional[str],
        file_name: str,
        allow_dangerous_extensions: bool = False,
    ) -> Path:
        relative = validate_components(file_name, what="file name")

        if not allow_dangerous_extensions and has_dangerous_extension(relative):
            raise InvalidPathError(
                f"File type not allowed: {file_name}",
                {"file_name": file_name},
            )

        category_path = self.resolve_category_path(category)
        return self._confine(category_path / relative, f"{category or ''}/{file_name}")

    def relative_path(self, path: Union[str, Path]) -> Optional[str]:
        """POSIX path relative to the root, or None when outside it."""
        path = Path(path)
        if not is_within(path, self.base_dir):
            return None
        return path.relative_to(self.base_dir).as_posix()

    def _confine(self, candidate: Path, label: str) -> Path:
        if not is_within(candidate, self.base_dir):
            raise InvalidPathError(f"Path escapes storage root: {label}")

        # Follow any symlinks already on disk
        if not is_within(candidate.resolve(), self.base_dir):
            logger.warning(f"[PathResolver] Symlink escape blocked: {label} -> {candidate.resolve()}")
            raise InvalidPathError(f"Path escapes storage root: {label}")

        return candidate
