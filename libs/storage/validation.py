"""
Path component validation for the virtual file store.

Every user-supplied category or file name goes through here before it is
joined to the storage root.
"""

import re
from pathlib import Path, PurePosixPath

from libs.core.exceptions import InvalidPathError

# Control characters plus the characters Windows refuses in file names
FORBIDDEN_CHARS = re.compile(r'[<>:"|?*\x00-\x1F]')

# Executable-style extensions refused unless explicitly allowed
DANGEROUS_EXTENSIONS = frozenset({".exe", ".dll", ".sh", ".bat", ".cmd", ".ps1", ".jar", ".com"})

_SEPARATORS = re.compile(r"[\\/]")


def split_components(value: str) -> list[str]:
    """Split on both separators; backslashes count as separators."""
    return _SEPARATORS.split(value)


def validate_components(value: str, what: str = "path") -> str:
    """
    Validate a relative path and return it in POSIX form.

    Rejects empty values, empty/``.``/``..`` components (so absolute paths
    and doubled separators fail too) and forbidden characters.
    """
    if not value:
        raise InvalidPathError(f"Invalid {what}: empty value")

    parts = split_components(value)
    for part in parts:
        if part in ("", ".", ".."):
            raise InvalidPathError(
                f"Invalid {what}: '{value}' contains an empty or traversal segment",
                {"value": value},
            )
        if FORBIDDEN_CHARS.search(part):
            raise InvalidPathError(
                f"Invalid {what}: '{value}' contains forbidden characters",
                {"value": value},
            )
    return "/".join(parts)


def has_dangerous_extension(file_name: str) -> bool:
    return PurePosixPath(file_name.replace("\\", "/")).suffix.lower() in DANGEROUS_EXTENSIONS


def sanitize_filename(name: str, placeholder: str = "_") -> str:
    """
    Make a single safe path component out of arbitrary text.

    Forbidden characters and path separators become ``placeholder``;
    leading/trailing dots and spaces are stripped. May return "".
    """
    cleaned = FORBIDDEN_CHARS.sub(placeholder, name or "")
    cleaned = _SEPARATORS.sub(placeholder, cleaned)
    return cleaned.strip(". ")


def is_within(path: Path, root: Path) -> bool:
    """
    Boundary-aware containment: ``path`` equals ``root`` or lies beneath it.

    ``/base/foobar`` is not within ``/base/foo``.
    """
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True
