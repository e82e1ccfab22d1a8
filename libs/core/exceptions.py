"""Custom exceptions for the artifact gateway."""

from typing import Any, Optional


class GatewayError(Exception):
    """Base exception for the artifact gateway."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class StorageError(GatewayError):
    """
    Storage errors carrying the result-envelope code.

    File store operations convert these into
    ``{"success": False, "error": message, "code": code}``.
    """

    code: int = 500

    def to_result(self) -> dict[str, Any]:
        """Render as a failure envelope."""
        return {"success": False, "error": self.message, "code": self.code}


class BadRequestError(StorageError):
    """Invalid input that is not a path (encoding, format, missing field)."""

    code = 400


class InvalidPathError(BadRequestError):
    """Malformed category/filename or a path escaping the base root."""


class NotFoundError(StorageError):
    """File, folder or category does not exist."""

    code = 404


class ConflictError(StorageError):
    """Target already exists when it should not."""

    code = 409


class TooLargeError(StorageError):
    """Content exceeds the configured size limit."""

    code = 413

    def __init__(
        self,
        message: str,
        size: int,
        limit: int,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.size = size
        self.limit = limit


class InternalStorageError(StorageError):
    """Unexpected failure caught at the operation boundary."""

    code = 500


class ToolError(GatewayError):
    """External tool (formatter, linter, browser) errors."""

    def __init__(
        self,
        message: str,
        tool: str,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.tool = tool
