"""
Result envelope -> HTTP response helpers.
"""

from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def error_response(message: str, code: int = 500, **extra: Any) -> JSONResponse:
    """Failure envelope with HTTP status equal to ``code``."""
    return JSONResponse({"success": False, "error": message, "code": code, **extra}, status_code=code)


def envelope_response(result: Dict[str, Any], status_code: Optional[int] = None) -> JSONResponse:
    """
    Render a storage result envelope.

    Failures use their ``code`` as the HTTP status; successes use
    ``status_code`` (default 200).
    """
    if not result.get("success"):
        code = int(result.get("code") or 500)
        return JSONResponse(jsonable_encoder(result), status_code=code)
    return JSONResponse(jsonable_encoder(result), status_code=status_code or 200)
