"""
Logs Router

Endpoints:
    GET  /api/logs           - Buffered entries (level, search, limit)
    GET  /api/logs/live      - SSE live tail, one JSON LogEntry per event
    GET  /api/logs/download  - Buffered entries as text or JSON attachment
    GET  /api/logs/files     - Current and rotated log files
    GET  /api/logs/config    - Log store settings
    POST /api/logs/level     - Change the minimum level
"""

import json
import logging
import time
from typing import Any, AsyncIterator, Dict, Literal, Optional

from fastapi import APIRouter, Request
from fastapi.responses import Response
from sse_starlette.sse import EventSourceResponse

from apps.services.artifact_gateway.config import LIVE_TAIL_POLL_SECONDS, SSE_PING_SECONDS
from apps.services.artifact_gateway.dependencies import get_log_store
from apps.services.artifact_gateway.schemas import SetLogLevelRequest
from apps.services.artifact_gateway.utils import error_response
from libs.storage import LogLevel, LogStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/logs", tags=["logs"])


@router.get("")
async def get_logs(
    level: Optional[str] = None,
    search: Optional[str] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """Filtered view of the in-memory buffer; ``level`` is an inclusive maximum severity."""
    entries = get_log_store().get_logs(level=level, search=search, limit=limit)
    return {
        "success": True,
        "count": len(entries),
        "logs": [e.to_dict() for e in entries],
    }


async def live_log_events(
    request: Request,
    log_store: LogStore,
    level: Optional[str] = None,
    search: Optional[str] = None,
    replay: bool = True,
    poll_seconds: float = LIVE_TAIL_POLL_SECONDS,
) -> AsyncIterator[Dict[str, str]]:
    """
    SSE event generator for the live tail.

    Yields a connection event, then one event per matching entry until
    the client disconnects. The stream is closed (unsubscribed) on exit.
    """
    stream = log_store.open_stream(level=level, search=search, replay=replay)
    logger.info("[Logs] Client connected to live logs")

    try:
        yield {
            "data": json.dumps({"type": "connection", "message": "Connected to log stream"}),
        }

        while not await request.is_disconnected():
            entry = await stream.get(timeout=poll_seconds)
            if entry is None:
                if stream.closed:
                    break
                continue
            yield {"data": entry.to_json()}
    finally:
        stream.close()
        logger.info(f"[Logs] Client disconnected from live logs (dropped {stream.dropped} entries)")


@router.get("/live")
async def live_logs(
    request: Request,
    level: Optional[str] = None,
    search: Optional[str] = None,
    replay: bool = True,
):
    """Stream log entries via Server-Sent Events."""
    return EventSourceResponse(
        live_log_events(request, get_log_store(), level=level, search=search, replay=replay),
        ping=SSE_PING_SECONDS,
    )


@router.get("/download")
async def download_logs(
    level: Optional[str] = None,
    format: Literal["text", "json"] = "text",
):
    store = get_log_store()
    body = store.format_logs(store.get_logs(level=level), format)
    stamp = int(time.time() * 1000)

    if format == "json":
        media_type, filename = "application/json", f"logs-{stamp}.json"
    else:
        media_type, filename = "text/plain", f"logs-{stamp}.txt"

    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/files")
async def log_files() -> Dict[str, Any]:
    files = get_log_store().list_log_files()
    return {"success": True, "files": files, "count": len(files)}


@router.get("/config")
async def log_config() -> Dict[str, Any]:
    return {"success": True, "config": get_log_store().config()}


@router.post("/level")
async def set_log_level(request: SetLogLevelRequest):
    if not request.level:
        return error_response("Level parameter is required", 400)

    if LogLevel.try_parse(request.level) is None or not get_log_store().set_minimum_level(request.level):
        valid = ", ".join(level.value for level in LogLevel)
        return error_response(f"Invalid log level. Valid levels are: {valid}", 400)

    level = request.level.strip().upper()
    return {"success": True, "level": level, "message": f"Log level set to {level}"}
