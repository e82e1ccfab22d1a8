"""
Format Router

Endpoints:
    POST /api/format            - Upload and format a file
    POST /api/format/existing   - Format a file already in storage
    GET  /api/format/formatted  - List formatted outputs
"""

import json
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, File, Form, UploadFile

from apps.services.artifact_gateway.dependencies import get_formatter
from apps.services.artifact_gateway.schemas import FormatExistingRequest
from apps.services.artifact_gateway.utils import envelope_response, error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/format", tags=["format"])


def _parse_tools(raw: Optional[str]) -> Optional[List[str]]:
    """``tools`` form field: JSON list or comma separated names."""
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except ValueError:
        parsed = raw.split(",")
    if isinstance(parsed, str):
        parsed = [parsed]
    if not isinstance(parsed, list):
        logger.warning(f"[Format] Ignoring malformed tools field: {raw}")
        return None
    return [str(t).strip() for t in parsed if str(t).strip()]


@router.post("")
async def format_upload(
    file: UploadFile = File(...),
    tools: Optional[str] = Form(None),
    output_file_name: Optional[str] = Form(None),
):
    if not file.filename:
        return error_response("No file uploaded", 400)

    logger.info(f"[Format] Received file for formatting: {file.filename}")
    data = await file.read()
    result = await get_formatter().format_file(
        data,
        file.filename,
        tools=_parse_tools(tools),
        output_file_name=output_file_name,
    )
    return envelope_response(result)


@router.post("/existing")
async def format_existing(request: FormatExistingRequest):
    result = await get_formatter().format_existing(
        request.category,
        request.file_name,
        tools=request.tools,
        output_file_name=request.output_file_name,
    )
    return envelope_response(result)


@router.get("/formatted")
async def list_formatted(
    search: Optional[str] = None,
    sort: Literal["name", "size", "date"] = "date",
    order: Literal["asc", "desc"] = "desc",
):
    result = await get_formatter().list_formatted(search=search, sort_by=sort, sort_order=order)
    return envelope_response(result)
