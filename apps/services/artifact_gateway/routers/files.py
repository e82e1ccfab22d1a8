"""
Files Router

Virtual file storage endpoints. Every failure is a result envelope with
the HTTP status equal to its code.

Endpoints:
    GET    /api/files          - List a category
    GET    /api/files/file     - Read (or download) one file
    POST   /api/files          - Save data to a file
    POST   /api/files/upload   - Multipart upload
    POST   /api/files/folder   - Create a folder (registers a category)
    POST   /api/files/copy     - Copy a file
    POST   /api/files/move     - Move a file (tri-state outcome)
    DELETE /api/files          - Delete a file
    GET    /api/files/storage  - Per-category usage
"""

import logging
import mimetypes
from typing import Literal, Optional
from urllib.parse import quote

from fastapi import APIRouter, File, Form, Query, UploadFile
from fastapi.responses import Response

from apps.services.artifact_gateway.dependencies import get_file_store
from apps.services.artifact_gateway.schemas import (
    CopyFileRequest,
    CreateFolderRequest,
    SaveFileRequest,
)
from apps.services.artifact_gateway.utils import envelope_response, error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])


@router.get("")
async def list_files(
    category: str = "",
    search: Optional[str] = None,
    include_stats: bool = False,
    sort_by: Optional[Literal["name", "size", "date"]] = None,
    sort_order: Literal["asc", "desc"] = "asc",
):
    """List entries of a category (empty category = storage root)."""
    result = await get_file_store().list_files(
        category,
        search=search,
        include_stats=include_stats,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return envelope_response(result)


@router.get("/file")
async def get_file(
    file_name: str,
    category: str = "",
    raw: bool = False,
    encoding: Optional[str] = None,
    download: bool = False,
):
    """
    Read one file.

    ``raw`` or ``download`` returns the bytes with a guessed content type;
    otherwise the JSON envelope carries decoded text (or parsed JSON).
    """
    store = get_file_store()
    result = await store.get_file(category, file_name, raw=raw or download, encoding=encoding)
    if not result["success"] or not (raw or download):
        return envelope_response(result)

    media_type = mimetypes.guess_type(result["file_name"])[0] or "application/octet-stream"
    headers = {}
    if download:
        headers["Content-Disposition"] = f"attachment; filename*=UTF-8''{quote(result['file_name'])}"
    return Response(content=result["content"], media_type=media_type, headers=headers)


@router.post("")
async def save_file(request: SaveFileRequest):
    """Save JSON-body data; objects are stored as indented JSON."""
    if request.data is None:
        return error_response("Missing required parameter: data", 400)

    result = await get_file_store().save_file(
        request.category,
        request.file_name,
        request.data,
        overwrite=request.overwrite,
        append=request.append,
        sanitize_filename=request.sanitize_filename,
        encoding=request.encoding,
    )
    return envelope_response(result)


@router.post("/upload")
async def upload_file(
    file: UploadFile = File(...),
    category: str = Form("uploads"),
    overwrite: bool = Form(True),
):
    """Store an uploaded file under its sanitized original name."""
    data = await file.read()
    result = await get_file_store().save_file(
        category,
        file.filename or "upload.bin",
        data,
        overwrite=overwrite,
        sanitize_filename=True,
    )
    return envelope_response(result)


@router.post("/folder")
async def create_folder(request: CreateFolderRequest):
    result = await get_file_store().create_folder(request.category, request.folder_name)
    return envelope_response(result, status_code=201)


@router.post("/copy")
async def copy_file(request: CopyFileRequest):
    result = await get_file_store().copy_file(
        request.source_category,
        request.source_file_name,
        request.target_category,
        request.target_file_name,
        overwrite=request.overwrite,
    )
    return envelope_response(result)


@router.post("/move")
async def move_file(request: CopyFileRequest):
    """Copy then delete; ``outcome`` is success, partial_success or failure."""
    result = await get_file_store().move_file(
        request.source_category,
        request.source_file_name,
        request.target_category,
        request.target_file_name,
        overwrite=request.overwrite,
    )
    return envelope_response(result)


@router.delete("")
async def delete_file(file_name: str = Query(...), category: str = ""):
    result = await get_file_store().delete_file(category, file_name)
    return envelope_response(result)


@router.get("/storage")
async def storage_info():
    result = await get_file_store().storage_info()
    return envelope_response(result)
