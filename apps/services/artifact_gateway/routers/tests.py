"""
Tests Router

Runs stored test files (Playwright specs or pytest modules).

Endpoints:
    POST /api/tests          - Run one test file from a category
    POST /api/tests/upload   - Upload a test file into "tests" and run it
    POST /api/tests/all      - Run every test file in a category
    GET  /api/tests/results  - Latest saved results
"""

import logging
from typing import Optional

from fastapi import APIRouter, File, Form, UploadFile

from apps.services.artifact_gateway.dependencies import get_test_runner
from apps.services.artifact_gateway.schemas import RunAllTestsRequest, RunTestsRequest
from apps.services.artifact_gateway.services.test_runner import RunOptions
from apps.services.artifact_gateway.utils import envelope_response, error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tests", tags=["tests"])


@router.post("")
async def run_tests(request: RunTestsRequest):
    """Run one test file; results are saved into the reports category."""
    result = await get_test_runner().run_tests(
        request.test_file or "",
        request.category,
        request.run_options(),
    )
    return envelope_response(result)


@router.post("/upload")
async def upload_and_run(
    file: UploadFile = File(...),
    reporter: str = Form("json"),
    project: Optional[str] = Form(None),
    test_name: Optional[str] = Form(None),
    include_full_report: bool = Form(False),
):
    if not file.filename:
        return error_response("No test file provided. Please upload a file or specify a test file path.", 400)

    logger.info(f"[Tests] Received test file: {file.filename}")
    data = await file.read()
    options = RunOptions(
        reporter=reporter,
        project=project,
        test_name=test_name,
        include_full_report=include_full_report,
    )
    result = await get_test_runner().upload_and_run(data, file.filename, options)
    return envelope_response(result)


@router.post("/all")
async def run_all(request: RunAllTestsRequest):
    """Run every supported test file in a category."""
    result = await get_test_runner().run_all(request.category, request.pattern, request.run_options())
    return envelope_response(result)


@router.get("/results")
async def latest_results():
    return envelope_response(await get_test_runner().latest_results())
