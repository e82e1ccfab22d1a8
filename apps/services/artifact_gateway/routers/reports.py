"""
Reports Router

Endpoints:
    GET /api/reports                 - JSON reports, newest first
    GET /api/reports?latest=true     - Redirect to the HTML report
    GET /api/reports/latest-results  - Latest saved test results
    GET /api/reports/html-status     - Whether an HTML report exists
    GET /api/reports/html/{path}     - Serve the Playwright HTML report
"""

import logging
import mimetypes

from fastapi import APIRouter
from fastapi.responses import RedirectResponse, Response

from apps.services.artifact_gateway.dependencies import get_file_store, get_test_runner
from apps.services.artifact_gateway.services.test_runner import HTML_REPORT_DIR, REPORTS_CATEGORY
from apps.services.artifact_gateway.utils import envelope_response, error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("")
async def list_reports(latest: bool = False):
    """List JSON reports, or jump to the HTML report with ``latest=true``."""
    runner = get_test_runner()
    if latest:
        status = await runner.html_report_status()
        if not status["available"]:
            return error_response("No HTML report available", 404)
        return RedirectResponse(status["path"])

    return envelope_response(await runner.list_reports())


@router.get("/latest-results")
async def latest_results():
    return envelope_response(await get_test_runner().latest_results())


@router.get("/html-status")
async def html_status():
    return await get_test_runner().html_report_status()


@router.get("/html/{path:path}")
async def html_report(path: str):
    """Files of the HTML report, confined to the reports category."""
    result = await get_file_store().get_file(REPORTS_CATEGORY, f"{HTML_REPORT_DIR}/{path or 'index.html'}", raw=True)
    if not result["success"]:
        return envelope_response(result)

    media_type = mimetypes.guess_type(result["file_name"])[0] or "application/octet-stream"
    return Response(content=result["content"], media_type=media_type)
