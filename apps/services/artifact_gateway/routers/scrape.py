"""
Scrape Router

Endpoints:
    POST /api/scrape             - Scrape one or more URLs
    POST /api/scrape/playwright  - Locators and generated test for one URL
    GET  /api/scrape/config      - Scraper settings
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter

from apps.services.artifact_gateway.dependencies import get_scraper
from apps.services.artifact_gateway.schemas import PlaywrightRequest, ScrapeRequest
from apps.services.artifact_gateway.services.scraper import PLAYWRIGHT_CATEGORY
from apps.services.artifact_gateway.utils import error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scrape", tags=["scrape"])


@router.post("")
async def scrape(request: ScrapeRequest):
    """Scrape URLs; per-URL failures are collected in ``errors``."""
    urls = [u.strip() for u in request.urls if u and u.strip()]
    if not urls:
        return error_response("Please provide an array of valid URLs.", 400)

    logger.info(f"[Scrape] Received scraping request for {len(urls)} URL(s)")
    outcome = await get_scraper().scrape_many(urls, request.options)

    return {
        "success": True,
        "data": outcome["results"],
        "errors": outcome["errors"],
        "stats": {
            "total_processed": outcome["total_processed"],
            "success_count": outcome["success_count"],
            "error_count": outcome["error_count"],
        },
    }


@router.post("/playwright")
async def playwright_code(request: PlaywrightRequest):
    """Scrape a single URL without screenshots and return only the Playwright parts."""
    if not request.url:
        return error_response("Please provide a valid URL.", 400)

    options = request.options.model_copy(update={"screenshots": False, "category": PLAYWRIGHT_CATEGORY})
    try:
        result = await get_scraper().scrape_website(request.url, options)
    except Exception as e:
        logger.error(f"[Scrape] Playwright code generation failed for {request.url}: {e}")
        return error_response("Playwright code generation failed", 500, details=str(e))

    locators = result["playwright_locators"]
    if request.selector:
        locators = {
            group: [
                item for item in items
                if request.selector in item["locator"]
                or request.selector in (item["element"].get("selector") or "")
            ]
            for group, items in locators.items()
        }

    response: Dict[str, Any] = {
        "success": True,
        "url": result["url"],
        "title": result["title"],
        "locators": locators,
        "file_path": result.get("file_path"),
        "script_path": result.get("script_path"),
    }
    if request.include_script:
        response["script"] = result["playwright_script"]
    return response


@router.get("/config")
async def scrape_config() -> Dict[str, Any]:
    return {"success": True, "config": get_scraper().config()}
