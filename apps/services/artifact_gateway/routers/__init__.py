"""
Artifact Gateway Router Modules

Provides FastAPI routers for all gateway endpoints.

Router Organization:
    - health: Health check and service banner
    - files: Virtual file storage CRUD
    - logs: Log buffer, download, level and SSE live tail
    - scrape: Playwright scraping and test generation
    - format: External formatter tool chains
    - tests: Run stored Playwright and pytest files
    - reports: Saved test results and the HTML report
    - help: Route listing and generated API docs
"""

from apps.services.artifact_gateway.routers.health import router as health_router
from apps.services.artifact_gateway.routers.files import router as files_router
from apps.services.artifact_gateway.routers.logs import router as logs_router
from apps.services.artifact_gateway.routers.scrape import router as scrape_router
from apps.services.artifact_gateway.routers.format import router as format_router
from apps.services.artifact_gateway.routers.tests import router as tests_router
from apps.services.artifact_gateway.routers.reports import router as reports_router
from apps.services.artifact_gateway.routers.help import router as help_router

__all__ = [
    "health_router",
    "files_router",
    "logs_router",
    "scrape_router",
    "format_router",
    "tests_router",
    "reports_router",
    "help_router",
]
