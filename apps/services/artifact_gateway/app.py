"""
Artifact Gateway FastAPI Application

HTTP front end over virtual file storage, the log store, Playwright
scraping, external code formatters and stored test runs.

Structure:
    - config.py: Service constants (settings live in libs.core.config)
    - dependencies.py: Singleton instances with lazy initialization
    - lifespan.py: Application startup/shutdown handlers
    - schemas.py: Request bodies
    - services/: Scraper, formatter and test runner collaborators
    - utils/: Result envelope responses
    - routers/: API endpoints
"""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.services.artifact_gateway.config import (
    CORS_ORIGINS,
    SERVICE_TITLE,
    SERVICE_VERSION,
    get_config,
)
from apps.services.artifact_gateway.lifespan import lifespan
from apps.services.artifact_gateway.routers import (
    files_router,
    format_router,
    health_router,
    help_router,
    logs_router,
    reports_router,
    scrape_router,
    tests_router,
)
from apps.services.artifact_gateway.utils import error_response
from libs.core.exceptions import StorageError

logger = logging.getLogger("apps.services.artifact_gateway")

# =============================================================================
# Application Factory
# =============================================================================

app = FastAPI(
    title=SERVICE_TITLE,
    description="Sandboxed artifact storage, live logs, scraping and formatting",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    logger.info(f"[Gateway] {request.method} {request.url.path}")
    response = await call_next(request)
    elapsed_ms = (time.time() - start) * 1000
    logger.debug(f"[Gateway] {request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)")
    return response


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.warning(f"[Gateway] {request.url.path}: {exc.message}")
    return error_response(exc.message, exc.code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return error_response(f"Endpoint not found: {request.method} {request.url.path}", 404, help="/api/help")
    return error_response(str(exc.detail), exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return error_response(f"Invalid request: {details}", 400)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"[Gateway] Unhandled error on {request.method} {request.url.path}")
    if get_config().is_production:
        return error_response("Internal server error.", 500)
    return error_response("Internal server error.", 500, details=str(exc))


# =============================================================================
# Routers
# =============================================================================

# Health check endpoints
app.include_router(health_router)

# Virtual file storage
app.include_router(files_router)

# Log buffer and live tail
app.include_router(logs_router)

# Browser automation
app.include_router(scrape_router)

# External formatters
app.include_router(format_router)

# Test execution and reports
app.include_router(tests_router)
app.include_router(reports_router)

# Route listing and docs
app.include_router(help_router)
