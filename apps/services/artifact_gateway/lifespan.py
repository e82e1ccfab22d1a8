"""
Artifact Gateway Application Lifespan Handler

Manages application startup and shutdown events.
Initializes all singleton dependencies during startup and routes Python
logging into the LogStore.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from apps.services.artifact_gateway.config import SERVICE_NAME, get_config
from apps.services.artifact_gateway.dependencies import (
    get_log_store,
    initialize_all,
    shutdown_all,
)
from libs.core.logging_config import detach_log_store, get_logger, setup_logging

# uvicorn.error until setup_logging is called, then the unified logger
logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Startup:
        - Initializes all singleton dependencies
        - Attaches the LogStore to Python logging

    Shutdown:
        - Detaches the LogStore
        - Closes the browser if one was launched
    """
    # ==========================================================================
    # STARTUP
    # ==========================================================================

    config = get_config()

    try:
        initialize_all()
    except Exception as e:
        logger.error(f"[Gateway] Failed to initialize dependencies: {e}")
        raise

    setup_logging(
        level=config.logs.level,
        log_to_console=config.logs.console,
        log_store=get_log_store(),
        service_name=SERVICE_NAME,
    )

    gateway_logger = get_logger(SERVICE_NAME)
    gateway_logger.info(f"Gateway ready to accept requests on {config.server.base_url}")

    # ==========================================================================
    # YIELD - Application runs here
    # ==========================================================================

    yield

    # ==========================================================================
    # SHUTDOWN
    # ==========================================================================

    gateway_logger.info("Gateway shutting down...")
    await shutdown_all()
    detach_log_store()
    logger.info("[Gateway] Shutdown complete")
