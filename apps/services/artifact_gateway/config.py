"""
Artifact Gateway Configuration Module

Service constants plus access to the shared pydantic settings in
libs.core.config. Storage, log, browser and formatter settings live
there; this module only holds what is specific to the HTTP service.
"""

import logging
import os
from typing import List

from dotenv import load_dotenv

from libs.core.config import Settings, get_settings

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger("uvicorn.error")

# =============================================================================
# Service Identity
# =============================================================================

SERVICE_NAME = "artifact_gateway"
SERVICE_TITLE = "Artifact Gateway"
SERVICE_VERSION = "1.0.0"

# =============================================================================
# HTTP Settings
# =============================================================================

CORS_ORIGINS: List[str] = [
    origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
]

# Seconds between SSE keepalive comments on /api/logs/live
SSE_PING_SECONDS = int(os.getenv("SSE_PING_SECONDS", "15"))

# Seconds a live-tail generator waits for an entry before re-checking the client
LIVE_TAIL_POLL_SECONDS = float(os.getenv("LIVE_TAIL_POLL_SECONDS", "1.0"))

# Upload size cap for /api/format (formatters are not meant for huge files)
FORMAT_MAX_UPLOAD_BYTES = int(os.getenv("FORMAT_MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))


def get_config() -> Settings:
    """Get cached gateway configuration."""
    return get_settings()
