"""
Health Check Router

Provides health check endpoints for the artifact gateway.

Endpoints:
    GET /healthz - Kubernetes-style health check
    GET /health  - Alias for /healthz
    GET /        - Service banner
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter

from apps.services.artifact_gateway.config import SERVICE_TITLE, SERVICE_VERSION
from apps.services.artifact_gateway.dependencies import get_file_store, get_log_store

logger = logging.getLogger("uvicorn.error")

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> Dict[str, Any]:
    """
    Kubernetes-style health check endpoint.

    Reports "degraded" when the storage root is missing.
    """
    checks: Dict[str, str] = {}

    try:
        store = get_file_store()
        checks["storage"] = "ok" if store.base_dir.is_dir() else "missing"
    except Exception as e:
        checks["storage"] = f"error: {e}"

    try:
        log_store = get_log_store()
        checks["log_store"] = f"ok ({len(log_store)} buffered, min {log_store.minimum_level.value})"
    except Exception as e:
        checks["log_store"] = f"error: {e}"

    healthy = all(v.startswith("ok") for v in checks.values())
    return {"status": "healthy" if healthy else "degraded", "checks": checks}


@router.get("/health")
async def health() -> Dict[str, Any]:
    """Health check endpoint (alias for /healthz)."""
    return await healthz()


@router.get("/")
async def root() -> Dict[str, Any]:
    return {
        "service": SERVICE_TITLE,
        "version": SERVICE_VERSION,
        "help": "/api/help",
    }
