"""
Help Router

Self-describing API listing built from the generated OpenAPI schema.

Endpoints:
    GET /api/help              - Endpoints grouped by tag
    GET /api/help/endpoints/{group} - Endpoints of one group
    GET /api/help/server-info  - Runtime and storage summary
    GET /api/help/docs         - Markdown/JSON API docs, saved into "docs"
"""

import json
import logging
import os
import platform
import sys
import time
from typing import Any, Dict, List, Literal

from fastapi import APIRouter, Request

from apps.services.artifact_gateway.config import SERVICE_TITLE, SERVICE_VERSION, get_config
from apps.services.artifact_gateway.dependencies import get_category_registry, get_file_store
from apps.services.artifact_gateway.utils import envelope_response, error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/help", tags=["help"])

DOCS_CATEGORY = "docs"

HTTP_METHODS = ("get", "post", "put", "patch", "delete")

_started_at = time.time()


def collect_endpoints(request: Request) -> Dict[str, List[Dict[str, Any]]]:
    """Group documented operations by their first tag."""
    groups: Dict[str, List[Dict[str, Any]]] = {}
    paths = request.app.openapi().get("paths", {})
    for path, operations in paths.items():
        for method in HTTP_METHODS:
            operation = operations.get(method)
            if operation is None:
                continue
            group = (operation.get("tags") or ["general"])[0]
            summary = (operation.get("description") or operation.get("summary") or "").strip().splitlines()
            groups.setdefault(group, []).append({
                "method": method.upper(),
                "path": path,
                "name": operation.get("operationId", ""),
                "description": summary[0] if summary else "",
            })
    for endpoints in groups.values():
        endpoints.sort(key=lambda e: (e["path"], e["method"]))
    return groups


def render_markdown(groups: Dict[str, List[Dict[str, Any]]]) -> str:
    lines = [f"# {SERVICE_TITLE} API", "", f"Version {SERVICE_VERSION}", ""]
    for group in sorted(groups):
        lines += [f"## {group}", "", "| Method | Path | Description |", "| --- | --- | --- |"]
        for e in groups[group]:
            lines.append(f"| {e['method']} | `{e['path']}` | {e['description']} |")
        lines.append("")
    return "\n".join(lines)


@router.get("")
async def api_help(request: Request) -> Dict[str, Any]:
    groups = collect_endpoints(request)
    return {
        "success": True,
        "service": SERVICE_TITLE,
        "version": SERVICE_VERSION,
        "total": sum(len(v) for v in groups.values()),
        "groups": groups,
    }


@router.get("/server-info")
async def server_info() -> Dict[str, Any]:
    config = get_config()
    return {
        "success": True,
        "server_info": {
            "service": SERVICE_TITLE,
            "version": SERVICE_VERSION,
            "environment": config.environment,
            "python": sys.version.split()[0],
            "platform": platform.platform(),
            "pid": os.getpid(),
            "uptime_seconds": int(time.time() - _started_at),
            "storage_root": str(config.base_dir),
            "categories": get_category_registry().names(),
        },
    }


@router.get("/docs")
async def api_docs(request: Request, format: Literal["markdown", "json"] = "markdown"):
    """Generate API docs and store them in the docs category."""
    groups = collect_endpoints(request)
    if format == "json":
        file_name, body = "api-docs.json", json.dumps(groups, indent=2)
    else:
        file_name, body = "api-docs.md", render_markdown(groups)

    result = await get_file_store().save_file(DOCS_CATEGORY, file_name, body)
    if result["success"]:
        result["content"] = body
    return envelope_response(result)


@router.get("/endpoints/{group}")
async def group_endpoints(request: Request, group: str):
    """Endpoints of a single group."""
    groups = collect_endpoints(request)
    if group not in groups:
        return error_response(
            f"Unknown endpoint group: {group}",
            404,
            available_groups=sorted(groups),
        )
    return {"success": True, "group": group, "count": len(groups[group]), "endpoints": groups[group]}
