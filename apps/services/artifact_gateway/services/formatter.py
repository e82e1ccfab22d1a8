"""
Code Formatter Service

Runs external formatters/linters on a file staged in the ``temp``
category and publishes the result into ``formatted``:

    .py                      ruff check --fix, ruff format
    .js .jsx .ts .tsx        npx eslint --fix, npx prettier --write
    .css .scss               npx stylelint --fix, npx prettier --write
    .html .json .md .yaml    npx prettier --write

Each tool runs in its own subprocess with a timeout. A failing tool is
reported in the result but does not stop the remaining tools.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from pathlib import PurePosixPath
from typing import Any, Callable, Dict, List, Optional, Sequence
from urllib.parse import quote

from libs.core.config import FormatSettings
from libs.core.exceptions import BadRequestError, StorageError, ToolError, TooLargeError
from libs.core.logging_config import SUCCESS
from libs.storage import FileStore, sanitize_filename

logger = logging.getLogger(__name__)

TEMP_CATEGORY = "temp"
FORMATTED_CATEGORY = "formatted"


@dataclass
class ToolSpec:
    """How to invoke one tool on one file."""

    name: str
    build: Callable[[FormatSettings, str], List[str]]
    ignore_exit_code: bool = False  # linters exit non-zero for remaining warnings


TOOLS: Dict[str, ToolSpec] = {
    "ruff_check": ToolSpec("ruff_check", lambda s, p: [s.ruff_command, "check", "--fix", "--quiet", p], True),
    "ruff_format": ToolSpec("ruff_format", lambda s, p: [s.ruff_command, "format", p]),
    "eslint": ToolSpec("eslint", lambda s, p: [s.npx_command, "eslint", p, "--fix", "--format=json"], True),
    "stylelint": ToolSpec("stylelint", lambda s, p: [s.npx_command, "stylelint", p, "--fix"], True),
    "prettier": ToolSpec("prettier", lambda s, p: [s.npx_command, "prettier", "--write", p]),
}

TOOL_CHAINS: Dict[str, List[str]] = {
    ".py": ["ruff_check", "ruff_format"],
    ".js": ["eslint", "prettier"],
    ".jsx": ["eslint", "prettier"],
    ".ts": ["eslint", "prettier"],
    ".tsx": ["eslint", "prettier"],
    ".css": ["stylelint", "prettier"],
    ".scss": ["stylelint", "prettier"],
    ".html": ["prettier"],
    ".json": ["prettier"],
    ".md": ["prettier"],
    ".yaml": ["prettier"],
    ".yml": ["prettier"],
}

SUPPORTED_EXTENSIONS = tuple(TOOL_CHAINS)


@dataclass
class ToolRun:
    """Outcome of one tool invocation."""

    tool: str
    success: bool
    exit_code: Optional[int] = None
    duration_ms: int = 0
    message: str = ""
    stderr: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def tools_for(file_name: str) -> List[str]:
    """Default tool chain for a file name (empty when unsupported)."""
    return list(TOOL_CHAINS.get(PurePosixPath(file_name).suffix.lower(), []))


class CodeFormatter:
    """Formats files through the FileStore's temp and formatted categories."""

    def __init__(
        self,
        file_store: FileStore,
        settings: Optional[FormatSettings] = None,
        max_upload_bytes: Optional[int] = None,
    ):
        self.file_store = file_store
        self.settings = settings or FormatSettings()
        self.max_upload_bytes = max_upload_bytes or file_store.max_file_size

    # -------------------------------------------------------------------------
    # Subprocess
    # -------------------------------------------------------------------------

    async def _exec(self, cmd: Sequence[str], ignore_exit_code: bool = False) -> Dict[str, Any]:
        """Run ``cmd``; raises ToolError on timeout, missing binary or failing exit code."""
        tool = cmd[0]
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise ToolError(f"{tool} is not installed or not on PATH", tool=tool) from None

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.settings.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ToolError(f"Timed out after {self.settings.timeout}s", tool=tool) from None

        result = {
            "exit_code": process.returncode,
            "stdout": stdout.decode("utf-8", errors="replace"),
            "stderr": stderr.decode("utf-8", errors="replace"),
        }
        if process.returncode != 0 and not ignore_exit_code:
            raise ToolError(
                result["stderr"].strip() or f"Exited with code {process.returncode}",
                tool=tool,
                context=result,
            )
        return result

    async def run_tool(self, name: str, file_path: str) -> ToolRun:
        spec = TOOLS[name]
        cmd = spec.build(self.settings, file_path)
        logger.info(f"[Formatter] Running {name}: {' '.join(cmd)}")

        start = time.time()
        try:
            result = await self._exec(cmd, ignore_exit_code=spec.ignore_exit_code)
        except ToolError as e:
            logger.warning(f"[Formatter] {name} had issues: {e.message}")
            return ToolRun(
                tool=name,
                success=False,
                exit_code=e.context.get("exit_code"),
                duration_ms=int((time.time() - start) * 1000),
                message=e.message,
                stderr=e.context.get("stderr", ""),
            )

        return ToolRun(
            tool=name,
            success=True,
            exit_code=result["exit_code"],
            duration_ms=int((time.time() - start) * 1000),
            message=f"{name} completed",
            stderr=result["stderr"],
        )

    # -------------------------------------------------------------------------
    # Formatting
    # -------------------------------------------------------------------------

    def _validate(self, data: bytes, file_name: str, tools: Optional[List[str]]) -> List[str]:
        if not data:
            raise BadRequestError("No file data provided")
        if len(data) > self.max_upload_bytes:
            raise TooLargeError(
                f"File size exceeds limit of {self.max_upload_bytes // (1024 * 1024)}MB",
                len(data),
                self.max_upload_bytes,
            )

        suffix = PurePosixPath(file_name).suffix.lower()
        if suffix not in TOOL_CHAINS:
            raise BadRequestError(
                f"Unsupported file extension: {suffix or '(none)'}. "
                f"Supported extensions: {', '.join(SUPPORTED_EXTENSIONS)}"
            )

        if tools is None:
            return tools_for(file_name)
        unknown = [t for t in tools if t not in TOOLS]
        if unknown:
            raise BadRequestError(f"Unknown tools: {', '.join(unknown)}. Available: {', '.join(TOOLS)}")
        return list(tools)

    async def format_file(
        self,
        data: bytes,
        file_name: str,
        tools: Optional[List[str]] = None,
        output_file_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Stage, run the tool chain, publish into ``formatted``. Returns an envelope."""
        safe_name = sanitize_filename(file_name or "")
        try:
            if not safe_name:
                raise BadRequestError("A file name is required")
            chain = self._validate(data, safe_name, tools)
        except StorageError as e:
            logger.warning(f"[Formatter] Rejected {file_name}: {e.message}")
            return e.to_result()

        staged = await self.file_store.save_file(TEMP_CATEGORY, safe_name, data)
        if not staged["success"]:
            return staged

        try:
            runs = [await self.run_tool(name, staged["file_path"]) for name in chain]

            published = await self.file_store.copy_file(
                TEMP_CATEGORY,
                safe_name,
                FORMATTED_CATEGORY,
                sanitize_filename(output_file_name or "") or safe_name,
                overwrite=True,
            )
            if not published["success"]:
                return published

            formatted = await self.file_store.get_file(FORMATTED_CATEGORY, published["file_name"], raw=True)
            if not formatted["success"]:
                return formatted
        finally:
            cleanup = await self.file_store.delete_file(TEMP_CATEGORY, safe_name)
            if not cleanup["success"]:
                logger.warning(f"[Formatter] Could not remove temp file {safe_name}: {cleanup['error']}")

        content: bytes = formatted["content"]
        logger.log(SUCCESS, f"[Formatter] Formatted {file_name} -> {published['target_path']}")
        return {
            "success": True,
            "file_name": published["file_name"],
            "original_name": file_name,
            "relative_path": published["target_path"],
            "size": len(content),
            "content": content.decode("utf-8", errors="replace"),
            "tools": [run.to_dict() for run in runs],
            "download_url": self.download_url(published["file_name"]),
        }

    async def format_existing(
        self,
        category: str,
        file_name: str,
        tools: Optional[List[str]] = None,
        output_file_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        source = await self.file_store.get_file(category, file_name, raw=True)
        if not source["success"]:
            return source
        return await self.format_file(
            source["content"],
            PurePosixPath(file_name.replace("\\", "/")).name,
            tools=tools,
            output_file_name=output_file_name,
        )

    async def list_formatted(
        self,
        search: Optional[str] = None,
        sort_by: str = "date",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        result = await self.file_store.list_files(
            FORMATTED_CATEGORY,
            search=search,
            include_stats=True,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        if not result["success"]:
            return result

        files = [{**f, "download_url": self.download_url(f["file_name"])} for f in result["files"]]
        return {"success": True, "files": files, "count": len(files)}

    @staticmethod
    def download_url(file_name: str) -> str:
        return f"/api/files/file?category={FORMATTED_CATEGORY}&file_name={quote(file_name)}&download=true"
