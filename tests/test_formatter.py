"""
Tests for the formatter service. Subprocess execution is replaced so no
ruff/npx install is needed, except for the missing-binary check.
"""

from pathlib import Path

import pytest

from apps.services.artifact_gateway.services.formatter import (
    CodeFormatter,
    ToolRun,
    tools_for,
)
from libs.core.config import FormatSettings
from libs.core.exceptions import ToolError


class FakeTools:
    """Records commands; ``format`` subcommands rewrite the target file."""

    def __init__(self, formatted: str = "x = 1\n", fail: tuple = ()):
        self.formatted = formatted
        self.fail = fail
        self.commands = []

    async def __call__(self, cmd, ignore_exit_code=False):
        self.commands.append(list(cmd))
        if cmd[1] in self.fail:
            raise ToolError("boom", tool=cmd[0], context={"exit_code": 2, "stderr": "boom"})
        if cmd[1] in ("format", "prettier"):
            Path(cmd[-1]).write_text(self.formatted)
        return {"exit_code": 0, "stdout": "", "stderr": ""}


@pytest.fixture
def formatter(file_store):
    return CodeFormatter(file_store, FormatSettings())


class TestToolChains:

    @pytest.mark.parametrize("file_name, expected", [
        ("app.py", ["ruff_check", "ruff_format"]),
        ("App.TSX", ["eslint", "prettier"]),
        ("site.scss", ["stylelint", "prettier"]),
        ("README.md", ["prettier"]),
        ("notes.txt", []),
    ])
    def test_tools_for(self, file_name, expected):
        assert tools_for(file_name) == expected


class TestFormatFile:

    @pytest.mark.asyncio
    async def test_formats_and_publishes(self, formatter, base_dir, monkeypatch):
        tools = FakeTools()
        monkeypatch.setattr(formatter, "_exec", tools)

        result = await formatter.format_file(b"x=1", "script.py")

        assert result["success"] is True
        assert result["content"] == "x = 1\n"
        assert result["relative_path"] == "formatted/script.py"
        assert [run["tool"] for run in result["tools"]] == ["ruff_check", "ruff_format"]
        assert all(run["success"] for run in result["tools"])
        assert result["download_url"] == "/api/files/file?category=formatted&file_name=script.py&download=true"

        assert [cmd[1] for cmd in tools.commands] == ["check", "format"]
        assert (base_dir / "formatted" / "script.py").read_text() == "x = 1\n"
        assert not (base_dir / "temp" / "script.py").exists()

    @pytest.mark.asyncio
    async def test_failing_tool_does_not_abort_chain(self, formatter, monkeypatch):
        monkeypatch.setattr(formatter, "_exec", FakeTools(fail=("check",)))

        result = await formatter.format_file(b"x=1", "script.py")

        assert result["success"] is True
        check, fmt = result["tools"]
        assert check["success"] is False
        assert check["message"] == "boom"
        assert check["exit_code"] == 2
        assert fmt["success"] is True

    @pytest.mark.asyncio
    async def test_explicit_tools_and_output_name(self, formatter, monkeypatch):
        tools = FakeTools(formatted="const a = 1;\n")
        monkeypatch.setattr(formatter, "_exec", tools)

        result = await formatter.format_file(b"const a=1", "app.js", tools=["prettier"], output_file_name="clean.js")

        assert result["file_name"] == "clean.js"
        assert result["original_name"] == "app.js"
        assert len(tools.commands) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data, file_name, tools, code", [
        (b"", "a.py", None, 400),
        (b"text", "notes.txt", None, 400),
        (b"x", "a.py", ["black"], 400),
        (b"x", "", None, 400),
    ])
    async def test_rejections(self, formatter, data, file_name, tools, code):
        result = await formatter.format_file(data, file_name, tools=tools)
        assert result["success"] is False
        assert result["code"] == code

    @pytest.mark.asyncio
    async def test_upload_limit(self, file_store):
        formatter = CodeFormatter(file_store, FormatSettings(), max_upload_bytes=4)
        result = await formatter.format_file(b"x = 12345", "a.py")
        assert result["code"] == 413

    @pytest.mark.asyncio
    async def test_format_existing(self, formatter, file_store, monkeypatch):
        monkeypatch.setattr(formatter, "_exec", FakeTools())
        await file_store.save_file("uploads", "legacy.py", "x=1")

        result = await formatter.format_existing("uploads", "legacy.py")
        assert result["success"] is True
        assert result["relative_path"] == "formatted/legacy.py"

        missing = await formatter.format_existing("uploads", "missing.py")
        assert missing["code"] == 404

    @pytest.mark.asyncio
    async def test_list_formatted(self, formatter, monkeypatch):
        monkeypatch.setattr(formatter, "_exec", FakeTools())
        await formatter.format_file(b"x=1", "one.py")
        await formatter.format_file(b"y=2", "two.py")

        listing = await formatter.list_formatted(sort_by="name", sort_order="asc")
        assert listing["count"] == 2
        assert [f["file_name"] for f in listing["files"]] == ["one.py", "two.py"]
        assert listing["files"][0]["download_url"].endswith("file_name=one.py&download=true")


class TestRunTool:

    @pytest.mark.asyncio
    async def test_missing_binary_reported(self, file_store, tmp_path):
        settings = FormatSettings().model_copy(update={"ruff_command": "ruff-binary-that-does-not-exist"})
        formatter = CodeFormatter(file_store, settings)
        target = tmp_path / "a.py"
        target.write_text("x=1")

        run = await formatter.run_tool("ruff_format", str(target))

        assert isinstance(run, ToolRun)
        assert run.success is False
        assert "not installed" in run.message
