"""
Tests for path validation, the category registry and the path resolver.
"""

import asyncio
import os
from pathlib import Path

import pytest

from libs.core.exceptions import InvalidPathError
from libs.storage import CategoryRegistry, PathResolver, sanitize_filename
from libs.storage.validation import has_dangerous_extension, is_within, validate_components


class TestValidateComponents:

    def test_plain_relative_path(self):
        assert validate_components("reports/2024/q1.json") == "reports/2024/q1.json"

    def test_backslashes_are_separators(self):
        assert validate_components("reports\\2024\\q1.json") == "reports/2024/q1.json"

    @pytest.mark.parametrize("value", [
        "",
        "..",
        "../secret.txt",
        "a/../../b",
        "..\\..\\windows",
        "/etc/passwd",
        "a//b",
        "./a",
    ])
    def test_rejects_empty_and_traversal_segments(self, value):
        with pytest.raises(InvalidPathError):
            validate_components(value)

    @pytest.mark.parametrize("value", ["bad<name>.txt", "c:drive", 'quote".txt', "pipe|x", "what?", "star*", "nul\x00byte"])
    def test_rejects_forbidden_characters(self, value):
        with pytest.raises(InvalidPathError):
            validate_components(value)

    def test_dangerous_extension_detection(self):
        assert has_dangerous_extension("tool.EXE")
        assert has_dangerous_extension("dir\\run.sh")
        assert not has_dangerous_extension("notes.txt")


class TestSanitizeFilename:

    def test_replaces_forbidden_and_separators(self):
        assert sanitize_filename("a/b:c?.txt") == "a_b_c_.txt"

    def test_strips_dots_and_spaces(self):
        assert sanitize_filename("  .hidden. ") == "hidden"

    def test_traversal_collapses_to_empty(self):
        assert sanitize_filename("..") == ""

    def test_keeps_unicode(self):
        assert sanitize_filename("résumé 2024.pdf") == "résumé 2024.pdf"


class TestIsWithin:

    def test_same_and_nested(self, tmp_path):
        assert is_within(tmp_path, tmp_path)
        assert is_within(tmp_path / "a" / "b", tmp_path)

    def test_sibling_with_shared_prefix(self, tmp_path):
        assert not is_within(tmp_path / "foobar", tmp_path / "foo")


class TestCategoryRegistry:

    def test_seed_is_normalized(self, base_dir):
        registry = CategoryRegistry(base_dir, seed={"exports": "reports\\exports"})
        assert registry.resolve("exports") == "reports/exports"

    def test_seed_rejects_traversal(self, base_dir):
        with pytest.raises(InvalidPathError):
            CategoryRegistry(base_dir, seed={"evil": "../outside"})

    def test_register_outside_loop_creates_directory(self, registry, base_dir):
        assert registry.register("fixtures", "tests\\fixtures") == "tests/fixtures"
        assert (base_dir / "tests" / "fixtures").is_dir()
        assert "fixtures" in registry

    @pytest.mark.asyncio
    async def test_register_inside_loop_creates_directory_in_background(self, registry, base_dir):
        registry.register("archive", "reports/archive")
        await registry.wait_pending()
        assert (base_dir / "reports" / "archive").is_dir()

    def test_register_overwrites(self, registry):
        registry.register("reports", "docs/reports")
        assert registry.resolve("reports") == "docs/reports"

    def test_empty_name_rejected(self, registry):
        with pytest.raises(InvalidPathError):
            registry.register("  ", "x")

    def test_mkdir_failure_is_not_raised(self, registry, base_dir):
        (base_dir / "blocker").write_text("not a directory")
        registry.register("blocked", "blocker/sub")
        assert registry.resolve("blocked") == "blocker/sub"
        assert not (base_dir / "blocker" / "sub").exists()

    def test_names_sorted(self, registry):
        names = registry.names()
        assert names == sorted(names)
        assert "logs" in names
        assert registry.resolve("missing") is None

    @pytest.mark.asyncio
    async def test_concurrent_registration(self, registry):
        await asyncio.gather(*(asyncio.to_thread(registry.register, f"c{i}", f"tests/c{i}") for i in range(20)))
        await registry.wait_pending()
        assert all(f"c{i}" in registry for i in range(20))


class TestPathResolver:

    def test_empty_category_is_root(self, resolver, base_dir):
        assert resolver.resolve_category_path("") == base_dir.resolve()

    def test_registered_category(self, resolver, base_dir):
        assert resolver.resolve_category_path("reports") == base_dir.resolve() / "reports"

    def test_unregistered_category_is_raw_path(self, resolver, base_dir):
        assert resolver.resolve_category_path("custom/sub") == base_dir.resolve() / "custom" / "sub"

    def test_file_path(self, resolver, base_dir):
        path = resolver.resolve_file_path("reports", "summary.json")
        assert path == base_dir.resolve() / "reports" / "summary.json"
        assert resolver.relative_path(path) == "reports/summary.json"

    @pytest.mark.parametrize("file_name", ["../../etc/passwd", "..\\..\\boot.ini", "/etc/passwd", "a/../../b"])
    def test_traversal_rejected(self, resolver, file_name):
        with pytest.raises(InvalidPathError):
            resolver.resolve_file_path("reports", file_name)

    def test_category_traversal_rejected(self, resolver):
        with pytest.raises(InvalidPathError):
            resolver.resolve_category_path("../outside")

    def test_dangerous_extension(self, resolver):
        with pytest.raises(InvalidPathError, match="File type not allowed"):
            resolver.resolve_file_path("uploads", "payload.exe")
        assert resolver.resolve_file_path("uploads", "payload.exe", allow_dangerous_extensions=True).name == "payload.exe"

    def test_symlink_escape_rejected(self, resolver, base_dir, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "secret.txt").write_text("secret")
        os.symlink(outside, base_dir / "reports" / "link")

        with pytest.raises(InvalidPathError):
            resolver.resolve_file_path("reports", "link/secret.txt")

    def test_symlink_inside_root_allowed(self, resolver, base_dir):
        os.symlink(base_dir / "docs", base_dir / "reports" / "docs_link")
        path = resolver.resolve_file_path("reports", "docs_link/readme.md")
        assert path.name == "readme.md"

    def test_relative_path_outside_root(self, resolver):
        assert resolver.relative_path(Path("/definitely/elsewhere")) is None

    def test_shares_registry_by_reference(self, registry, base_dir):
        resolver = PathResolver(registry)
        registry.register("late", "reports/late")
        assert resolver.resolve_category_path("late") == base_dir.resolve() / "reports" / "late"
