# conftest.py
# Put the repository root on sys.path so both `libs.*` and
# `apps.services.artifact_gateway.*` import without installation.

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)

if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from libs.core.config import DEFAULT_CATEGORIES, get_settings  # noqa: E402
from libs.storage import CategoryRegistry, FileStore, LogStore, PathResolver  # noqa: E402


@pytest.fixture
def base_dir(tmp_path):
    return tmp_path / "file_storage"


@pytest.fixture
def registry(base_dir):
    registry = CategoryRegistry(base_dir, seed=DEFAULT_CATEGORIES)
    registry.ensure_directories()
    return registry


@pytest.fixture
def resolver(registry):
    return PathResolver(registry)


@pytest.fixture
def file_store(resolver):
    return FileStore(resolver)


@pytest.fixture
def log_store(resolver):
    return LogStore(resolver)


@pytest.fixture
def client(base_dir, monkeypatch):
    """TestClient with lifespan, storage rooted in a temp dir."""
    from fastapi.testclient import TestClient

    from apps.services.artifact_gateway.app import app
    from apps.services.artifact_gateway.dependencies import reset_dependencies

    monkeypatch.setenv("STORAGE_BASE_DIR", str(base_dir))
    monkeypatch.setenv("LOG_TO_CONSOLE", "false")
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    get_settings.cache_clear()
    reset_dependencies()

    with TestClient(app) as test_client:
        yield test_client

    reset_dependencies()
    get_settings.cache_clear()
