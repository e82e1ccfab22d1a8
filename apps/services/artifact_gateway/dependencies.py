"""
Artifact Gateway Dependencies Module

Singleton instances with lazy initialization for all gateway services.
The category registry is built once and shared by reference with the
resolver, the file store and the log store.
"""

import logging
from typing import Any, Optional

from apps.services.artifact_gateway.config import FORMAT_MAX_UPLOAD_BYTES, get_config

logger = logging.getLogger("uvicorn.error")

# =============================================================================
# Private Singleton Storage
# =============================================================================

_registry: Optional[Any] = None
_resolver: Optional[Any] = None
_file_store: Optional[Any] = None
_log_store: Optional[Any] = None
_scraper: Optional[Any] = None
_formatter: Optional[Any] = None
_test_runner: Optional[Any] = None


# =============================================================================
# Storage
# =============================================================================


def get_category_registry():
    """Get the category registry singleton."""
    global _registry
    if _registry is None:
        from libs.core.config import load_category_seed
        from libs.storage import CategoryRegistry

        config = get_config()
        _registry = CategoryRegistry(config.base_dir, seed=load_category_seed(config))
        _registry.ensure_directories()
        logger.info(f"[Dependencies] Category registry initialized ({len(_registry)} categories at {_registry.base_dir})")
    return _registry


def get_path_resolver():
    """Get the path resolver singleton."""
    global _resolver
    if _resolver is None:
        from libs.storage import PathResolver

        _resolver = PathResolver(get_category_registry())
    return _resolver


def get_file_store():
    """Get the file store singleton."""
    global _file_store
    if _file_store is None:
        from libs.storage import FileStore

        settings = get_config().storage
        _file_store = FileStore(
            get_path_resolver(),
            max_file_size=settings.max_file_size,
            default_encoding=settings.default_encoding,
        )
        logger.info("[Dependencies] File store initialized")
    return _file_store


def get_log_store():
    """Get the log store singleton."""
    global _log_store
    if _log_store is None:
        from libs.storage import LogStore

        settings = get_config().logs
        _log_store = LogStore(
            get_path_resolver(),
            capacity=settings.in_memory_limit,
            max_file_size=settings.file_max_size,
            rotation_count=settings.rotation_count,
            minimum_level=settings.level,
            category=settings.category,
            file_name=settings.file_name,
            stream_queue_size=settings.stream_queue_size,
        )
        logger.info(f"[Dependencies] Log store initialized ({_log_store.file_path})")
    return _log_store


# =============================================================================
# Collaborators
# =============================================================================


def get_scraper():
    """Get the Playwright scraper singleton."""
    global _scraper
    if _scraper is None:
        from apps.services.artifact_gateway.services.scraper import Scraper

        _scraper = Scraper(get_file_store(), get_config().browser)
        logger.info("[Dependencies] Scraper initialized")
    return _scraper


def get_formatter():
    """Get the code formatter singleton."""
    global _formatter
    if _formatter is None:
        from apps.services.artifact_gateway.services.formatter import CodeFormatter

        _formatter = CodeFormatter(
            get_file_store(),
            get_config().formatting,
            max_upload_bytes=FORMAT_MAX_UPLOAD_BYTES,
        )
        logger.info("[Dependencies] Formatter initialized")
    return _formatter


def get_test_runner():
    """Get the test runner singleton."""
    global _test_runner
    if _test_runner is None:
        from apps.services.artifact_gateway.services.test_runner import TestRunner

        _test_runner = TestRunner(get_file_store(), get_config().testing)
        logger.info("[Dependencies] Test runner initialized")
    return _test_runner


# =============================================================================
# Initialization
# =============================================================================


def initialize_all():
    """
    Initialize all singleton dependencies.

    Call this during application startup to ensure all services are ready.
    """
    logger.info("[Dependencies] Initializing all singletons...")

    get_category_registry()
    get_path_resolver()
    get_log_store()
    get_file_store()
    get_scraper()
    get_formatter()
    get_test_runner()

    logger.info("[Dependencies] All singletons initialized")


async def shutdown_all():
    """Close the browser and wait for background directory creation."""
    if _scraper is not None:
        await _scraper.close()
    if _registry is not None:
        await _registry.wait_pending()


def reset_dependencies():
    """Drop every singleton so the next getter call rebuilds it (tests)."""
    global _registry, _resolver, _file_store, _log_store, _scraper, _formatter, _test_runner
    _registry = None
    _resolver = None
    _file_store = None
    _log_store = None
    _scraper = None
    _formatter = None
    _test_runner = None
