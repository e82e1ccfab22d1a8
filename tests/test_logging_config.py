"""
Tests for routing stdlib logging into the LogStore.
"""

import logging

import pytest

from libs.core.logging_config import (
    LOG_STORE_DIAGNOSTIC_LOGGER,
    SUCCESS,
    LogStoreHandler,
)
from libs.storage import LogLevel, LogStore


@pytest.fixture
def store_logger(resolver):
    store = LogStore(resolver, minimum_level="DEBUG", write_to_disk=False)
    handler = LogStoreHandler(store)
    log = logging.getLogger("tests.store_logger")
    log.setLevel(logging.DEBUG)
    log.propagate = False
    log.addHandler(handler)
    yield log, store, handler
    log.removeHandler(handler)


class TestLevelMapping:

    @pytest.mark.parametrize("levelno, expected", [
        (logging.CRITICAL, "ERROR"),
        (logging.ERROR, "ERROR"),
        (logging.WARNING, "WARNING"),
        (SUCCESS, "SUCCESS"),
        (logging.INFO, "INFO"),
        (logging.DEBUG, "DEBUG"),
        (5, "DEBUG"),
    ])
    def test_level_name(self, levelno, expected):
        assert LogStoreHandler.level_name(levelno) == expected

    def test_success_level_registered(self):
        assert logging.getLevelName(SUCCESS) == "SUCCESS"


class TestLogStoreHandler:

    def test_records_reach_store(self, store_logger):
        log, store, _ = store_logger
        log.info("plain %s", "info")
        log.log(SUCCESS, "saved")
        log.warning("careful")

        entries = store.get_logs()
        assert [e.message for e in entries] == ["plain info", "saved", "careful"]
        assert [e.level for e in entries] == [LogLevel.INFO, LogLevel.SUCCESS, LogLevel.WARNING]

    def test_exception_details_attached(self, store_logger):
        log, store, _ = store_logger
        try:
            raise KeyError("missing")
        except KeyError:
            log.exception("lookup failed")

        entry = store.get_logs()[-1]
        assert entry.level is LogLevel.ERROR
        assert entry.error["name"] == "KeyError"

    def test_store_minimum_level_applies(self, resolver):
        store = LogStore(resolver, minimum_level="WARNING", write_to_disk=False)
        handler = LogStoreHandler(store)
        handler.handle(logging.LogRecord("tests", logging.INFO, __file__, 1, "dropped", None, None))
        assert len(store) == 0

    def test_diagnostic_logger_is_skipped(self, store_logger):
        _, store, handler = store_logger
        record = logging.LogRecord(
            LOG_STORE_DIAGNOSTIC_LOGGER, logging.ERROR, __file__, 1, "rotation failed", None, None
        )
        handler.handle(record)
        assert len(store) == 0
