"""
Unit tests for the log store: buffer, levels, rotation, listeners and streams.
"""

import asyncio
import json

import pytest

from libs.storage import LogLevel, LogStore


def _messages(entries):
    return [e.message for e in entries]


class TestLogLevel:

    def test_parse_is_case_insensitive(self):
        assert LogLevel.parse("warning") is LogLevel.WARNING
        assert LogLevel.parse(" Debug ") is LogLevel.DEBUG

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            LogLevel.parse("LOUD")
        assert LogLevel.try_parse("LOUD") is None
        assert LogLevel.try_parse(None) is None

    def test_success_ranks_with_info(self):
        assert LogLevel.SUCCESS.rank == LogLevel.INFO.rank
        assert LogLevel.ERROR.rank < LogLevel.WARNING.rank < LogLevel.INFO.rank < LogLevel.DEBUG.rank


class TestBuffer:

    def test_capacity_drops_oldest(self, resolver):
        store = LogStore(resolver, capacity=3)
        for i in range(1, 5):
            store.info(str(i))
        assert _messages(store.get_logs()) == ["2", "3", "4"]

    def test_minimum_level_filters(self, log_store):
        assert log_store.debug("hidden") is None
        assert log_store.info("shown") is not None
        assert _messages(log_store.get_logs()) == ["shown"]

    def test_success_follows_info_threshold(self, resolver):
        store = LogStore(resolver, minimum_level="WARNING")
        assert store.success("saved") is None

        store.set_minimum_level("INFO")
        assert store.success("saved").level is LogLevel.SUCCESS

    def test_unknown_level_raises(self, log_store):
        with pytest.raises(ValueError):
            log_store.append("LOUD", "x")

    def test_set_minimum_level(self, log_store):
        assert log_store.set_minimum_level("debug") is True
        assert log_store.minimum_level is LogLevel.DEBUG
        assert log_store.get_logs()[-1].message == "Log level set to DEBUG"

        assert log_store.debug("now visible") is not None

    def test_set_invalid_minimum_level_keeps_current(self, log_store):
        assert log_store.set_minimum_level("LOUD") is False
        assert log_store.minimum_level is LogLevel.INFO

        last = log_store.get_logs()[-1]
        assert last.level is LogLevel.WARNING
        assert last.message == "Invalid log level: LOUD. Using INFO instead."

    def test_error_details(self, log_store):
        try:
            raise ValueError("bad value")
        except ValueError as e:
            entry = log_store.error("Operation failed", e)

        assert entry.error["name"] == "ValueError"
        assert entry.error["message"] == "bad value"
        assert "Traceback" in entry.error["stack"]
        assert "Error: bad value" in entry.format_line()


class TestGetLogs:

    @pytest.fixture
    def filled(self, resolver):
        store = LogStore(resolver, minimum_level="DEBUG")
        store.error("Disk failure")
        store.warning("Low disk space")
        store.info("Saved report")
        store.success("Upload complete")
        store.debug("cache miss")
        return store

    def test_level_is_inclusive_maximum(self, filled):
        assert _messages(filled.get_logs(level="WARNING")) == ["Disk failure", "Low disk space"]
        assert len(filled.get_logs(level="INFO")) == 4
        assert len(filled.get_logs(level="DEBUG")) == 5

    def test_unknown_level_means_no_filter(self, filled):
        assert len(filled.get_logs(level="LOUD")) == 5

    def test_search_is_case_insensitive(self, filled):
        assert _messages(filled.get_logs(search="DISK")) == ["Disk failure", "Low disk space"]

    def test_search_matches_error_message(self, resolver):
        store = LogStore(resolver)
        store.error("Request failed", {"name": "HTTPError", "message": "upstream timeout"})
        assert len(store.get_logs(search="timeout")) == 1

    def test_limit_keeps_newest(self, filled):
        assert _messages(filled.get_logs(limit=2)) == ["Upload complete", "cache miss"]
        assert len(filled.get_logs(limit=0)) == 5

    def test_format_logs(self, filled):
        entries = filled.get_logs(level="WARNING")
        text = LogStore.format_logs(entries, "text")
        assert text.count("\n\n") == 1
        assert "[ERROR] Disk failure" in text

        data = json.loads(LogStore.format_logs(entries, "json"))
        assert [d["level"] for d in data] == ["ERROR", "WARNING"]

        with pytest.raises(ValueError):
            LogStore.format_logs(entries, "xml")


class TestDisk:

    def test_entries_written_to_file(self, log_store):
        log_store.info("hello disk")
        assert "[INFO] hello disk" in log_store.file_path.read_text()

    def test_write_to_disk_disabled(self, resolver):
        store = LogStore(resolver, write_to_disk=False)
        store.info("memory only")
        assert not store.file_path.exists()

    def test_rotation_keeps_k_backups(self, resolver):
        store = LogStore(resolver, max_file_size=100, rotation_count=2)
        for i in range(1, 5):
            store.info(f"entry-{i} " + "x" * 120)

        assert "entry-4" in store.file_path.read_text()
        assert "entry-3" not in store.file_path.read_text()
        assert "entry-3" in store.backup_path(1).read_text()
        assert "entry-2" in store.backup_path(2).read_text()
        assert not store.backup_path(3).exists()

        names = [f["file_name"] for f in store.list_log_files()]
        assert names == ["server.log", "server.log.1", "server.log.2"]

    def test_rotation_count_zero_truncates(self, resolver):
        store = LogStore(resolver, max_file_size=100, rotation_count=0)
        store.info("first " + "x" * 120)
        store.info("second " + "x" * 120)

        content = store.file_path.read_text()
        assert "second" in content
        assert "first" not in content
        assert not store.backup_path(1).exists()

    def test_write_failure_does_not_raise(self, log_store):
        log_store.file_path.mkdir(parents=True)
        entry = log_store.info("still buffered")
        assert entry is not None
        assert _messages(log_store.get_logs()) == ["still buffered"]


class TestListeners:

    def test_replay_then_live(self, log_store):
        log_store.info("before")
        received = []
        log_store.subscribe(lambda e: received.append(e.message))
        log_store.info("after")
        assert received == ["before", "after"]

    def test_without_replay(self, log_store):
        log_store.info("before")
        received = []
        log_store.subscribe(lambda e: received.append(e.message), replay=False)
        log_store.info("after")
        assert received == ["after"]

    def test_unsubscribe(self, log_store):
        received = []
        unsubscribe = log_store.subscribe(received.append)
        unsubscribe()
        unsubscribe()
        log_store.info("ignored")
        assert received == []
        assert log_store.listener_count == 0

    def test_listener_exception_is_isolated(self, log_store):
        def broken(entry):
            raise RuntimeError("listener bug")

        received = []
        log_store.subscribe(broken)
        log_store.subscribe(received.append)

        assert log_store.info("delivered") is not None
        assert [e.message for e in received] == ["delivered"]

    def test_listener_may_log(self, log_store):
        def echo(entry):
            if entry.message == "ping":
                log_store.info("pong")

        log_store.subscribe(echo)
        log_store.info("ping")
        assert _messages(log_store.get_logs()) == ["ping", "pong"]

        lines = log_store.file_path.read_text().splitlines()
        assert "ping" in lines[0]
        assert "pong" in lines[1]

    def test_entry_logged_by_listener_reaches_later_listeners_in_order(self, log_store):
        def echo(entry):
            if entry.message == "ping":
                log_store.info("pong")

        received = []
        log_store.subscribe(echo)
        log_store.subscribe(lambda e: received.append(e.message))
        log_store.info("ping")

        assert received == ["ping", "pong"]

    def test_nested_appends_keep_order_for_every_listener(self, log_store):
        def chain(entry):
            if entry.message == "a":
                log_store.info("b")
                log_store.info("c")

        first, second = [], []
        log_store.subscribe(lambda e: first.append(e.message))
        log_store.subscribe(chain)
        log_store.subscribe(lambda e: second.append(e.message))
        log_store.info("a")

        assert first == ["a", "b", "c"]
        assert second == ["a", "b", "c"]

    def test_non_callable_rejected(self, log_store):
        with pytest.raises(TypeError):
            log_store.subscribe("not a function")


class TestLogStream:

    @pytest.mark.asyncio
    async def test_stream_receives_filtered_entries(self, log_store):
        log_store.info("old info")
        log_store.error("old error")
        stream = log_store.open_stream(level="ERROR")

        first = await stream.get(timeout=1)
        assert first.message == "old error"

        log_store.warning("skipped")
        log_store.error("new error")
        second = await stream.get(timeout=1)
        assert second.message == "new error"
        stream.close()

    @pytest.mark.asyncio
    async def test_slow_reader_drops_oldest(self, log_store):
        stream = log_store.open_stream(max_queue=2, replay=False)
        for i in range(1, 4):
            log_store.info(str(i))

        assert stream.dropped == 1
        assert (await stream.get(timeout=1)).message == "2"
        assert (await stream.get(timeout=1)).message == "3"
        assert await stream.get(timeout=0.01) is None
        stream.close()

    @pytest.mark.asyncio
    async def test_close_unsubscribes(self, log_store):
        stream = log_store.open_stream(replay=False)
        assert log_store.listener_count == 1

        stream.close()
        assert log_store.listener_count == 0
        log_store.info("after close")
        assert await stream.get() is None

    @pytest.mark.asyncio
    async def test_wakes_waiting_reader(self, log_store):
        stream = log_store.open_stream(replay=False)
        reader = asyncio.create_task(stream.get(timeout=2))
        await asyncio.sleep(0)

        await asyncio.to_thread(log_store.info, "from a worker thread")
        entry = await reader
        assert entry.message == "from a worker thread"
        stream.close()

    @pytest.mark.asyncio
    async def test_async_iteration_ends_on_close(self, log_store):
        log_store.info("a")
        log_store.info("b")
        stream = log_store.open_stream()
        stream.close()

        messages = [entry.message async for entry in stream]
        assert messages == ["a", "b"]
