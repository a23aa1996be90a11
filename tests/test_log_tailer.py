"""Tests for the engine log tailer."""

import asyncio

import pytest

from migratectl.core.log_tailer import LogTailer


def _drain(queue: asyncio.Queue) -> list[str]:
    lines = []
    while not queue.empty():
        lines.append(queue.get_nowait())
    return lines


class TestReadNewLines:
    """Test incremental reading without the file watcher."""

    def test_missing_file(self, tmp_path):
        """Test reading a log that has not been created yet."""
        queue: asyncio.Queue = asyncio.Queue()
        tailer = LogTailer(tmp_path / "run.log", queue)

        assert tailer.read_new_lines() == 0
        assert queue.empty()

    def test_complete_lines_only(self, tmp_path):
        """Test a trailing partial line is held back until completed."""
        log = tmp_path / "run.log"
        queue: asyncio.Queue = asyncio.Queue()
        tailer = LogTailer(log, queue)

        log.write_bytes(b"first\r\nsecond\r\nthi")
        assert tailer.read_new_lines() == 2
        assert _drain(queue) == ["first", "second"]

        with log.open("ab") as handle:
            handle.write(b"rd\r\n")
        assert tailer.read_new_lines() == 1
        assert _drain(queue) == ["third"]

    def test_multibyte_split_across_reads(self, tmp_path):
        """Test a character split between two writes is decoded once whole."""
        log = tmp_path / "run.log"
        queue: asyncio.Queue = asyncio.Queue()
        tailer = LogTailer(log, queue)
        encoded = "Größe\n".encode()

        log.write_bytes(encoded[:3])
        tailer.read_new_lines()
        with log.open("ab") as handle:
            handle.write(encoded[3:])
        tailer.read_new_lines()

        assert _drain(queue) == ["Größe"]

    def test_shrunk_file_restarts(self, tmp_path):
        """Test an overwritten log is read again from the beginning."""
        log = tmp_path / "run.log"
        queue: asyncio.Queue = asyncio.Queue()
        tailer = LogTailer(log, queue)

        log.write_text("a long first line\n", encoding="utf-8")
        tailer.read_new_lines()
        log.write_text("new\n", encoding="utf-8")
        tailer.read_new_lines()

        assert _drain(queue) == ["a long first line", "new"]


@pytest.mark.asyncio
class TestLogTailerLifecycle:
    """Test start and stop behaviour."""

    async def test_existing_content_not_replayed(self, tmp_path):
        """Test content written before start is skipped."""
        log = tmp_path / "run.log"
        log.write_text("previous run\n", encoding="utf-8")
        queue: asyncio.Queue = asyncio.Queue()
        tailer = LogTailer(log, queue, debounce_ms=10)

        await tailer.start()
        with log.open("a", encoding="utf-8") as handle:
            handle.write("this run\n")
        await tailer.stop()

        assert _drain(queue) == ["this run"]

    async def test_stop_flushes_partial_line(self, tmp_path):
        """Test the final unterminated line is delivered on stop."""
        log = tmp_path / "run.log"
        queue: asyncio.Queue = asyncio.Queue()
        tailer = LogTailer(log, queue, debounce_ms=10)

        await tailer.start()
        log.write_text("Ended : Monday\nno newline", encoding="utf-8")
        await tailer.stop()

        assert _drain(queue) == ["Ended : Monday", "no newline"]

    async def test_double_start_is_ignored(self, tmp_path):
        """Test starting twice keeps a single watch task."""
        queue: asyncio.Queue = asyncio.Queue()
        tailer = LogTailer(tmp_path / "run.log", queue, debounce_ms=10)

        await tailer.start()
        task = tailer._watch_task
        await tailer.start()

        assert tailer._watch_task is task
        await tailer.stop()
        assert tailer._watch_task is None
