"""Tail the engine's log file and hand new lines to the supervisor."""

import asyncio
import codecs
from pathlib import Path

import structlog
from watchfiles import Change, awatch

logger = structlog.get_logger()


class LogTailer:
    """Follow a log file that may not exist yet, queueing each completed line.

    Lines are produced from a background task into ``queue`` in the order the
    engine appended them. Content present before ``start`` is not replayed.
    """

    def __init__(
        self,
        log_path: Path,
        queue: asyncio.Queue,
        *,
        debounce_ms: int = 200,
        encoding: str = "utf-8",
    ):
        self.log_path = Path(log_path)
        self.queue = queue
        self.debounce_ms = debounce_ms
        self.encoding = encoding
        self._offset = 0
        self._partial = ""
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._stop_event = asyncio.Event()
        self._watch_task: asyncio.Task | None = None

    async def start(self) -> None:
        """Start tailing from the current end of the file."""
        if self._watch_task is not None:
            logger.warning("Log tailer is already running", path=str(self.log_path))
            return

        self._offset = self.log_path.stat().st_size if self.log_path.exists() else 0
        self._stop_event.clear()
        self._watch_task = asyncio.create_task(self._watch_log())
        logger.debug("Started log tailer", path=str(self.log_path), offset=self._offset)

    async def stop(self) -> None:
        """Stop watching, then drain whatever the engine wrote last."""
        self._stop_event.set()
        if self._watch_task and not self._watch_task.done():
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
        self._watch_task = None

        self.read_new_lines()
        if self._partial:
            self.queue.put_nowait(self._partial.rstrip("\r"))
            self._partial = ""
        logger.debug("Stopped log tailer", path=str(self.log_path))

    async def _watch_log(self) -> None:
        """Wait for changes to the log file and read appended content."""
        self.read_new_lines()
        try:
            async for _changes in awatch(
                self.log_path.parent,
                watch_filter=self._is_log_change,
                debounce=self.debounce_ms,
                stop_event=self._stop_event,
                recursive=False,
            ):
                self.read_new_lines()
        except (OSError, RuntimeError) as e:
            # Remaining lines are still drained by stop()
            logger.error("Log watcher failed", path=str(self.log_path), error=str(e))

    def _is_log_change(self, change: Change, path: str) -> bool:
        return change != Change.deleted and Path(path).name == self.log_path.name

    def read_new_lines(self) -> int:
        """Read appended bytes and queue complete lines; returns the number queued."""
        try:
            with self.log_path.open("rb") as handle:
                size = handle.seek(0, 2)
                if size < self._offset:
                    logger.warning("Log file shrank, restarting from the beginning", path=str(self.log_path))
                    self._offset = 0
                    self._decoder.reset()
                handle.seek(self._offset)
                data = handle.read()
        except FileNotFoundError:
            return 0

        if not data:
            return 0

        self._offset += len(data)
        text = self._partial + self._decoder.decode(data)
        lines = text.split("\n")
        self._partial = lines.pop()

        for line in lines:
            self.queue.put_nowait(line.rstrip("\r"))
        return len(lines)
