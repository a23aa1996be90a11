"""Supervise one engine process: launch, tail its log, enforce the idle watchdog."""

import asyncio
import os
import signal
import sys
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import structlog

from ..constants import WATCHDOG_TIMEOUT_EXIT_CODE
from .exceptions import CommandError, EngineFailure
from .log_tailer import LogTailer
from .settings import POLL_INTERVAL_SECONDS, TAIL_DEBOUNCE_MS, TERMINATE_GRACE_SECONDS
from .subprocess_manager import run_command
from .watchdog import IdleWatchdog, file_size

logger = structlog.get_logger()

OutputSink = Callable[[str], None]
Launcher = Callable[[str], Awaitable[asyncio.subprocess.Process]]
Terminator = Callable[[asyncio.subprocess.Process], Awaitable[None]]

IS_WINDOWS = sys.platform == "win32"


@dataclass(frozen=True)
class SupervisedRun:
    """Terminal status of a supervised engine process."""

    exit_code: int
    duration_seconds: float
    started_at: datetime
    timed_out: bool = False


async def launch_shell(command_line: str) -> asyncio.subprocess.Process:
    """Start the engine from its rendered command line.

    The engine's console copy (``/TEE``) is discarded; its report is consumed from
    the log file instead. The shell gets its own process group so the watchdog can
    end the engine along with it.
    """
    return await asyncio.create_subprocess_shell(
        command_line,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
        start_new_session=not IS_WINDOWS,
    )


async def terminate_tree(process: asyncio.subprocess.Process) -> None:
    """Terminate the launching shell together with the engine it started.

    Raises:
        ProcessLookupError: If the process has already exited
    """
    if IS_WINDOWS:
        result = await run_command(
            ["taskkill", "/T", "/F", "/PID", str(process.pid)], check=False
        )
        if not result.success:
            logger.warning(
                "taskkill failed, terminating shell only",
                pid=process.pid,
                returncode=result.returncode,
                error=result.stderr.strip(),
            )
            process.terminate()
        return

    # The shell leads its own session, so the group holds the engine too
    os.killpg(process.pid, signal.SIGTERM)


class ProcessSupervisor:
    """Run the copy engine as a child process with an idle watchdog."""

    def __init__(
        self,
        *,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        terminate_grace: float = TERMINATE_GRACE_SECONDS,
        tail_debounce_ms: int = TAIL_DEBOUNCE_MS,
        clock: Callable[[], float] = time.monotonic,
        size_source: Callable[[Path], int] = file_size,
        launcher: Launcher = launch_shell,
        tailer_factory: Callable[..., LogTailer] = LogTailer,
        terminator: Terminator = terminate_tree,
    ):
        self.poll_interval = poll_interval
        self.terminate_grace = terminate_grace
        self.tail_debounce_ms = tail_debounce_ms
        self.clock = clock
        self.size_source = size_source
        self.launcher = launcher
        self.tailer_factory = tailer_factory
        self.terminator = terminator
        self.logger = logger.bind(component="process_supervisor")

    async def run(
        self,
        command_line: str,
        log_path: Path,
        *,
        idle_timeout: float | None = None,
        output: OutputSink | None = None,
    ) -> SupervisedRun:
        """Launch the engine and block until it exits or the watchdog cancels it.

        Args:
            command_line: Rendered engine command line
            log_path: Log file the engine writes its report to
            idle_timeout: Seconds without log growth before cancelling, None to disable
            output: Receives each new log line in order

        Returns:
            SupervisedRun with the exit code and supervisor-measured duration

        Raises:
            EngineFailure: If the engine process cannot be started
        """
        log_path = Path(log_path)
        queue: asyncio.Queue[str] = asyncio.Queue()
        watchdog = IdleWatchdog(idle_timeout, clock=self.clock)
        tailer = self.tailer_factory(log_path, queue, debounce_ms=self.tail_debounce_ms)

        self.logger.info(
            "Launching engine",
            command=command_line,
            log_path=str(log_path),
            idle_timeout=idle_timeout,
        )
        # Tail from before launch so nothing the engine writes early is skipped
        await tailer.start()
        started_at = datetime.now(UTC)
        start = self.clock()
        watchdog.start(self.size_source(log_path))
        try:
            process = await self.launcher(command_line)
        except OSError as e:
            await tailer.stop()
            raise EngineFailure(f"Failed to launch engine: {e}") from e

        wait_task = asyncio.ensure_future(process.wait())
        timed_out = False

        try:
            while True:
                done, _ = await asyncio.wait({wait_task}, timeout=self.poll_interval)
                self._forward(queue, output)
                if done:
                    break

                if watchdog.expired(self.size_source(log_path)):
                    timed_out = True
                    self.logger.warning(
                        "Engine log idle beyond watchdog timeout, terminating",
                        pid=process.pid,
                        idle_timeout=idle_timeout,
                        log_size=watchdog.state.last_size if watchdog.state else 0,
                    )
                    await self._terminate(process, wait_task)
                    break
        finally:
            await tailer.stop()
            self._forward(queue, output)
            if not wait_task.done():
                wait_task.cancel()

        duration = max(self.clock() - start, 0.0)
        if timed_out:
            exit_code = WATCHDOG_TIMEOUT_EXIT_CODE
        else:
            exit_code = process.returncode if process.returncode is not None else -1

        self.logger.info(
            "Engine finished",
            exit_code=exit_code,
            duration_seconds=round(duration, 3),
            timed_out=timed_out,
        )
        return SupervisedRun(
            exit_code=exit_code,
            duration_seconds=duration,
            started_at=started_at,
            timed_out=timed_out,
        )

    async def _terminate(self, process: asyncio.subprocess.Process, wait_task: asyncio.Future) -> None:
        """Request termination once; a process that ignores it is left running."""
        try:
            await self.terminator(process)
        except ProcessLookupError:
            return
        except CommandError as e:
            self.logger.error("Termination request failed", pid=process.pid, error=str(e))

        done, _ = await asyncio.wait({wait_task}, timeout=self.terminate_grace)
        if not done:
            self.logger.warning(
                "Engine did not exit after termination request",
                pid=process.pid,
                grace_seconds=self.terminate_grace,
            )

    @staticmethod
    def _forward(queue: asyncio.Queue, output: OutputSink | None) -> None:
        while not queue.empty():
            line = queue.get_nowait()
            if output is not None:
                output(line)
