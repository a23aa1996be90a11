"""Shared pytest fixtures for migratectl tests."""

import asyncio
import os
from datetime import UTC, datetime
from pathlib import Path

import pytest

from migratectl.core.config_loader import MigrationConfig
from migratectl.models.enums import Phase
from migratectl.models.run import ReportStatistics, RunReport, RunRequest

SAMPLE_REPORT = """\
-------------------------------------------------------------------------------
   ROBOCOPY     ::     Robust File Copy for Windows
-------------------------------------------------------------------------------

  Started : Monday, 3 June 2024 22:14:05
   Source : D:\\Shares\\Finance\\
     Dest : \\\\nas01\\finance\\

            New File               1024        D:\\Shares\\Finance\\q1.xlsx
  ERROR 32 (0x00000020) Copying File D:\\Shares\\Finance\\open.pst
The process cannot access the file because it is being used by another process.

------------------------------------------------------------------------------

               Total    Copied   Skipped  Mismatch    FAILED    Extras
    Dirs :        10         8         2         0         0         0
   Files :       100        95         3         0         2         0
   Bytes :      5.2g      5.1g         0         0         0         0
   Times :   0:12:31   0:10:02                       0:00:00   0:02:29

   Ended : Monday, 3 June 2024 22:26:36
"""


class ManualClock:
    """Clock whose time only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SteppingClock:
    """Clock that advances a fixed step on every reading."""

    def __init__(self, step: float = 1.0):
        self.step = step
        self.now = 0.0

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current


class FakeProcess:
    """Stand-in for an asyncio subprocess."""

    def __init__(self, exits_on_terminate: bool = True, terminate_code: int = 1):
        self.pid = 4242
        self.returncode: int | None = None
        self.terminate_calls = 0
        self.kill_calls = 0
        self.exits_on_terminate = exits_on_terminate
        self.terminate_code = terminate_code
        self._exited = asyncio.Event()

    def finish(self, code: int) -> None:
        self.returncode = code
        self._exited.set()

    def terminate(self) -> None:
        self.terminate_calls += 1
        if self.exits_on_terminate:
            self.finish(self.terminate_code)

    def kill(self) -> None:
        self.kill_calls += 1
        self.finish(-9)

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode


class StubTailer:
    """Tailer that queues preset lines instead of watching a file."""

    instances: list["StubTailer"] = []

    def __init__(self, log_path: Path, queue: asyncio.Queue, debounce_ms: int = 0, lines=()):
        self.log_path = log_path
        self.queue = queue
        self.lines = list(lines)
        self.started = False
        self.stopped = False
        StubTailer.instances.append(self)

    async def start(self) -> None:
        self.started = True
        for line in self.lines:
            self.queue.put_nowait(line)

    async def stop(self) -> None:
        self.stopped = True


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from ambient MIGRATECTL_ variables and user config files."""
    for name in list(os.environ):
        if name.startswith("MIGRATECTL_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(
        "migratectl.core.config_loader.USER_CONFIG_FILE", tmp_path / "no-user-config.yml"
    )


@pytest.fixture
def sample_report() -> str:
    """Representative engine summary block."""
    return SAMPLE_REPORT


@pytest.fixture
def config(tmp_path: Path) -> MigrationConfig:
    """Migration configuration pointing at temporary directories."""
    source = tmp_path / "source"
    destination = tmp_path / "destination"
    source.mkdir()
    destination.mkdir()
    return MigrationConfig(
        source_path=str(source),
        destination_path=str(destination),
        threads=8,
        retry_count_local=2,
        wait_seconds_local=5,
        retry_count_network=20,
        wait_seconds_network=60,
        log_dir=str(tmp_path / "logs"),
        history_path=str(tmp_path / "state" / "history.json"),
        snapshot_mount_dir=str(tmp_path / "snapshots"),
    )


def make_report(
    phase: Phase = Phase.SYNC,
    *,
    exit_code: int = 1,
    dry_run: bool = False,
    failed_files: int = 0,
    timed_out: bool = False,
    source: str = r"D:\Shares\Finance",
    destination: str = r"\\nas01\finance",
    log_path: str = "logs/sync.log",
) -> RunReport:
    """Build a RunReport for tests."""
    request = RunRequest(phase=phase, source=source, destination=destination, dry_run=dry_run)
    return RunReport.from_run(
        request,
        start_time=datetime(2024, 6, 3, 22, 14, 5, tzinfo=UTC),
        duration_seconds=751.0,
        exit_code=exit_code,
        log_path=log_path,
        statistics=ReportStatistics(total_files=100, copied_files=95, failed_files=failed_files),
        timed_out=timed_out,
    )


@pytest.fixture
def report_factory():
    """Factory for RunReport instances."""
    return make_report
