"""Run request, report and history data models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..constants import ENGINE_FAILURE_THRESHOLD
from .enums import Phase


class MigrateModel(BaseModel):
    """Base model with common migratectl settings."""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    def model_dump(self, **kwargs) -> dict[str, Any]:
        """Convert to dict with JSON-friendly values by default."""
        kwargs.setdefault("mode", "json")
        return super().model_dump(**kwargs)


class RunRequest(MigrateModel):
    """Resolved parameters for one engine invocation."""

    phase: Phase
    source: str
    destination: str
    dry_run: bool = False
    custom_options: str = ""


class ReportStatistics(MigrateModel):
    """Counters extracted from the engine's textual report."""

    total_dirs: int = 0
    copied_dirs: int = 0
    total_files: int = 0
    copied_files: int = 0
    skipped_files: int = 0
    mismatched_files: int = Field(default=0, exclude=True)
    failed_files: int = 0
    extra_files: int = 0
    total_bytes: str = "0"
    copied_bytes: str = "0"


class RunReport(MigrateModel):
    """Structured outcome of one engine invocation."""

    phase: Phase
    source: str
    destination: str
    start_time: datetime
    duration_seconds: float = Field(ge=0)
    exit_code: int
    success: bool
    log_path: str
    dry_run: bool = False
    timed_out: bool = False
    snapshot_retry: bool = False
    total_dirs: int = 0
    total_files: int = 0
    copied_files: int = 0
    skipped_files: int = 0
    failed_files: int = 0
    extra_files: int = 0
    copied_bytes: str = "0"

    @classmethod
    def from_run(
        cls,
        request: RunRequest,
        *,
        start_time: datetime,
        duration_seconds: float,
        exit_code: int,
        log_path: str,
        statistics: ReportStatistics,
        timed_out: bool = False,
        snapshot_retry: bool = False,
    ) -> "RunReport":
        """Combine a request, the supervised exit status and parsed statistics."""
        return cls(
            phase=request.phase,
            source=request.source,
            destination=request.destination,
            start_time=start_time,
            duration_seconds=duration_seconds,
            exit_code=exit_code,
            success=engine_succeeded(exit_code) and not timed_out,
            log_path=log_path,
            dry_run=request.dry_run,
            timed_out=timed_out,
            snapshot_retry=snapshot_retry,
            total_dirs=statistics.total_dirs,
            total_files=statistics.total_files,
            copied_files=statistics.copied_files,
            skipped_files=statistics.skipped_files,
            failed_files=statistics.failed_files,
            extra_files=statistics.extra_files,
            copied_bytes=statistics.copied_bytes,
        )


class LastRunSummary(MigrateModel):
    """Summary of the most recent persisted run."""

    timestamp: datetime
    phase: Phase
    success: bool


class RunHistory(MigrateModel):
    """Append-only sequence of persisted run reports."""

    runs: tuple[RunReport, ...] = ()
    last_run: LastRunSummary | None = None

    def appended(self, report: RunReport) -> "RunHistory":
        """Return a new history with the report added at the end."""
        return RunHistory(
            runs=(*self.runs, report),
            last_run=LastRunSummary(
                timestamp=report.start_time, phase=report.phase, success=report.success
            ),
        )

    def contains_phase(self, phase: Phase) -> bool:
        """True when any entry, successful or not, ran the given phase."""
        return any(run.phase == phase for run in self.runs)


def engine_succeeded(exit_code: int) -> bool:
    """Engine codes below the failure threshold mean no irrecoverable failure."""
    return 0 <= exit_code < ENGINE_FAILURE_THRESHOLD
