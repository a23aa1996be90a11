"""Phase orchestration with the safety gates around destructive phases.

SEED and SYNC copy source to destination without gating. RECONCILE reverses the
direction and asks the operator first. MIRROR deletes destination files absent
from the source, so it requires a prior RECONCILE entry in the run history (or an
explicit override) and, outside preview, an execution-confirmation flag.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

import structlog

from ..constants import (
    EXIT_NOT_CONFIRMED,
    EXIT_SUCCESS,
    WATCHDOG_TIMEOUT_EXIT_CODE,
)
from ..models.enums import Phase
from ..models.run import RunReport, RunRequest
from .config_loader import MigrationConfig
from .engine import EngineRunner
from .exceptions import HistoryStoreFailure, MigrateCtlError, NotificationFailure
from .history import RunHistoryStore
from .notifier import Notifier, NullNotifier
from .snapshot import SnapshotFallbackManager
from .supervisor import OutputSink
from .validation import validate_engine, validate_request

logger = structlog.get_logger()

ConfirmationPrompt = Callable[[str], bool]


def decline(_question: str) -> bool:
    """Non-interactive prompt that never confirms."""
    return False


class OutcomeStatus(Enum):
    """How a phase request ended."""

    COMPLETED = "completed"
    NOT_CONFIRMED = "not_confirmed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class OrchestratorOptions:
    """Operator choices for one phase request."""

    preview: bool = False
    confirm_execution: bool = False
    override_reconcile_gate: bool = False
    force_backup_mode: bool = False
    append_log: bool | None = None
    snapshot_fallback: bool = False


@dataclass(frozen=True)
class PhaseOutcome:
    """Result of a phase request, with or without an engine run."""

    status: OutcomeStatus
    report: RunReport | None = None
    fallback_report: RunReport | None = None
    message: str = ""

    @property
    def final_report(self) -> RunReport | None:
        return self.fallback_report or self.report

    @property
    def exit_status(self) -> int:
        """Process exit status for this outcome."""
        if self.status is OutcomeStatus.NOT_CONFIRMED:
            return EXIT_NOT_CONFIRMED
        report = self.final_report
        if self.status is OutcomeStatus.CANCELLED or report is None:
            return EXIT_SUCCESS
        if report.success:
            return EXIT_SUCCESS
        if report.timed_out:
            return WATCHDOG_TIMEOUT_EXIT_CODE
        return report.exit_code


def default_preflight(config: MigrationConfig) -> Callable[[RunRequest], None]:
    def preflight(request: RunRequest) -> None:
        validate_engine(config.engine_path)
        validate_request(request)

    return preflight


class PhaseOrchestrator:
    """Run operator-selected migration phases against one configuration."""

    def __init__(
        self,
        config: MigrationConfig,
        *,
        runner: EngineRunner | None = None,
        history: RunHistoryStore | None = None,
        fallback: SnapshotFallbackManager | None = None,
        notifier: Notifier | None = None,
        confirm: ConfirmationPrompt = decline,
        preflight: Callable[[RunRequest], None] | None = None,
        output: OutputSink | None = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.config = config
        self.runner = runner or EngineRunner(config)
        self.history = history or RunHistoryStore(config.history_path)
        self.fallback = fallback
        self.notifier = notifier or NullNotifier()
        self.confirm = confirm
        self.preflight = preflight or default_preflight(config)
        self.output = output
        self.now = now
        self.logger = logger.bind(component="phase_orchestrator")

    def build_request(self, phase: Phase, preview: bool = False) -> RunRequest:
        """Resolve effective paths and options for a phase."""
        source, destination = self.config.source_path, self.config.destination_path
        if phase.reverses_direction:
            source, destination = destination, source
        return RunRequest(
            phase=phase,
            source=source,
            destination=destination,
            dry_run=preview,
            custom_options=self.config.options_for(phase),
        )

    def log_path_for(self, phase: Phase, append_log: bool) -> Path:
        """Stable log per phase when appending, otherwise one log per run."""
        log_dir = Path(self.config.log_dir)
        if append_log:
            return log_dir / f"{phase.value.lower()}.log"
        return log_dir / f"{phase.value.lower()}_{self.now().strftime('%Y%m%d_%H%M%S')}.log"

    async def run_phase(
        self, phase: Phase, options: OrchestratorOptions | None = None
    ) -> PhaseOutcome:
        """Gate, execute, record and report one phase.

        Args:
            phase: Operator-selected phase
            options: Preview, confirmation and override choices

        Returns:
            PhaseOutcome describing whether the engine ran and how it ended

        Raises:
            ValidationFailure: If paths or the engine fail pre-run checks
        """
        options = options or OrchestratorOptions()
        log = self.logger.bind(phase=phase.value, preview=options.preview)

        gate = self._check_gates(phase, options)
        if gate is not None:
            log.warning("Phase not started", status=gate.status.value, reason=gate.message)
            return gate

        request = self.build_request(phase, options.preview)
        self.preflight(request)

        append_log = self.config.append_log if options.append_log is None else options.append_log
        log_path = self.log_path_for(phase, append_log)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        report = await self.runner.execute(
            request,
            log_path,
            append_log=append_log,
            force_backup_mode=options.force_backup_mode,
            output=self.output,
        )
        log.info(
            "Phase completed",
            exit_code=report.exit_code,
            success=report.success,
            timed_out=report.timed_out,
            failed_files=report.failed_files,
        )

        fallback_report = None
        if self.fallback and SnapshotFallbackManager.should_retry(report, options.snapshot_fallback):
            try:
                fallback_report = await self.fallback.retry(
                    request,
                    log_path,
                    force_backup_mode=options.force_backup_mode,
                    output=self.output,
                )
            except MigrateCtlError as e:
                log.error("Snapshot retry failed, keeping original result", error=str(e))

        outcome = PhaseOutcome(
            status=OutcomeStatus.COMPLETED, report=report, fallback_report=fallback_report
        )
        if not request.dry_run:
            self._record(report, fallback_report)
            await self._notify(outcome.final_report)
        return outcome

    def _check_gates(self, phase: Phase, options: OrchestratorOptions) -> PhaseOutcome | None:
        """Return an outcome that stops the phase, or None when it may run."""
        if phase is Phase.RECONCILE and not options.preview:
            question = (
                f"RECONCILE copies {self.config.destination_path} back onto "
                f"{self.config.source_path}. Continue?"
            )
            if not self.confirm(question):
                return PhaseOutcome(
                    status=OutcomeStatus.CANCELLED, message="RECONCILE declined by operator"
                )

        if phase is Phase.MIRROR:
            if not self.history.has_succeeded(Phase.RECONCILE):
                self.logger.warning(
                    "No RECONCILE run recorded before MIRROR",
                    history_path=str(self.history.path),
                )
                if not options.override_reconcile_gate and not self.confirm(
                    "No RECONCILE has been recorded. MIRROR deletes destination files that are "
                    "missing from the source. Proceed anyway?"
                ):
                    return PhaseOutcome(
                        status=OutcomeStatus.NOT_CONFIRMED,
                        message="MIRROR requires a prior RECONCILE or an explicit override",
                    )

            if not options.preview and not options.confirm_execution:
                return PhaseOutcome(
                    status=OutcomeStatus.NOT_CONFIRMED,
                    message="MIRROR requires the execution confirmation flag outside preview",
                )
        return None

    def _record(self, report: RunReport, fallback_report: RunReport | None) -> None:
        """Append the primary run, and the snapshot retry if there was one."""
        try:
            self.history.append(report)
            if fallback_report is not None:
                self.history.append(fallback_report)
        except HistoryStoreFailure as e:
            self.logger.error("Failed to record run history", error=str(e))
            raise

    async def _notify(self, report: RunReport | None) -> None:
        if report is None:
            return
        try:
            await self.notifier.notify(report)
        except NotificationFailure as e:
            self.logger.error("Notification failed", error=str(e))
