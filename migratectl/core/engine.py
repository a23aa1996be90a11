"""Execute one resolved run request through the copy engine."""

from collections.abc import Awaitable, Callable
from pathlib import Path

import structlog

from ..models.run import RunReport, RunRequest
from .command_builder import build_arguments, render_command_line
from .config_loader import MigrationConfig
from .privilege import has_backup_privilege
from .report_parser import parse_report_file
from .supervisor import OutputSink, ProcessSupervisor
from .topology import classify_pair
from .watchdog import file_size

logger = structlog.get_logger()


class EngineRunner:
    """Build arguments, supervise the engine and turn its log into a RunReport."""

    def __init__(
        self,
        config: MigrationConfig,
        supervisor: ProcessSupervisor | None = None,
        privilege_probe: Callable[[], Awaitable[bool]] = has_backup_privilege,
    ):
        self.config = config
        self.supervisor = supervisor or ProcessSupervisor()
        self.privilege_probe = privilege_probe
        self.logger = logger.bind(component="engine_runner")

    async def resolve_backup_mode(self, force_backup_mode: bool = False) -> bool:
        """Decide between backup-capable and plain restartable copy mode for this run."""
        if force_backup_mode:
            return True
        if not self.config.use_backup_mode:
            return False
        return await self.privilege_probe()

    async def execute(
        self,
        request: RunRequest,
        log_path: Path,
        *,
        append_log: bool = False,
        force_backup_mode: bool = False,
        output: OutputSink | None = None,
        snapshot_retry: bool = False,
    ) -> RunReport:
        """Run the engine once for a request.

        Args:
            request: Resolved phase, paths and dry-run flag
            log_path: Engine report destination
            append_log: Append to the log instead of overwriting it
            force_backup_mode: Use backup mode without probing for the privilege
            output: Receives engine log lines as they are written
            snapshot_retry: Mark the report as a snapshot fallback attempt

        Returns:
            RunReport combining exit status and parsed statistics
        """
        topology = classify_pair(request.source, request.destination)
        backup_mode = await self.resolve_backup_mode(force_backup_mode)
        arguments = build_arguments(
            request,
            topology,
            self.config,
            log_path=str(log_path),
            backup_mode=backup_mode,
            append_log=append_log,
        )
        command_line = render_command_line(self.config.engine_path, arguments)
        log_offset = file_size(Path(log_path)) if append_log else 0

        self.logger.info(
            "Executing phase",
            phase=request.phase.value,
            source=request.source,
            destination=request.destination,
            topology=topology.value,
            backup_mode=backup_mode,
            dry_run=request.dry_run,
        )

        idle_timeout = (
            self.config.watchdog_idle_timeout_seconds if self.config.watchdog_enabled else None
        )
        supervised = await self.supervisor.run(
            command_line, log_path, idle_timeout=idle_timeout, output=output
        )

        return RunReport.from_run(
            request,
            start_time=supervised.started_at,
            duration_seconds=supervised.duration_seconds,
            exit_code=supervised.exit_code,
            log_path=str(log_path),
            statistics=parse_report_file(log_path, log_offset),
            timed_out=supervised.timed_out,
            snapshot_retry=snapshot_retry,
        )
