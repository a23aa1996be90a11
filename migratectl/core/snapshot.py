"""Point-in-time snapshot retry for files that were locked during the primary copy."""

from dataclasses import dataclass
from pathlib import Path, PureWindowsPath
from typing import Protocol

import structlog

from ..models.enums import PathTopology
from ..models.run import RunReport, RunRequest
from .engine import EngineRunner
from .exceptions import CommandError, SnapshotFailure
from .subprocess_manager import run_command
from .supervisor import OutputSink
from .topology import classify_path

logger = structlog.get_logger()

SNAPSHOT_LOG_SUFFIX = "_snapshot"


@dataclass(frozen=True)
class Snapshot:
    """A read-only snapshot and the path exposing its volume root."""

    snapshot_id: str
    volume: str
    root: str


class SnapshotProvider(Protocol):
    """Creates and releases read-only volume snapshots."""

    async def create(self, volume: str) -> Snapshot: ...

    async def release(self, snapshot: Snapshot) -> None: ...


def _ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class VssSnapshotProvider:
    """Volume Shadow Copy snapshots exposed through a directory symlink."""

    def __init__(self, mount_dir: str, powershell: str = "powershell"):
        self.mount_dir = mount_dir
        self.powershell = powershell
        self.logger = logger.bind(component="vss_snapshot")

    async def _powershell(self, script: str) -> str:
        result = await run_command(
            [self.powershell, "-NoProfile", "-NonInteractive", "-Command", script]
        )
        return result.stdout.strip()

    async def create(self, volume: str) -> Snapshot:
        """Create a shadow copy of a volume and link it under the mount directory.

        Raises:
            SnapshotFailure: If the shadow copy cannot be created or exposed
        """
        script = (
            "$r = Invoke-CimMethod -ClassName Win32_ShadowCopy -MethodName Create "
            f"-Arguments @{{Volume={_ps_quote(volume)}; Context='ClientAccessible'}}; "
            "if ($r.ReturnValue -ne 0) { exit [int]$r.ReturnValue }; "
            "$s = Get-CimInstance Win32_ShadowCopy | Where-Object { $_.ID -eq $r.ShadowID }; "
            'Write-Output "$($s.ID)|$($s.DeviceObject)"'
        )
        self.logger.info("Creating volume snapshot", volume=volume)
        try:
            output = await self._powershell(script)
        except CommandError as e:
            raise SnapshotFailure(f"Failed to create snapshot of {volume}: {e}") from e

        snapshot_id, _, device = output.splitlines()[-1].partition("|") if output else ("", "", "")
        if not snapshot_id or not device:
            raise SnapshotFailure(f"Unexpected snapshot output for {volume}: {output!r}")

        link = str(PureWindowsPath(self.mount_dir) / f"snap_{snapshot_id.strip('{}')}")
        snapshot = Snapshot(snapshot_id=snapshot_id, volume=volume, root=link)
        try:
            Path(self.mount_dir).mkdir(parents=True, exist_ok=True)
            await run_command(["cmd", "/c", "mklink", "/d", link, device.rstrip("\\") + "\\"])
        except (OSError, CommandError) as e:
            try:
                await self._delete_shadow(snapshot_id)
            except CommandError as cleanup_error:
                self.logger.error(
                    "Failed to delete unexposed snapshot",
                    snapshot_id=snapshot_id,
                    error=str(cleanup_error),
                )
            raise SnapshotFailure(f"Failed to expose snapshot {snapshot_id}: {e}") from e

        self.logger.info("Snapshot created", snapshot_id=snapshot_id, root=link)
        return snapshot

    async def release(self, snapshot: Snapshot) -> None:
        """Remove the snapshot link and delete the shadow copy."""
        errors: list[str] = []
        try:
            await run_command(["cmd", "/c", "rmdir", snapshot.root])
        except CommandError as e:
            errors.append(str(e))
        try:
            await self._delete_shadow(snapshot.snapshot_id)
        except CommandError as e:
            errors.append(str(e))

        if errors:
            raise SnapshotFailure(f"Failed to release snapshot {snapshot.snapshot_id}: {'; '.join(errors)}")
        self.logger.info("Snapshot released", snapshot_id=snapshot.snapshot_id)

    async def _delete_shadow(self, snapshot_id: str) -> None:
        await self._powershell(
            "Get-CimInstance Win32_ShadowCopy | "
            f"Where-Object {{ $_.ID -eq {_ps_quote(snapshot_id)} }} | Remove-CimInstance"
        )


def split_volume(path: str) -> tuple[str, str]:
    """Split a local path into its volume root and the path beneath it.

    Raises:
        SnapshotFailure: If the path is network-addressed or has no volume root
    """
    if classify_path(path) is PathTopology.NETWORK:
        raise SnapshotFailure(f"Cannot snapshot a network path: {path}")

    pure = PureWindowsPath(path)
    if not pure.drive:
        raise SnapshotFailure(f"Path has no volume root: {path}")
    volume = pure.drive + "\\"
    return volume, str(pure.relative_to(pure.anchor))


def snapshot_source(snapshot: Snapshot, relative: str) -> str:
    """Rewrite a relative path onto the snapshot's exposed root."""
    if relative in ("", "."):
        return snapshot.root
    return str(PureWindowsPath(snapshot.root) / relative)


def snapshot_log_path(log_path: Path) -> Path:
    """Separate log for the snapshot retry next to the primary log."""
    log_path = Path(log_path)
    return log_path.with_name(f"{log_path.stem}{SNAPSHOT_LOG_SUFFIX}{log_path.suffix}")


class SnapshotFallbackManager:
    """Retry a run whose files failed against a snapshot of its source volume."""

    def __init__(self, provider: SnapshotProvider, runner: EngineRunner):
        self.provider = provider
        self.runner = runner
        self.logger = logger.bind(component="snapshot_fallback")

    @staticmethod
    def should_retry(report: RunReport, enabled: bool) -> bool:
        """Only completed, non-dry-run runs with failed files are retried."""
        return enabled and not report.dry_run and not report.timed_out and report.failed_files > 0

    async def retry(
        self,
        request: RunRequest,
        primary_log: Path,
        *,
        force_backup_mode: bool = False,
        output: OutputSink | None = None,
    ) -> RunReport | None:
        """Run the request again with its source rewritten onto a fresh snapshot.

        Args:
            request: The request whose run reported failed files
            primary_log: Log of the primary attempt, used to name the retry log
            force_backup_mode: Passed through to the engine runner
            output: Receives engine log lines from the retry

        Returns:
            RunReport of the retry, or None when no snapshot could be taken
        """
        try:
            volume, relative = split_volume(request.source)
            snapshot = await self.provider.create(volume)
        except SnapshotFailure as e:
            self.logger.error("Snapshot unavailable, keeping original result", error=str(e))
            return None

        try:
            retry_request = request.model_copy(update={"source": snapshot_source(snapshot, relative)})
            self.logger.info(
                "Retrying against snapshot",
                phase=request.phase.value,
                snapshot_source=retry_request.source,
            )
            report = await self.runner.execute(
                retry_request,
                snapshot_log_path(primary_log),
                force_backup_mode=force_backup_mode,
                output=output,
                snapshot_retry=True,
            )
            # Report against the real source, not the temporary snapshot mount
            return report.model_copy(update={"source": request.source})
        finally:
            try:
                await self.provider.release(snapshot)
            except SnapshotFailure as e:
                self.logger.error(
                    "Snapshot release failed", snapshot_id=snapshot.snapshot_id, error=str(e)
                )
