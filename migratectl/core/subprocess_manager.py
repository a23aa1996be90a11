"""Helper command execution with proper resource handling.

Used for short-lived tooling around the engine (privilege probes, snapshot
management). The long-running engine itself is run by ``supervisor``.
"""

import asyncio
import os
from typing import Any

import structlog

from .exceptions import CommandError
from .settings import HELPER_COMMAND_TIMEOUT, TERMINATE_GRACE_SECONDS

logger = structlog.get_logger()


class SubprocessResult:
    """Result of a helper command execution."""

    def __init__(self, returncode: int, stdout: str, stderr: str, cmd: list[str]):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.cmd = cmd

    @property
    def success(self) -> bool:
        """Check if the command succeeded."""
        return self.returncode == 0

    def check_returncode(self) -> None:
        """Raise an exception if the command failed."""
        if self.returncode != 0:
            error_msg = self.stderr.strip() or self.stdout.strip() or "Command failed"
            raise CommandError(f"Command failed with exit code {self.returncode}: {error_msg}")


async def run_command(
    cmd: list[str],
    *,
    timeout: float | None = None,
    check: bool = True,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
) -> SubprocessResult:
    """Run a helper command and capture its text output.

    Args:
        cmd: Command and arguments as a list
        timeout: Timeout in seconds (default: HELPER_COMMAND_TIMEOUT)
        check: Raise CommandError if the command exits non-zero
        cwd: Working directory for the command
        env: Environment variables

    Returns:
        SubprocessResult with returncode, stdout, and stderr

    Raises:
        CommandError: If the command cannot be started, fails with check=True, or times out
    """
    if timeout is None:
        timeout = HELPER_COMMAND_TIMEOUT

    logger.debug("Executing command", command=" ".join(cmd), timeout=timeout, cwd=cwd)

    kwargs: dict[str, Any] = {
        "cwd": cwd,
        "env": env or os.environ.copy(),
        "stdout": asyncio.subprocess.PIPE,
        "stderr": asyncio.subprocess.PIPE,
    }

    try:
        process = await asyncio.create_subprocess_exec(*cmd, **kwargs)
    except OSError as e:
        raise CommandError(f"Failed to start {cmd[0]}: {e}") from e

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(
            "Command timed out, terminating process",
            command=" ".join(cmd),
            timeout=timeout,
            pid=process.pid,
        )
        await _terminate(process)
        raise CommandError(f"Command timed out after {timeout} seconds: {' '.join(cmd)}") from None

    result = SubprocessResult(
        returncode=process.returncode or 0,
        stdout=stdout_bytes.decode(errors="replace") if stdout_bytes else "",
        stderr=stderr_bytes.decode(errors="replace") if stderr_bytes else "",
        cmd=cmd,
    )

    if check:
        result.check_returncode()
    return result


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Terminate a helper process, killing it if it ignores the request."""
    try:
        process.terminate()
        await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("Process did not terminate gracefully, killing", pid=process.pid)
        process.kill()
        await process.wait()
    except ProcessLookupError:
        # Process already terminated
        pass
