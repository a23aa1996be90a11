"""Backup privilege detection for choosing the engine's copy mode."""

import shutil

import structlog

from .exceptions import CommandError
from .subprocess_manager import run_command

logger = structlog.get_logger()

BACKUP_PRIVILEGE = "SeBackupPrivilege"


async def has_backup_privilege() -> bool:
    """Check whether the running principal holds the backup privilege.

    Evaluated on every call; privilege state can change between runs. Any probe
    failure is treated as "not held" so the engine falls back to restartable mode.
    """
    whoami = shutil.which("whoami")
    if whoami is None:
        logger.debug("whoami not available, assuming no backup privilege")
        return False

    try:
        result = await run_command([whoami, "/priv"], check=False)
    except CommandError as e:
        logger.warning("Privilege probe failed", error=str(e))
        return False

    if not result.success:
        logger.debug("Privilege probe returned non-zero", returncode=result.returncode)
        return False

    held = any(_privilege_name(line) == BACKUP_PRIVILEGE for line in result.stdout.splitlines())
    logger.debug("Backup privilege probed", held=held)
    return held


def _privilege_name(line: str) -> str:
    fields = line.split(maxsplit=1)
    return fields[0] if fields else ""
