"""Pre-run checks that must pass before any copy is attempted."""

import os
import shutil
from pathlib import Path

import structlog

from ..models.enums import PathTopology
from ..models.run import RunRequest
from .exceptions import ValidationFailure
from .topology import classify_path

logger = structlog.get_logger()


def validate_engine(engine_path: str) -> str:
    """Resolve the engine binary.

    Raises:
        ValidationFailure: If the engine cannot be found
    """
    resolved = shutil.which(engine_path)
    if resolved is None and Path(engine_path).is_file():
        resolved = engine_path
    if resolved is None:
        raise ValidationFailure(f"Copy engine not found: {engine_path}")
    return resolved


def validate_request(request: RunRequest) -> None:
    """Check that the source is reachable and the destination is writable.

    Network paths are probed for reachability the same way as local ones; the
    failure message names the topology so operators can tell the two apart.

    Raises:
        ValidationFailure: If a path is unreachable or not writable
    """
    source = Path(request.source)
    if not source.is_dir():
        raise ValidationFailure(
            f"Source is not reachable ({classify_path(request.source).value}): {request.source}"
        )

    destination = Path(request.destination)
    target = destination if destination.exists() else destination.parent
    if not target.is_dir():
        raise ValidationFailure(
            f"Destination is not reachable ({classify_path(request.destination).value}): "
            f"{request.destination}"
        )
    # A list-only run never writes to the destination
    if not request.dry_run and not os.access(target, os.W_OK):
        raise ValidationFailure(f"No write access to destination: {target}")

    logger.debug(
        "Paths validated",
        source=request.source,
        destination=request.destination,
        network=PathTopology.NETWORK in (classify_path(request.source), classify_path(request.destination)),
    )
