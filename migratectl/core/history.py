"""Persisted run history gating destructive phases."""

import json
import os
from pathlib import Path
from tempfile import NamedTemporaryFile

import structlog
from pydantic import ValidationError

from ..models.enums import Phase
from ..models.run import RunHistory, RunReport
from .exceptions import HistoryStoreFailure

logger = structlog.get_logger()


class RunHistoryStore:
    """Append-only JSON run history, rewritten wholesale by atomic replace.

    There is no cross-process locking; a single orchestrator per history file is assumed.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.logger = logger.bind(component="run_history", path=str(self.path))

    def load(self) -> RunHistory:
        """Read the history; an absent or unreadable store is treated as empty.

        A corrupt store weakens the RECONCILE-before-MIRROR gate, so it is
        reported at error level rather than silently ignored.
        """
        if not self.path.exists():
            return RunHistory()

        try:
            return self.read()
        except HistoryStoreFailure as e:
            self.logger.error(
                "RUN HISTORY UNREADABLE - treating as empty; phase safety gates are weakened",
                error=str(e),
            )
            return RunHistory()

    def read(self) -> RunHistory:
        """Read the history strictly.

        Raises:
            HistoryStoreFailure: If the file cannot be read or parsed
        """
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return RunHistory.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise HistoryStoreFailure(f"Failed to read run history {self.path}: {e}") from e

    def has_succeeded(self, phase: Phase | str) -> bool:
        """True when any entry exists for the phase, regardless of that entry's outcome."""
        return self.load().contains_phase(Phase(phase) if isinstance(phase, str) else phase)

    def append(self, report: RunReport) -> RunHistory:
        """Append a report and write the full history back atomically.

        Raises:
            HistoryStoreFailure: If the history cannot be written
        """
        history = self.load().appended(report)
        self._write(history)
        self.logger.info(
            "Run recorded",
            phase=report.phase.value,
            success=report.success,
            entries=len(history.runs),
        )
        return history

    def _write(self, history: RunHistory) -> None:
        payload = json.dumps(history.model_dump(), indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with NamedTemporaryFile(
                "w", delete=False, encoding="utf-8", dir=str(self.path.parent), suffix=".tmp"
            ) as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
                tmp_path = Path(handle.name)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise HistoryStoreFailure(f"Failed to write run history {self.path}: {e}") from e
