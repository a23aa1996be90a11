"""Idle watchdog deciding when a silent engine should be cancelled.

The engine has no progress API, so growth of its log file is the liveness signal.
Clock and size sampling are injected so the decision logic runs without real timers
or files.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path


@dataclass
class WatchdogState:
    """Last observed log size and when it last grew."""

    last_size: int
    last_growth_at: float


def file_size(path: Path) -> int:
    """Size of a file in bytes, 0 while it does not exist yet."""
    try:
        return path.stat().st_size
    except FileNotFoundError:
        return 0


class IdleWatchdog:
    """Track log growth and report when idle time exceeds the timeout."""

    def __init__(
        self,
        timeout_seconds: float | None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self.state: WatchdogState | None = None

    @property
    def enabled(self) -> bool:
        return self.timeout_seconds is not None and self.timeout_seconds > 0

    def start(self, initial_size: int) -> None:
        """Begin tracking from the size observed at launch."""
        self.state = WatchdogState(last_size=initial_size, last_growth_at=self.clock())

    def observe(self, size: int) -> float:
        """Record a size sample and return the current idle duration in seconds."""
        now = self.clock()
        if self.state is None:
            self.state = WatchdogState(last_size=size, last_growth_at=now)
            return 0.0

        if size > self.state.last_size:
            self.state.last_size = size
            self.state.last_growth_at = now
            return 0.0

        if size < self.state.last_size:
            # Truncated or replaced: treat as fresh output
            self.state.last_size = size
            self.state.last_growth_at = now
            return 0.0

        return now - self.state.last_growth_at

    def expired(self, size: int) -> bool:
        """Sample the size and report whether idle time has exceeded the timeout."""
        idle = self.observe(size)
        return self.enabled and idle > self.timeout_seconds
