"""Enum definitions for migratectl phases and path classification."""

from enum import Enum
from typing import Literal

# Type aliases
NotifyPolicyLiteral = Literal["always", "failure", "success", "never"]


class Phase(Enum):
    """Operator-selectable migration phases."""

    SEED = "SEED"
    SYNC = "SYNC"
    RECONCILE = "RECONCILE"
    MIRROR = "MIRROR"

    @property
    def reverses_direction(self) -> bool:
        """RECONCILE copies destination back onto source."""
        return self is Phase.RECONCILE

    @property
    def is_destructive(self) -> bool:
        """MIRROR deletes destination files absent from the source."""
        return self is Phase.MIRROR


class PathTopology(Enum):
    """Where a path lives, which drives its retry policy."""

    LOCAL = "local"
    NETWORK = "network"
