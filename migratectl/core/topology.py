"""Path topology classification and retry policy selection."""

from dataclasses import dataclass

from ..models.enums import PathTopology
from .config_loader import MigrationConfig

NETWORK_PREFIXES = ("\\\\", "//")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget passed to the engine."""

    retries: int
    wait_seconds: int


def classify_path(path: str) -> PathTopology:
    """Classify a path as network-addressed (UNC) or local by its prefix."""
    if path.strip().startswith(NETWORK_PREFIXES):
        return PathTopology.NETWORK
    return PathTopology.LOCAL


def classify_pair(source: str, destination: str) -> PathTopology:
    """A run is network-bound when either end is network-addressed."""
    if PathTopology.NETWORK in (classify_path(source), classify_path(destination)):
        return PathTopology.NETWORK
    return PathTopology.LOCAL


def resolve_retry_policy(topology: PathTopology, config: MigrationConfig) -> RetryPolicy:
    """Select retry count and wait interval for a topology.

    Local values are already clamped to [1, max] by the configuration. Network values
    are additionally floored at the local values so a network transfer never gets a
    smaller retry budget than a local one.
    """
    if topology is PathTopology.NETWORK:
        return RetryPolicy(
            retries=max(config.retry_count_network, config.retry_count_local),
            wait_seconds=max(config.wait_seconds_network, config.wait_seconds_local),
        )
    return RetryPolicy(retries=config.retry_count_local, wait_seconds=config.wait_seconds_local)
