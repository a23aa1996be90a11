"""Supervisor timing configuration for migratectl.

Provides centralized polling and termination timings using Pydantic BaseSettings
with environment variable support for operational tuning.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupervisorSettings(BaseSettings):
    """Engine supervision timing configuration."""

    poll_interval_seconds: float = Field(
        2.0,
        alias="SUPERVISOR_POLL_INTERVAL",
        gt=0,
        description="Interval between exit checks and log size samples in seconds",
    )

    terminate_grace_seconds: float = Field(
        10.0,
        alias="SUPERVISOR_TERMINATE_GRACE",
        ge=0,
        description="Time to wait for the engine to exit after a termination request",
    )

    tail_debounce_ms: int = Field(
        200, alias="SUPERVISOR_TAIL_DEBOUNCE_MS", ge=0, description="Log change debounce in ms"
    )

    helper_command_timeout: float = Field(
        120.0,
        alias="HELPER_COMMAND_TIMEOUT",
        gt=0,
        description="Timeout for privilege probes and snapshot tooling in seconds",
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


# Global settings instance
supervisor_settings = SupervisorSettings()

# Timing constants for easy import
POLL_INTERVAL_SECONDS: float = supervisor_settings.poll_interval_seconds
TERMINATE_GRACE_SECONDS: float = supervisor_settings.terminate_grace_seconds
TAIL_DEBOUNCE_MS: int = supervisor_settings.tail_debounce_ms
HELPER_COMMAND_TIMEOUT: float = supervisor_settings.helper_command_timeout
