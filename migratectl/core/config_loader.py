"""Configuration management for migratectl."""

import os
from pathlib import Path
from typing import Any

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from ..models.enums import NotifyPolicyLiteral, Phase
from .exceptions import ConfigurationError

logger = structlog.get_logger()

DEFAULT_CONFIG_FILE = "config/migration.yml"
USER_CONFIG_FILE = Path.home() / ".config" / "migratectl" / "migration.yml"

# (field, bound field) pairs clamped to [1, bound]
_BOUNDED_FIELDS = (
    ("retry_count_local", "max_retry_count"),
    ("retry_count_network", "max_retry_count"),
    ("wait_seconds_local", "max_wait_seconds"),
    ("wait_seconds_network", "max_wait_seconds"),
)


class NotificationSettings(BaseModel):
    """SMTP delivery settings for run notifications."""

    model_config = {"frozen": True}

    policy: NotifyPolicyLiteral = "failure"
    smtp_host: str | None = None
    smtp_port: int = 25
    use_starttls: bool = False
    use_ssl: bool = False
    username: str | None = None
    password: str | None = None
    sender: str = "migratectl@localhost"
    recipients: tuple[str, ...] = ()
    timeout_seconds: int = 30

    @property
    def enabled(self) -> bool:
        return bool(self.smtp_host and self.recipients and self.policy != "never")


class MigrationConfig(BaseSettings):
    """Immutable per-process migration settings."""

    source_path: str = ""
    destination_path: str = ""
    engine_path: str = "robocopy"

    threads: int = Field(default=16, ge=1, le=128)
    preserve_acls: bool = True
    throttle_ipg_ms: int = Field(default=0, ge=0)
    exclude_dirs: tuple[str, ...] = ()
    exclude_files: tuple[str, ...] = ()

    retry_count_local: int = 3
    wait_seconds_local: int = 5
    retry_count_network: int = 10
    wait_seconds_network: int = 30
    max_retry_count: int = Field(default=100, ge=1)
    max_wait_seconds: int = Field(default=300, ge=1)

    watchdog_enabled: bool = True
    watchdog_idle_timeout_seconds: float = Field(default=1800.0, gt=0)

    use_backup_mode: bool = True
    append_log: bool = False

    log_dir: str = "logs"
    history_path: str = "migration_history.json"
    snapshot_mount_dir: str = r"C:\ProgramData\migratectl\snapshots"

    phase_options: dict[Phase, str] = Field(default_factory=dict)
    notification: NotificationSettings = Field(default_factory=NotificationSettings)

    config_file: str = Field(default=DEFAULT_CONFIG_FILE, alias="MIGRATECTL_CONFIG")

    model_config = SettingsConfigDict(
        env_prefix="MIGRATECTL_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over values read from YAML files
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @model_validator(mode="before")
    @classmethod
    def _clamp_retry_bounds(cls, data: Any) -> Any:
        """Clamp retry counts and wait intervals into [1, configured maximum]."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        for field_name, bound_name in _BOUNDED_FIELDS:
            upper = int(data.get(bound_name, cls.model_fields[bound_name].default))
            value = int(data.get(field_name, cls.model_fields[field_name].default))
            clamped = min(max(value, 1), max(upper, 1))
            if clamped != value:
                logger.warning(
                    "Configuration value out of bounds, clamping",
                    field=field_name,
                    value=value,
                    clamped=clamped,
                    maximum=upper,
                )
            data[field_name] = clamped
        return data

    def options_for(self, phase: Phase) -> str:
        """Custom option string configured for a phase."""
        return self.phase_options.get(phase, "")


def load_config(config_path: str | None = None) -> MigrationConfig:
    """Load configuration from the user file, the project file and the environment.

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If a config file cannot be parsed or fails validation
    """
    load_dotenv()

    merged: dict[str, Any] = {}
    merged.update(_load_yaml_config(USER_CONFIG_FILE))

    project_config_path = Path(
        config_path or os.getenv("MIGRATECTL_CONFIG", DEFAULT_CONFIG_FILE)
    )
    merged.update(_load_yaml_config(project_config_path))
    merged["config_file"] = str(project_config_path)

    try:
        return MigrationConfig(**merged)
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration in {project_config_path}: {e}") from e


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load a YAML configuration file, returning an empty mapping when it is absent."""
    if not config_path.exists():
        return {}

    try:
        loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {e}") from e

    if not isinstance(loaded, dict):
        return {}
    return loaded
