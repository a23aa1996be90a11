"""Core exceptions for migratectl operations."""


class MigrateCtlError(Exception):
    """Base exception for migratectl operations."""


class ValidationFailure(MigrateCtlError):
    """A path, permission or engine precondition failed before any copy started."""


class ConfigurationError(MigrateCtlError):
    """Configuration validation or loading failed."""


class CommandError(MigrateCtlError):
    """A helper command exited unsuccessfully."""


class EngineFailure(MigrateCtlError):
    """The copy engine could not be launched or reported an irrecoverable failure."""


class SnapshotFailure(MigrateCtlError):
    """Snapshot creation, mounting or release failed."""


class HistoryStoreFailure(MigrateCtlError):
    """The persisted run history could not be read or written."""


class NotificationFailure(MigrateCtlError):
    """Delivering a run notification failed."""
