"""Data models for migratectl."""

from .enums import NotifyPolicyLiteral, PathTopology, Phase
from .run import (
    LastRunSummary,
    MigrateModel,
    ReportStatistics,
    RunHistory,
    RunReport,
    RunRequest,
    engine_succeeded,
)

__all__ = [
    "LastRunSummary",
    "MigrateModel",
    "NotifyPolicyLiteral",
    "PathTopology",
    "Phase",
    "ReportStatistics",
    "RunHistory",
    "RunReport",
    "RunRequest",
    "engine_succeeded",
]
