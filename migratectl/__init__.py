"""Phase-based bulk data migration control plane around the robocopy engine."""

__version__ = "0.1.0"
