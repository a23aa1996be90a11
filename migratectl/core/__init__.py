"""Core migration control plane components."""
