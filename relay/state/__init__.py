# relay/state/__init__.py
"""In-memory state for the relay: target table and pending updates."""
from .pending import PendingTracker
from .targets import ResolvedTarget, TargetConfigError, TargetRegistry, TargetSpec

__all__ = ["PendingTracker", "ResolvedTarget", "TargetConfigError", "TargetRegistry", "TargetSpec"]
