# relay/observers/__init__.py
"""
Relay observer modules.

Observers watch the cluster on their own timer, independent of the
request/response cycle.
"""
from .rollout import HealthPoller

__all__ = ["HealthPoller"]
