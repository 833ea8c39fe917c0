# relay/context.py
"""RelayContext -- the one object holding process-wide relay state.

Built in main.lifespan(), stored on app.state.relay, passed to the poller by
reference and to route handlers through get_context().
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from fastapi import HTTPException, Request

from .state.pending import PendingTracker
from .state.targets import TargetRegistry

if TYPE_CHECKING:
    from .channels.telegram import TelegramNotifier
    from .cluster.updater import WorkloadUpdater
    from .cluster.workloads import WorkloadClient


@dataclass
class RelayContext:
    registry: TargetRegistry
    workloads: "WorkloadClient"
    updater: "WorkloadUpdater"
    notifier: "TelegramNotifier"
    pending: PendingTracker = field(default_factory=PendingTracker)


async def get_context(request: Request) -> RelayContext:
    """FastAPI dependency."""
    context = getattr(request.app.state, "relay", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Relay not initialized")
    return context
