# relay/state/pending.py
# @ai-rules:
# 1. [Pattern]: All access guarded by asyncio.Lock. One call == one atomic step.
# 2. [Pattern]: clear_pending returns whether the key was present -- the poller uses it as check-and-clear.
# 3. [Constraint]: Writers are the webhook path (mark) and the poller (clear/expire). Nothing else mutates.
# 4. [Gotcha]: Pass observed_at (taken from now() before the cluster read) so a stale read cannot clear a newer mark.
"""Pending-Update Tracker -- targets awaiting a healthy rollout after an image update."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from .targets import ResolvedTarget

logger = logging.getLogger(__name__)


class PendingTracker:
    """In-memory set of targets with an update in flight."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._pending: dict[ResolvedTarget, float] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def now(self) -> float:
        """Current reading of the tracker's clock, for stamping observations."""
        return self._clock()

    async def mark_pending(self, key: ResolvedTarget) -> None:
        """Idempotent on membership. Re-marking restarts the entry's clock."""
        async with self._lock:
            if key in self._pending:
                logger.debug("Target %s already pending, new update accepted", key)
            else:
                logger.info("Target %s marked pending", key)
            self._pending[key] = self._clock()

    async def is_pending(self, key: ResolvedTarget) -> bool:
        async with self._lock:
            return key in self._pending

    async def clear_pending(self, key: ResolvedTarget, observed_at: float | None = None) -> bool:
        """
        Remove *key* and report whether it was present.

        With *observed_at*, the entry is only removed if it was marked no
        later than that moment; an observation that began before the update
        was accepted cannot clear it.
        """
        async with self._lock:
            marked_at = self._pending.get(key)
            if marked_at is None:
                return False
            if observed_at is not None and observed_at < marked_at:
                logger.debug("Target %s observed before its update, kept pending", key)
                return False
            del self._pending[key]
            logger.info("Target %s cleared from pending", key)
            return True

    async def expire(self, key: ResolvedTarget, timeout: float) -> float | None:
        """
        Remove *key* if it has been pending for at least *timeout* seconds.

        Returns how long it was pending, or None if it was kept (or absent).
        """
        async with self._lock:
            since = self._pending.get(key)
            if since is None:
                return None
            age = self._clock() - since
            if age < timeout:
                return None
            del self._pending[key]
            logger.warning("Target %s expired from pending after %.0fs", key, age)
            return age

    async def pending(self) -> list[ResolvedTarget]:
        async with self._lock:
            return list(self._pending)
