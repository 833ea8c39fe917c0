# relay/observers/rollout.py
# @ai-rules:
# 1. [Constraint]: One task, one cycle at a time. The loop body finishes before the next sleep -- cycles never overlap.
# 2. [Pattern]: Per-target try/except. A broken target is logged and skipped; it never touches its pending entry.
# 3. [Pattern]: Success notice only when the target is rolled out AND clear_pending() reports the key WAS pending. Unhealthy targets stay silent.
# 4. [Gotcha]: RELAY_PENDING_TIMEOUT=0 (default) means pending entries never expire.
# 5. [Gotcha]: A read stamped before the mark (observed_at < marked_at) describes the old pods and never clears it.
"""
Rollout Health Poller.

Periodically reads every registered Deployment's rollout status and turns
the first rolled-out observation after an update into a single notification.
Runs independently of the webhook request/response cycle.
"""
from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import TYPE_CHECKING, Optional

from ..channels import formatter
from ..cluster.workloads import HealthStatus, describe_api_error

if TYPE_CHECKING:
    from ..context import RelayContext
    from ..state.targets import ResolvedTarget

logger = logging.getLogger(__name__)

RELAY_POLL_INTERVAL = float(os.getenv("RELAY_POLL_INTERVAL", "30"))
RELAY_PENDING_TIMEOUT = float(os.getenv("RELAY_PENDING_TIMEOUT", "0"))


class HealthPoller:
    """Background poller feeding rollout outcomes to the notifier."""

    def __init__(
        self,
        context: "RelayContext",
        interval: float = RELAY_POLL_INTERVAL,
        pending_timeout: float = RELAY_PENDING_TIMEOUT,
    ) -> None:
        """
        Args:
            context: Shared relay state (registry, tracker, workload client, notifier)
            interval: Seconds between the starts of consecutive cycles
            pending_timeout: Seconds before an unconverged update is reported; 0 disables
        """
        self.context = context
        self.interval = interval
        self.pending_timeout = pending_timeout

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._cycles = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def cycles(self) -> int:
        return self._cycles

    async def start(self) -> None:
        """Start the background polling loop."""
        if self._running:
            logger.warning("HealthPoller already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._polling_loop())
        timeout = f"{self.pending_timeout:.0f}s" if self.pending_timeout > 0 else "off"
        logger.info(
            f"HealthPoller started: {len(self.context.registry.targets())} targets, "
            f"interval={self.interval:.0f}s, pending_timeout={timeout}"
        )

    async def stop(self) -> None:
        """Stop the polling loop gracefully."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("HealthPoller stopped")

    async def _polling_loop(self) -> None:
        """Main polling loop - runs until stopped."""
        while self._running:
            started = time.monotonic()
            try:
                await self.poll_once()
            except Exception as e:
                logger.error(f"Rollout poll cycle failed: {e}")

            # Fixed cadence: subtract the time the cycle took
            elapsed = time.monotonic() - started
            try:
                await asyncio.sleep(max(0.0, self.interval - elapsed))
            except asyncio.CancelledError:
                break

    async def poll_once(self) -> list[HealthStatus]:
        """
        Run one cycle over every unique target in registry order.

        Returns the statuses that were read successfully.
        """
        self._cycles += 1
        observed: list[HealthStatus] = []
        failures = 0

        for target in self.context.registry.targets():
            observed_at = self.context.pending.now()
            try:
                status = await self.context.workloads.read_status(target)
            except Exception as e:
                failures += 1
                logger.warning(f"❌ Error checking {target}: {describe_api_error(e)}")
                continue

            observed.append(status)
            await self._evaluate(status, observed_at)

        logger.debug(
            f"Rollout poll #{self._cycles}: {len(observed)} checked, {failures} failed"
        )
        return observed

    async def _evaluate(self, status: HealthStatus, observed_at: float) -> None:
        target = status.target
        counts = f"{status.ready_replicas}/{status.desired_replicas}"

        if status.is_rolled_out:
            logger.debug(f"✅ {target}: {counts} ready")
            if await self.context.pending.clear_pending(target, observed_at):
                logger.info(f"✅ {target} rollout converged ({counts})")
                self.context.notifier.notify(formatter.rollout_healthy(status))
            return

        logger.debug(f"⚠️ {target}: {counts} ready")
        if self.pending_timeout > 0:
            await self._check_stalled(target, status)

    async def _check_stalled(self, target: "ResolvedTarget", status: HealthStatus) -> None:
        waited = await self.context.pending.expire(target, self.pending_timeout)
        if waited is None:
            return
        logger.warning(f"🚨 {target} did not converge within {self.pending_timeout:.0f}s")
        self.context.notifier.notify(formatter.rollout_stalled(status, waited))
