# relay/cluster/workloads.py
# @ai-rules:
# 1. [Constraint]: Only module that talks to the Kubernetes API. Updater and poller go through WorkloadClient.
# 2. [Pattern]: kubernetes client is sync -- every call runs in the default executor under asyncio.wait_for.
# 3. [Gotcha]: Fresh Deployments report status.ready_replicas=None. Treat missing counts as 0.
# 4. [Gotcha]: Desired count is status.replicas (includes surge pods); spec.replicas only when status has none.
"""
Typed Kubernetes access for Deployments.

Reads rollout status and patches the pod template's container list.
"""
from __future__ import annotations

import asyncio
import functools
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from ..state.targets import ResolvedTarget

logger = logging.getLogger(__name__)

KUBECONFIG = os.getenv("KUBECONFIG", "")
RELAY_CLUSTER_TIMEOUT = float(os.getenv("RELAY_CLUSTER_TIMEOUT", "10"))

T = TypeVar("T")


class ClusterConfigError(RuntimeError):
    """No usable cluster credentials (fatal at startup)."""
    pass


class ClusterTimeout(TimeoutError):
    """A cluster API call exceeded its deadline."""
    pass


@dataclass
class HealthStatus:
    """Rollout status of one Deployment, computed fresh per poll."""
    target: ResolvedTarget
    desired_replicas: int
    ready_replicas: int
    available_replicas: int
    updated_replicas: int
    generation_observed: bool = True

    @property
    def is_healthy(self) -> bool:
        return self.ready_replicas == self.desired_replicas and self.desired_replicas > 0

    @property
    def is_rolled_out(self) -> bool:
        """Healthy on the latest observed template, with every counted pod updated."""
        return (
            self.generation_observed
            and self.is_healthy
            and self.updated_replicas >= self.desired_replicas
        )

    @classmethod
    def from_deployment(cls, target: ResolvedTarget, deployment: Any) -> "HealthStatus":
        spec = deployment.spec
        status = deployment.status
        # status.replicas counts surge pods too, so old ready pods alone never match it
        desired = status.replicas if status and status.replicas is not None else None
        if desired is None:
            desired = (spec.replicas if spec else None) or 0
        generation = deployment.metadata.generation if deployment.metadata else None
        observed_generation = status.observed_generation if status else None
        return cls(
            target=target,
            desired_replicas=desired,
            ready_replicas=(status.ready_replicas if status else None) or 0,
            available_replicas=(status.available_replicas if status else None) or 0,
            updated_replicas=(status.updated_replicas if status else None) or 0,
            generation_observed=generation is None or (
                observed_generation is not None and observed_generation >= generation
            ),
        )


def load_cluster_config(kubeconfig: str = KUBECONFIG) -> None:
    """
    Load cluster credentials.

    In-cluster service account first, then kubeconfig (explicit path or the
    default ~/.kube/config). Raises ClusterConfigError if neither works.
    """
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
        return
    except config.ConfigException:
        pass

    try:
        config.load_kube_config(config_file=kubeconfig or None)
        logger.info(f"Loaded kubeconfig{f' from {kubeconfig}' if kubeconfig else ''}")
    except (config.ConfigException, OSError) as e:
        raise ClusterConfigError(f"No Kubernetes credentials available: {e}") from e


class WorkloadClient:
    """Async facade over AppsV1Api for the operations the relay needs."""

    def __init__(
        self,
        apps_api: Optional[client.AppsV1Api] = None,
        timeout: float = RELAY_CLUSTER_TIMEOUT,
    ) -> None:
        self._apps_api = apps_api or client.AppsV1Api()
        self.timeout = timeout

    async def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        kwargs.setdefault("_request_timeout", self.timeout)
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, functools.partial(fn, *args, **kwargs)),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ClusterTimeout(
                f"{getattr(fn, '__name__', 'cluster call')} timed out after {self.timeout:.0f}s"
            ) from e

    async def read_deployment(self, target: ResolvedTarget) -> Any:
        return await self._call(
            self._apps_api.read_namespaced_deployment,
            name=target.workload,
            namespace=target.namespace,
        )

    async def read_status(self, target: ResolvedTarget) -> HealthStatus:
        deployment = await self.read_deployment(target)
        return HealthStatus.from_deployment(target, deployment)

    async def patch_containers(self, target: ResolvedTarget, containers: list[dict]) -> Any:
        """Strategic-merge patch of spec.template.spec.containers only."""
        body = {"spec": {"template": {"spec": {"containers": containers}}}}
        return await self._call(
            self._apps_api.patch_namespaced_deployment,
            name=target.workload,
            namespace=target.namespace,
            body=body,
        )


def describe_api_error(e: Exception) -> str:
    """Human-readable message for a cluster error, keeping status/reason for ApiException."""
    if isinstance(e, ApiException):
        detail = ""
        if e.body:
            try:
                detail = json.loads(e.body).get("message", "")
            except (ValueError, AttributeError):
                detail = str(e.body)[:200]
        summary = f"{e.status} {e.reason}".strip()
        return f"{summary}: {detail}" if detail else summary
    return str(e) or e.__class__.__name__
