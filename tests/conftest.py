# tests/conftest.py
# @ai-rules:
# 1. [Constraint]: No real cluster, no real Telegram. StubWorkloads + RecordingNotifier stand in.
# 2. [Pattern]: Deployments are built from real kubernetes.client models so attribute access matches production.
"""Shared stubs and fixtures for relay tests."""
from __future__ import annotations

from typing import Optional

import pytest
from kubernetes import client

from relay.cluster.updater import WorkloadUpdater
from relay.cluster.workloads import HealthStatus
from relay.context import RelayContext
from relay.state.pending import PendingTracker
from relay.state.targets import ResolvedTarget, TargetRegistry, TargetSpec

AUTH = ResolvedTarget("backend", "auth-service")
ORDERS = ResolvedTarget("backend", "orders-service")


def make_deployment(
    name: str,
    containers: Optional[list[tuple[str, str]]] = None,
    replicas: Optional[int] = 1,
    ready: Optional[int] = None,
    available: Optional[int] = None,
    updated: Optional[int] = None,
    status_replicas: Optional[int] = None,
    generation: Optional[int] = None,
    observed_generation: Optional[int] = None,
) -> client.V1Deployment:
    """
    Build a V1Deployment with the given (name, image) containers and replica counts.

    status_replicas defaults to replicas; set it higher to model surge pods.
    """
    if containers is None:
        containers = [(name, f"registry.example/{name}:v1")]
    return client.V1Deployment(
        metadata=client.V1ObjectMeta(name=name, generation=generation),
        spec=client.V1DeploymentSpec(
            replicas=replicas,
            selector=client.V1LabelSelector(match_labels={"app": name}),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(labels={"app": name}),
                spec=client.V1PodSpec(
                    containers=[client.V1Container(name=c, image=img) for c, img in containers],
                ),
            ),
        ),
        status=client.V1DeploymentStatus(
            replicas=replicas if status_replicas is None else status_replicas,
            ready_replicas=ready,
            available_replicas=available,
            updated_replicas=updated,
            observed_generation=observed_generation,
        ),
    )


def make_status(target: ResolvedTarget, desired: int, ready: int) -> HealthStatus:
    return HealthStatus(
        target=target,
        desired_replicas=desired,
        ready_replicas=ready,
        available_replicas=ready,
        updated_replicas=ready,
    )


class StubWorkloads:
    """In-memory WorkloadClient replacement."""

    def __init__(self) -> None:
        self.deployments: dict[ResolvedTarget, client.V1Deployment] = {}
        self.statuses: dict[ResolvedTarget, HealthStatus | Exception] = {}
        self.patches: list[tuple[ResolvedTarget, list[dict]]] = []
        self.reads: list[ResolvedTarget] = []
        self.patch_error: Optional[Exception] = None

    async def read_deployment(self, target: ResolvedTarget) -> client.V1Deployment:
        if target not in self.deployments:
            raise client.ApiException(status=404, reason="Not Found")
        return self.deployments[target]

    async def read_status(self, target: ResolvedTarget) -> HealthStatus:
        self.reads.append(target)
        result = self.statuses.get(target)
        if result is None:
            raise client.ApiException(status=404, reason="Not Found")
        if isinstance(result, Exception):
            raise result
        return result

    async def patch_containers(self, target: ResolvedTarget, containers: list[dict]) -> None:
        if self.patch_error is not None:
            raise self.patch_error
        self.patches.append((target, containers))


class RecordingNotifier:
    """Captures notify() calls instead of sending them."""

    enabled = True

    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)

    async def aclose(self) -> None:
        pass


@pytest.fixture
def registry() -> TargetRegistry:
    return TargetRegistry([
        TargetSpec("auth-service", "backend", "auth-service"),
        TargetSpec("auth", "backend", "auth-service"),
        TargetSpec("orders-service", "backend", "orders-service"),
    ])


@pytest.fixture
def workloads() -> StubWorkloads:
    return StubWorkloads()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def context(registry: TargetRegistry, workloads: StubWorkloads, notifier: RecordingNotifier) -> RelayContext:
    return RelayContext(
        registry=registry,
        workloads=workloads,
        updater=WorkloadUpdater(workloads),
        notifier=notifier,
        pending=PendingTracker(),
    )
