# relay/cluster/__init__.py
"""Kubernetes touchpoint: Deployment status reads and image updates."""
from .updater import UpdateError, WorkloadUpdater
from .workloads import ClusterConfigError, ClusterTimeout, HealthStatus, WorkloadClient, load_cluster_config

__all__ = [
    "ClusterConfigError", "ClusterTimeout", "HealthStatus", "UpdateError",
    "WorkloadClient", "WorkloadUpdater", "load_cluster_config",
]
