# relay/cluster/updater.py
# @ai-rules:
# 1. [Pattern]: Read-then-patch. Only the primary container's image changes; the patch carries {name, image} and nothing else.
# 2. [Constraint]: No retry. Every failure surfaces as UpdateError with the cluster message preserved.
# 3. [Gotcha]: Patch is sent even when the image is already current -- the API server treats it as a no-op.
"""Workload Updater -- points a Deployment's primary container at a new image."""
from __future__ import annotations

import logging
from typing import Any, Optional

from ..state.targets import ResolvedTarget
from .workloads import WorkloadClient, describe_api_error

logger = logging.getLogger(__name__)

DEFAULT_TAG = "latest"


class UpdateError(Exception):
    """The cluster rejected or failed the image update."""

    def __init__(self, target: ResolvedTarget, message: str) -> None:
        super().__init__(message)
        self.target = target
        self.message = message


def image_reference(image: str, tag: Optional[str]) -> str:
    return f"{image}:{tag or DEFAULT_TAG}"


def select_primary_container(containers: list[Any], workload: str) -> Any:
    """Container named after the workload, else the first one."""
    for container in containers:
        if container.name == workload:
            return container
    return containers[0]


class WorkloadUpdater:
    """Applies image updates through the WorkloadClient."""

    def __init__(self, workloads: WorkloadClient) -> None:
        self.workloads = workloads

    async def apply(self, target: ResolvedTarget, image: str, tag: Optional[str]) -> str:
        """
        Set the primary container of *target* to ``image:tag``.

        Returns the full image reference that was submitted.
        Raises UpdateError on any cluster failure.
        """
        reference = image_reference(image, tag)
        try:
            deployment = await self.workloads.read_deployment(target)
            containers = deployment.spec.template.spec.containers or []
            if not containers:
                raise UpdateError(target, f"Deployment {target} has no containers")

            primary = select_primary_container(containers, target.workload)
            if primary.image == reference:
                logger.info(f"{target}: {primary.name} already on {reference}, patching anyway")

            logger.info(f"🔄 Patching {target} container={primary.name} image={reference}")
            await self.workloads.patch_containers(
                target, [{"name": primary.name, "image": reference}]
            )
        except UpdateError:
            raise
        except Exception as e:
            message = describe_api_error(e)
            logger.error(f"❌ Failed to update {target} to {reference}: {message}")
            raise UpdateError(target, message) from e

        logger.info(f"✅ Updated {target} to {reference}")
        return reference
