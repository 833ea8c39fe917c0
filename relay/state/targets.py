# relay/state/targets.py
# @ai-rules:
# 1. [Constraint]: Read-only after startup. No locks, no mutation after TargetRegistry.__init__.
# 2. [Gotcha]: "contains" matching is first-alias-wins in declaration order, NOT longest match. Short aliases can shadow longer ones.
# 3. [Pattern]: targets() is the poll list -- deduplicated by (namespace, workload), registry order preserved.
"""
Target Registry.

Maps image/service aliases to the Kubernetes Deployment that should be
updated when that image is pushed.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import yaml

logger = logging.getLogger(__name__)

RELAY_ALIAS_MATCH = os.getenv("RELAY_ALIAS_MATCH", "contains").lower()
RELAY_TARGETS_FILE = os.getenv("RELAY_TARGETS_FILE", "")

MATCH_CONTAINS = "contains"
MATCH_EXACT = "exact"
MATCH_MODES = (MATCH_CONTAINS, MATCH_EXACT)


class TargetConfigError(ValueError):
    """Raised when the target table cannot be loaded."""
    pass


@dataclass(frozen=True)
class ResolvedTarget:
    """A single workload, the join key between updates and health polls."""
    namespace: str
    workload: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.workload}"


@dataclass(frozen=True)
class TargetSpec:
    """One alias -> workload mapping row."""
    alias: str
    namespace: str
    workload: str

    @property
    def target(self) -> ResolvedTarget:
        return ResolvedTarget(self.namespace, self.workload)


def _row(alias: str, namespace: str) -> TargetSpec:
    return TargetSpec(alias=alias, namespace=namespace, workload=alias)


# Built-in table. Order matters for "contains" matching.
DEFAULT_TARGETS: tuple[TargetSpec, ...] = (
    # Backend services
    _row("auth-service", "backend"),
    _row("masters-service", "backend"),
    _row("orders-service", "backend"),
    _row("users-service", "backend"),
    _row("calls-service", "backend"),
    _row("reports-service", "backend"),
    _row("avito-service", "backend"),
    _row("cash-service", "backend"),
    _row("files-service", "backend"),
    # Frontend services
    _row("callcentre-frontend", "frontend"),
    _row("dircrm-frontend", "frontend"),
    _row("mastercrm-frontend", "frontend"),
    # CRM services
    _row("notifications-service", "crm"),
    _row("realtime-service", "crm"),
)


def load_targets(path: str | Path) -> tuple[TargetSpec, ...]:
    """
    Load a target table from YAML.

    Expected shape (either a bare list or under a top-level ``targets`` key):

        - alias: auth-service
          namespace: backend
          workload: auth-service

    ``workload`` defaults to the alias when omitted.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise TargetConfigError(f"Cannot read target table {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("targets")
    if not isinstance(data, list) or not data:
        raise TargetConfigError(f"Target table {path} must be a non-empty list")

    specs: list[TargetSpec] = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise TargetConfigError(f"Target #{i} in {path} is not a mapping")
        alias = entry.get("alias")
        namespace = entry.get("namespace")
        workload = entry.get("workload") or alias
        if not all(isinstance(v, str) and v for v in (alias, namespace, workload)):
            raise TargetConfigError(
                f"Target #{i} in {path} needs non-empty alias/namespace/workload: {entry}"
            )
        specs.append(TargetSpec(alias=alias, namespace=namespace, workload=workload))

    logger.info(f"Loaded {len(specs)} targets from {path}")
    return tuple(specs)


class TargetRegistry:
    """Static alias table with first-match resolution."""

    def __init__(
        self,
        specs: Iterable[TargetSpec] = DEFAULT_TARGETS,
        match_mode: str = RELAY_ALIAS_MATCH,
    ) -> None:
        if match_mode not in MATCH_MODES:
            raise TargetConfigError(
                f"Unknown alias match mode {match_mode!r} (expected one of {MATCH_MODES})"
            )
        self._specs: tuple[TargetSpec, ...] = tuple(specs)
        self.match_mode = match_mode

        unique: dict[ResolvedTarget, None] = {}
        for spec in self._specs:
            unique.setdefault(spec.target, None)
        self._targets: tuple[ResolvedTarget, ...] = tuple(unique)

    @classmethod
    def from_env(cls) -> "TargetRegistry":
        """Build from RELAY_TARGETS_FILE if set, otherwise the built-in table."""
        specs = load_targets(RELAY_TARGETS_FILE) if RELAY_TARGETS_FILE else DEFAULT_TARGETS
        return cls(specs)

    @property
    def specs(self) -> tuple[TargetSpec, ...]:
        return self._specs

    def targets(self) -> list[ResolvedTarget]:
        """Unique targets in declaration order."""
        return list(self._targets)

    def aliases_for(self, target: ResolvedTarget) -> list[str]:
        return [s.alias for s in self._specs if s.target == target]

    def resolve(self, identifier: object) -> Optional[ResolvedTarget]:
        """
        Resolve an image or service identifier to a target.

        Returns None when nothing matches. Never raises.
        """
        if not isinstance(identifier, str) or not identifier:
            return None

        if self.match_mode == MATCH_EXACT:
            candidate = identifier.rstrip("/").rsplit("/", 1)[-1]
            for spec in self._specs:
                if spec.alias == candidate:
                    return spec.target
            return None

        for spec in self._specs:
            if spec.alias in identifier:
                return spec.target
        return None

    def __len__(self) -> int:
        return len(self._specs)
