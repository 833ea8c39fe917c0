# relay/models.py
# @ai-rules:
# 1. [Constraint]: All models are Pydantic BaseModel. Use Field() for defaults and descriptions.
# 2. [Pattern]: Inbound webhook models ignore unknown fields -- Docker Hub and GitHub send far more than we read.
# 3. [Gotcha]: Docker Hub 400s are produced by the route, not by FastAPI validation (which would answer 422).
"""Pydantic schemas for webhook payloads and relay responses."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Inbound(BaseModel):
    model_config = ConfigDict(extra="ignore")


# =============================================================================
# Docker Hub push webhook
# =============================================================================

class DockerHubRepository(_Inbound):
    """The pushed repository."""
    repo_name: str = Field(..., min_length=1, description="Full image name (e.g., org/auth-service)")


class DockerHubPushData(_Inbound):
    """The push itself."""
    tag: Optional[str] = Field(None, description="Pushed tag; empty means latest")


class DockerHubPayload(_Inbound):
    repository: DockerHubRepository
    push_data: DockerHubPushData


# =============================================================================
# GitHub webhook (workflow_run + push)
# =============================================================================

class GitHubRepository(_Inbound):
    name: Optional[str] = None
    full_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.full_name or "unknown"


class WorkflowRun(_Inbound):
    name: Optional[str] = Field(None, description="Workflow name")
    head_branch: Optional[str] = None
    conclusion: Optional[str] = Field(None, description="success, failure, cancelled, ...")
    html_url: Optional[str] = None


class GitHubPayload(_Inbound):
    action: Optional[str] = Field(None, description="completed, requested, in_progress; absent for push")
    workflow_run: Optional[WorkflowRun] = None
    repository: Optional[GitHubRepository] = None
    ref: Optional[str] = Field(None, description="Pushed ref (push events only)")
    pusher: Optional[dict[str, Any]] = None
    commits: list[dict[str, Any]] = Field(default_factory=list)
    head_commit: Optional[dict[str, Any]] = None


# =============================================================================
# Responses
# =============================================================================

class HealthResponse(BaseModel):
    status: str = "healthy"
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
