# relay/routes/webhooks.py
# @ai-rules:
# 1. [Pattern]: Docker Hub path awaits the update and marks pending BEFORE responding. Client retries only re-mark (idempotent).
# 2. [Constraint]: GitHub path is notification-only. Never touches updater or pending tracker. Always 200.
# 3. [Gotcha]: Unmapped images are the common case -- 200 "No service mapping found", not an error.
"""
Webhook ingress.

POST /webhook/dockerhub -- registry push -> image update on the mapped Deployment
POST /webhook/github    -- CI lifecycle events -> chat notification
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..channels import formatter
from ..cluster.updater import UpdateError, image_reference
from ..context import RelayContext, get_context
from ..models import DockerHubPayload, ErrorResponse, GitHubPayload, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhooks"])

NO_MAPPING = "No service mapping found"
DOCKERHUB_OK = "Webhook processed successfully"
GITHUB_OK = "GitHub webhook processed successfully"


def _error(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error).model_dump())


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


# =============================================================================
# Docker Hub
# =============================================================================

@router.post(
    "/dockerhub",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def dockerhub_webhook(
    request: Request,
    context: RelayContext = Depends(get_context),
) -> Any:
    """
    Registry push notification.

    Resolves the pushed image to a Deployment, updates its primary container
    and marks the Deployment pending until the poller sees it healthy.
    """
    body = await _json_body(request)
    if not isinstance(body, dict) or "repository" not in body or "push_data" not in body:
        logger.warning("📦 Docker Hub webhook rejected: missing repository or push_data")
        return _error(400, "Invalid payload: repository and push_data are required")

    try:
        payload = DockerHubPayload.model_validate(body)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ()))
        logger.warning(f"📦 Docker Hub webhook rejected: {where}: {first.get('msg')}")
        return _error(400, f"Invalid payload: {where}: {first.get('msg')}")

    image = payload.repository.repo_name
    tag = payload.push_data.tag
    reference = image_reference(image, tag)
    logger.info(f"📦 Docker Hub webhook received for {reference}")

    target = context.registry.resolve(image)
    if target is None:
        logger.info(f"No service mapping found for {image}")
        return MessageResponse(message=NO_MAPPING)

    try:
        await context.updater.apply(target, image, tag)
    except UpdateError as e:
        context.notifier.notify(formatter.update_failed(target, reference, e.message))
        return _error(500, f"Failed to update {target}: {e.message}")

    await context.pending.mark_pending(target)
    context.notifier.notify(formatter.update_applied(target, reference))
    return MessageResponse(message=DOCKERHUB_OK)


# =============================================================================
# GitHub
# =============================================================================

def github_event_message(payload: GitHubPayload) -> Optional[str]:
    """
    Map a GitHub webhook payload to a notification, or None to stay silent.

    Recognized: workflow_run completed/requested/in_progress, and push
    (no action, ref present).
    """
    repo = payload.repository.display_name if payload.repository else "unknown"
    run = payload.workflow_run
    workflow = run.name if run else None
    branch = run.head_branch if run else None

    if payload.action == "completed":
        conclusion = run.conclusion if run else None
        return formatter.ci_completed(
            repo, conclusion, workflow=workflow, branch=branch,
            url=run.html_url if run else None,
        )
    if payload.action == "requested":
        return formatter.ci_requested(repo, workflow=workflow, branch=branch)
    if payload.action == "in_progress":
        return formatter.ci_in_progress(repo, workflow=workflow, branch=branch)
    if payload.action is None and payload.ref:
        pusher = (payload.pusher or {}).get("name")
        head_message = (payload.head_commit or {}).get("message")
        return formatter.ci_push(
            repo, payload.ref, pusher=pusher,
            commit_count=len(payload.commits), head_message=head_message,
        )
    return None


@router.post("/github", response_model=MessageResponse)
async def github_webhook(
    request: Request,
    context: RelayContext = Depends(get_context),
) -> MessageResponse:
    """CI lifecycle relay. Always answers 200; problems only reach the logs."""
    event = request.headers.get("X-GitHub-Event", "unknown")
    body = await _json_body(request)
    if not isinstance(body, dict):
        body = {}

    try:
        payload = GitHubPayload.model_validate(body)
    except ValidationError as e:
        logger.warning(f"🐙 GitHub webhook ({event}) ignored: unparseable payload: {e.error_count()} errors")
        return MessageResponse(message=GITHUB_OK)

    logger.info(f"🐙 GitHub webhook received: event={event} action={payload.action or '-'}")
    message = github_event_message(payload)
    if message:
        context.notifier.notify(message)
    else:
        logger.debug(f"GitHub {event} action={payload.action!r} not relayed")

    return MessageResponse(message=GITHUB_OK)
