# relay/channels/formatter.py
# @ai-rules:
# 1. [Constraint]: Pure functions only -- no I/O, no Telegram API calls. Returns HTML strings for parse_mode=HTML.
# 2. [Gotcha]: Every interpolated value goes through _esc(). Branch names and commit messages contain <, >, &.
# 3. [Gotcha]: Telegram message limit is 4096 chars. truncate() before sending.
"""Build human-readable notification messages for deploy and CI events."""
from __future__ import annotations

import html
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from ..cluster.workloads import HealthStatus
    from ..state.targets import ResolvedTarget

# Telegram sendMessage text limit
_MAX_TEXT = 4096


def _esc(value: Any) -> str:
    return html.escape(str(value), quote=False)


def truncate(text: str, limit: int = _MAX_TEXT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 16] + "\n...(truncated)"


def _replicas(status: "HealthStatus") -> str:
    return f"{status.ready_replicas}/{status.desired_replicas}"


# =============================================================================
# Deployment lifecycle
# =============================================================================

def update_applied(target: "ResolvedTarget", reference: str) -> str:
    return (
        f"🚀 <b>{_esc(target.workload)}</b> updated to <code>{_esc(reference)}</code>\n"
        f"Namespace: {_esc(target.namespace)}\n"
        f"⏳ Awaiting rollout..."
    )


def update_failed(target: "ResolvedTarget", reference: str, error: str) -> str:
    return (
        f"❌ <b>{_esc(target.workload)}</b> update to <code>{_esc(reference)}</code> failed\n"
        f"Namespace: {_esc(target.namespace)}\n"
        f"Error: {_esc(error)}"
    )


def rollout_healthy(status: "HealthStatus") -> str:
    target = status.target
    return (
        f"✅ <b>{_esc(target.workload)}</b> rolled out\n"
        f"Ready: {_replicas(status)} "
        f"(available {status.available_replicas}, updated {status.updated_replicas})\n"
        f"Namespace: {_esc(target.namespace)}"
    )


def rollout_stalled(status: "HealthStatus", waited_seconds: float) -> str:
    target = status.target
    minutes = int(waited_seconds // 60)
    waited = f"{minutes} min" if minutes else f"{int(waited_seconds)} s"
    return (
        f"🚨 <b>{_esc(target.workload)}</b> update did not converge after {waited}\n"
        f"Ready: {_replicas(status)} "
        f"(available {status.available_replicas}, updated {status.updated_replicas})\n"
        f"Namespace: {_esc(target.namespace)}"
    )


# =============================================================================
# CI (GitHub Actions) relay
# =============================================================================

def _run_line(repo: str, workflow: Optional[str], branch: Optional[str]) -> str:
    line = f"<b>{_esc(repo)}</b>"
    if workflow:
        line += f" · {_esc(workflow)}"
    if branch:
        line += f" · <code>{_esc(branch)}</code>"
    return line


def _link(url: Optional[str]) -> str:
    return f'\n<a href="{html.escape(url, quote=True)}">Open run</a>' if url else ""


def ci_completed(
    repo: str,
    conclusion: Optional[str],
    workflow: Optional[str] = None,
    branch: Optional[str] = None,
    url: Optional[str] = None,
) -> str:
    if conclusion == "success":
        head = "✅ CI passed"
    else:
        head = f"❌ CI {_esc(conclusion or 'finished without conclusion')}"
    return f"{head}: {_run_line(repo, workflow, branch)}{_link(url)}"


def ci_requested(repo: str, workflow: Optional[str] = None, branch: Optional[str] = None) -> str:
    return f"🕐 CI queued: {_run_line(repo, workflow, branch)}"


def ci_in_progress(repo: str, workflow: Optional[str] = None, branch: Optional[str] = None) -> str:
    return f"🔨 CI running: {_run_line(repo, workflow, branch)}"


def ci_push(
    repo: str,
    ref: str,
    pusher: Optional[str] = None,
    commit_count: int = 0,
    head_message: Optional[str] = None,
) -> str:
    branch = ref.removeprefix("refs/heads/")
    text = f"📤 Push to <b>{_esc(repo)}</b> <code>{_esc(branch)}</code>"
    if pusher:
        text += f" by {_esc(pusher)}"
    if commit_count:
        text += f"\nCommits: {commit_count}"
    if head_message:
        first_line = head_message.strip().splitlines()[0] if head_message.strip() else ""
        if first_line:
            text += f"\n<i>{_esc(first_line[:200])}</i>"
    return text
