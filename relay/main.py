# relay/main.py
# @ai-rules:
# 1. [Pattern]: RelayContext is built in lifespan() and stored on app.state.relay. No module-level state.
# 2. [Constraint]: Missing cluster credentials is fatal -- ClusterConfigError propagates out of lifespan.
# 3. [Pattern]: Missing Telegram credentials is NOT fatal -- notifier degrades to no-op.
# 4. [Pattern]: create_app(context_factory=..., poll=False) is the test seam. Production uses module-level `app`.
"""
Push-to-Deploy Relay - FastAPI Application

Receives registry and CI webhooks, updates the mapped Deployment and
reports rollout outcomes to Telegram:
- Webhook ingress (Docker Hub, GitHub)
- Rollout health poller (background task)
- Telegram notifier (fire-and-forget)
"""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import Depends, FastAPI

from . import __version__
from .channels.telegram import TelegramNotifier
from .cluster.updater import WorkloadUpdater
from .cluster.workloads import ClusterConfigError, WorkloadClient, load_cluster_config
from .context import RelayContext, get_context
from .models import HealthResponse
from .observers.rollout import HealthPoller
from .routes import webhooks_router
from .state.targets import TargetRegistry

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if os.getenv("DEBUG") else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Squelch noisy loggers (httpx logs every request URL, which contains the bot token)
for noisy in ("kubernetes.client.rest", "urllib3.connectionpool", "httpx", "httpcore"):
    logging.getLogger(noisy).setLevel(logging.WARNING)


def build_context() -> RelayContext:
    """Wire the production collaborators. Raises ClusterConfigError without cluster credentials."""
    load_cluster_config()
    workloads = WorkloadClient()
    return RelayContext(
        registry=TargetRegistry.from_env(),
        workloads=workloads,
        updater=WorkloadUpdater(workloads),
        notifier=TelegramNotifier(),
    )


def create_app(
    context_factory: Callable[[], RelayContext] = build_context,
    poll: bool = True,
) -> FastAPI:
    """Build the FastAPI app. *poll=False* skips the background poller."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Builds the relay context and starts the rollout poller on startup.
        Stops the poller and drains notifications on shutdown.
        """
        logger.info("🚀 Deploy relay starting up...")

        try:
            context = context_factory()
        except ClusterConfigError as e:
            logger.critical(f"CRITICAL: {e}")
            raise

        app.state.relay = context
        logger.info(
            f"Relay context ready: {len(context.registry)} aliases -> "
            f"{len(context.registry.targets())} targets (match={context.registry.match_mode})"
        )

        poller = HealthPoller(context)
        app.state.poller = poller
        if poll:
            await poller.start()
        else:
            logger.info("HealthPoller disabled")

        logger.info("📡 Webhook endpoints: /webhook/dockerhub, /webhook/github")
        logger.info("📊 Status endpoint: /health")

        yield  # Application runs here

        logger.info("🛑 Deploy relay shutting down...")
        await poller.stop()
        await context.notifier.aclose()
        logger.info("Deploy relay stopped")

    app = FastAPI(
        title="Deploy Relay",
        description="Push-to-deploy relay: registry/CI webhooks -> Kubernetes image updates -> Telegram",
        version=__version__,
        lifespan=lifespan,
    )

    # =========================================================================
    # Health Endpoint
    # =========================================================================

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health_check() -> HealthResponse:
        """Liveness probe. Does not touch the cluster."""
        return HealthResponse(status="healthy")

    # =========================================================================
    # API Info
    # =========================================================================

    @app.get("/info", tags=["info"])
    async def api_info(context: RelayContext = Depends(get_context)) -> dict:
        """Endpoints, configured targets and updates awaiting rollout."""
        pending = await context.pending.pending()
        return {
            "name": "Deploy Relay",
            "version": __version__,
            "endpoints": {
                "health": "GET /health",
                "dockerhub": "POST /webhook/dockerhub",
                "github": "POST /webhook/github",
            },
            "match_mode": context.registry.match_mode,
            "targets": [
                {
                    "target": str(target),
                    "aliases": context.registry.aliases_for(target),
                }
                for target in context.registry.targets()
            ],
            "pending": [str(target) for target in pending],
            "notifications": "enabled" if context.notifier.enabled else "disabled",
        }

    app.include_router(webhooks_router)
    return app


app = create_app()
