# relay/routes/__init__.py
"""API routes for the deploy relay."""
from .webhooks import router as webhooks_router

__all__ = ["webhooks_router"]
