# relay/channels/__init__.py
"""Outbound notification channels."""
from .telegram import TelegramNotifier

__all__ = ["TelegramNotifier"]
