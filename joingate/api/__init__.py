"""HTTP routes for joingate."""

from .webhook import build_webhook_router

__all__ = ["build_webhook_router"]
