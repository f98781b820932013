"""Workflow services for joingate."""

from .admin_commands import AdminCommands
from .join_request_service import AdminActionResult, JoinRequestService

__all__ = [
    "JoinRequestService",
    "AdminActionResult",
    "AdminCommands",
]
