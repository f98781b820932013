"""Join request domain model."""

from .join_request import (
    AdminAction,
    Decision,
    DecisionStatus,
    JoinRequest,
    JoinRequestContext,
    JoinRequestInput,
    JoinRequestState,
)
from .validation import ReasonLimits, Result, normalize_text, validate_additional_message, validate_reason

__all__ = [
    "JoinRequest",
    "JoinRequestState",
    "JoinRequestInput",
    "JoinRequestContext",
    "Decision",
    "DecisionStatus",
    "AdminAction",
    "ReasonLimits",
    "Result",
    "normalize_text",
    "validate_reason",
    "validate_additional_message",
]
