"""
JoinRequest: the lifecycle state machine of one membership request.

    pending -> collecting_reason -> awaiting_review -> approved | declined

Every mutation goes through a guarded transition. Guards never raise; they
return a `Result` whose `error` is a localized, user-presentable message.

Two layers of guards exist:
1. Machine guards (state, non-empty payload, single decision). These are
   the rules a persisted request is replayed against on load.
2. Input validation (word count, character limit). Applied only to fresh
   input from requesters in `submit_reason` and `add_message`.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum

from ..messages import get_message
from .validation import (
    DEFAULT_LIMITS,
    ReasonLimits,
    Result,
    validate_additional_message,
    validate_reason,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================


class JoinRequestState(str, Enum):
    PENDING = "pending"
    COLLECTING_REASON = "collecting_reason"
    AWAITING_REVIEW = "awaiting_review"
    APPROVED = "approved"
    DECLINED = "declined"


TERMINAL_STATES = frozenset({JoinRequestState.APPROVED, JoinRequestState.DECLINED})


class DecisionStatus(str, Enum):
    APPROVED = "approved"
    DECLINED = "declined"


class AdminAction(str, Enum):
    APPROVE = "approve"
    DECLINE = "decline"


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass(frozen=True)
class Decision:
    """Final moderator verdict. Set once, never replaced."""
    status: DecisionStatus
    admin_id: int
    admin_name: str
    decided_at: datetime


@dataclass
class JoinRequestInput:
    """Immutable facts captured when the join request arrives."""
    request_id: str
    user_id: int
    target_chat_id: int
    display_name: str
    username: str | None = None
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class JoinRequestContext:
    """Full persisted state of a join request."""
    request_id: str
    user_id: int
    target_chat_id: int
    display_name: str
    timestamp: datetime
    username: str | None = None
    reason: str | None = None
    additional_messages: list[str] = field(default_factory=list)
    admin_msg_id: int | None = None
    decision: Decision | None = None

    @classmethod
    def from_input(cls, input: JoinRequestInput) -> "JoinRequestContext":
        return cls(
            request_id=input.request_id,
            user_id=input.user_id,
            target_chat_id=input.target_chat_id,
            display_name=input.display_name,
            username=input.username,
            timestamp=input.timestamp,
        )


# =============================================================================
# STATE MACHINE
# =============================================================================


# (state, event) -> target state
_TRANSITIONS: dict[tuple[JoinRequestState, str], JoinRequestState] = {
    (JoinRequestState.PENDING, "start_collection"): JoinRequestState.COLLECTING_REASON,
    (JoinRequestState.COLLECTING_REASON, "submit_reason"): JoinRequestState.AWAITING_REVIEW,
    (JoinRequestState.AWAITING_REVIEW, "set_admin_msg_id"): JoinRequestState.AWAITING_REVIEW,
    (JoinRequestState.AWAITING_REVIEW, "add_message"): JoinRequestState.AWAITING_REVIEW,
    (JoinRequestState.AWAITING_REVIEW, "approve"): JoinRequestState.APPROVED,
    (JoinRequestState.AWAITING_REVIEW, "decline"): JoinRequestState.DECLINED,
}

# Error key returned when an event arrives in a state that does not accept it
_WRONG_STATE_ERRORS = {
    "start_collection": "state-not-pending",
    "submit_reason": "state-not-collecting",
    "set_admin_msg_id": "state-not-reviewing",
    "add_message": "state-not-reviewing",
    "approve": "state-not-reviewing",
    "decline": "state-not-reviewing",
}


class JoinRequest:
    """
    Domain entity for a single join request.

    Guarantees:
    1. `reason` is set exactly once, before any decision
    2. `admin_msg_id` is set at most once
    3. `additional_messages` only grows, and only while undecided
    4. `decision` is set exactly once and never changes afterwards
    """

    def __init__(self, input: JoinRequestInput, limits: ReasonLimits = DEFAULT_LIMITS):
        self._context = JoinRequestContext.from_input(input)
        self._state = JoinRequestState.PENDING
        self._limits = limits
        self._replaying = False

    def __repr__(self) -> str:
        return f"<JoinRequest {self._context.request_id} state={self._state.value}>"

    # =========================================================================
    # INSPECTION
    # =========================================================================

    @property
    def state(self) -> JoinRequestState:
        return self._state

    @property
    def context(self) -> JoinRequestContext:
        """A copy of the current context; mutating it has no effect."""
        return replace(self._context, additional_messages=list(self._context.additional_messages))

    @property
    def request_id(self) -> str:
        return self._context.request_id

    @property
    def user_id(self) -> int:
        return self._context.user_id

    def is_in_state(self, state: JoinRequestState) -> bool:
        return self._state == state

    def is_processed(self) -> bool:
        """True once a decision exists. This is the only 'finished' signal."""
        return self._context.decision is not None

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def start_collection(self) -> Result:
        return self._fire("start_collection")

    def submit_reason(self, reason: str) -> Result:
        """Validate a requester's reason and move to review."""
        if self._state != JoinRequestState.COLLECTING_REASON:
            return Result.fail(get_message("state-not-collecting"))

        validation = validate_reason(reason, self._limits)
        if not validation.success:
            return validation

        return self._fire("submit_reason", reason=validation.data)

    def submit_placeholder_reason(self, reason: str) -> Result:
        """
        Record a reason on the requester's behalf.

        Used when the requester cannot be reached: the text is a fixed system
        notice, so only the machine guards apply, not the word-count rules.
        """
        return self._fire("submit_reason", reason=reason)

    def set_admin_msg_id(self, admin_msg_id: int) -> Result:
        return self._fire("set_admin_msg_id", admin_msg_id=admin_msg_id)

    def add_message(self, message: str) -> Result:
        """Append a follow-up message while the request awaits review."""
        if self._state != JoinRequestState.AWAITING_REVIEW:
            return Result.fail(get_message("state-not-reviewing"))

        validation = validate_additional_message(message, self._limits)
        if not validation.success:
            return validation

        return self._fire("add_message", message=validation.data)

    def approve(self, admin_id: int, admin_name: str) -> Result:
        return self._fire("approve", admin_id=admin_id, admin_name=admin_name)

    def decline(self, admin_id: int, admin_name: str) -> Result:
        return self._fire("decline", admin_id=admin_id, admin_name=admin_name)

    def decide(self, action: AdminAction, admin_id: int, admin_name: str) -> Result:
        if action == AdminAction.APPROVE:
            return self.approve(admin_id, admin_name)
        return self.decline(admin_id, admin_name)

    # =========================================================================
    # MACHINE
    # =========================================================================

    def _fire(self, event: str, **payload) -> Result:
        """Apply one event if the machine guards allow it."""
        target = _TRANSITIONS.get((self._state, event))
        if target is None:
            if event in ("approve", "decline") and self.is_processed():
                return Result.fail(get_message("request-processed"))
            return Result.fail(get_message(_WRONG_STATE_ERRORS[event]))

        ctx = self._context

        if event == "submit_reason":
            reason = (payload["reason"] or "").strip()
            if not reason:
                return Result.fail(get_message("invalid-input"))
            ctx.reason = reason

        elif event == "set_admin_msg_id":
            if ctx.admin_msg_id is not None:
                return Result.fail(get_message("admin-msg-already-set"))
            ctx.admin_msg_id = payload["admin_msg_id"]

        elif event == "add_message":
            message = (payload["message"] or "").strip()
            if not message:
                return Result.fail(get_message("message-empty"))
            ctx.additional_messages.append(message)

        elif event in ("approve", "decline"):
            if ctx.reason is None:
                return Result.fail(get_message("reason-missing"))
            if ctx.decision is not None:
                return Result.fail(get_message("request-processed"))
            ctx.decision = Decision(
                status=DecisionStatus.APPROVED if event == "approve" else DecisionStatus.DECLINED,
                admin_id=payload["admin_id"],
                admin_name=payload["admin_name"],
                decided_at=payload.get("decided_at") or utcnow(),
            )

        previous = self._state
        self._state = target

        if previous != target and not self._replaying:
            logger.info(
                f"JoinRequest lifecycle transition: request_id={ctx.request_id} "
                f"user_id={ctx.user_id} from={previous.value} to={target.value}"
            )

        return Result.ok(self.context)

    # =========================================================================
    # RESTORATION
    # =========================================================================

    @classmethod
    def from_context(
        cls,
        context: JoinRequestContext,
        limits: ReasonLimits = DEFAULT_LIMITS,
    ) -> "JoinRequest":
        """
        Rebuild a live entity from persisted state.

        Replays the transitions implied by the populated fields, in order:
        start collection, reason, review card id, follow-up messages, decision.
        Input validation is skipped; the machine guards are not.
        """
        request = cls(
            JoinRequestInput(
                request_id=context.request_id,
                user_id=context.user_id,
                target_chat_id=context.target_chat_id,
                display_name=context.display_name,
                username=context.username,
                timestamp=context.timestamp,
            ),
            limits=limits,
        )
        request._replaying = True

        steps: list[tuple[str, dict]] = [("start_collection", {})]
        if context.reason:
            steps.append(("submit_reason", {"reason": context.reason}))
        if context.admin_msg_id is not None:
            steps.append(("set_admin_msg_id", {"admin_msg_id": context.admin_msg_id}))
        for message in context.additional_messages:
            steps.append(("add_message", {"message": message}))
        # A decision stored without a reason (stale cleanup of a collecting request)
        # fails the guard and restores undecided; such requests never got a review card
        if context.decision is not None:
            steps.append((
                "approve" if context.decision.status == DecisionStatus.APPROVED else "decline",
                {
                    "admin_id": context.decision.admin_id,
                    "admin_name": context.decision.admin_name,
                    "decided_at": context.decision.decided_at,
                },
            ))

        for event, payload in steps:
            result = request._fire(event, **payload)
            if not result.success:
                logger.warning(
                    f"Replay of {event} rejected for request {context.request_id}: {result.error}"
                )

        request._replaying = False
        return request
