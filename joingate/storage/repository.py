"""
Repository mapping JoinRequest entities to and from the state store.

Keeps the active-request pointer consistent with the entity's state:
set while collecting or awaiting review, cleared once decided.
"""

import logging

from ..domain.join_request import (
    Decision,
    DecisionStatus,
    JoinRequest,
    JoinRequestContext,
    JoinRequestInput,
    JoinRequestState,
    utcnow,
)
from ..domain.validation import DEFAULT_LIMITS, ReasonLimits
from .state import RequestState, RequestStatusFilter, StateStore

logger = logging.getLogger(__name__)

ACTIVE_STATES = frozenset({JoinRequestState.COLLECTING_REASON, JoinRequestState.AWAITING_REVIEW})


def context_to_state(context: JoinRequestContext) -> RequestState:
    decision = context.decision
    return RequestState(
        user_id=context.user_id,
        target_chat_id=context.target_chat_id,
        display_name=context.display_name,
        timestamp=context.timestamp,
        username=context.username,
        reason=context.reason,
        additional_messages=list(context.additional_messages),
        admin_msg_id=context.admin_msg_id,
        decision_status=decision.status.value if decision else None,
        decision_admin_id=decision.admin_id if decision else None,
        decision_admin_name=decision.admin_name if decision else None,
        decision_at=decision.decided_at if decision else None,
    )


def state_to_context(request_id: str, state: RequestState) -> JoinRequestContext:
    decision = None
    if state.decision_status is not None:
        decision = Decision(
            status=DecisionStatus(state.decision_status),
            admin_id=state.decision_admin_id if state.decision_admin_id is not None else 0,
            admin_name=state.decision_admin_name or "",
            decided_at=state.decision_at or state.timestamp,
        )

    return JoinRequestContext(
        request_id=request_id,
        user_id=state.user_id,
        target_chat_id=state.target_chat_id,
        display_name=state.display_name,
        timestamp=state.timestamp,
        username=state.username,
        reason=state.reason,
        additional_messages=list(state.additional_messages),
        admin_msg_id=state.admin_msg_id,
        decision=decision,
    )


class JoinRequestRepository:
    """Entity-level persistence on top of a StateStore."""

    def __init__(self, store: StateStore, limits: ReasonLimits = DEFAULT_LIMITS):
        self.store = store
        self.limits = limits

    async def create(self, input: JoinRequestInput) -> JoinRequest:
        """Create a new request in pending, point the user at it and index it."""
        request = JoinRequest(input, limits=self.limits)

        await self.store.set_user_active_request(input.user_id, input.request_id)
        await self.store.add_to_timeline(input.request_id, input.timestamp)
        await self.save(request)

        logger.info(f"Created join request {input.request_id} for user {input.user_id}")
        return request

    async def find_by_id(self, request_id: str) -> JoinRequest | None:
        state = await self.store.get(request_id)
        if state is None:
            return None
        return JoinRequest.from_context(state_to_context(request_id, state), limits=self.limits)

    async def find_by_user_id(self, user_id: int) -> JoinRequest | None:
        """The user's active request, healing a stale pointer if there is one."""
        request_id = await self.store.get_active_request_id_by_user_id(user_id)
        if request_id is None:
            return None

        request = await self.find_by_id(request_id)
        if request is None or request.is_processed():
            logger.info(f"Clearing stale active-request pointer for user {user_id} ({request_id})")
            await self.store.clear_user_active_request(user_id)
            return None

        return request

    async def save(self, request: JoinRequest) -> None:
        context = request.context
        await self.store.set(context.request_id, context_to_state(context))

        if request.state in ACTIVE_STATES:
            await self.store.set_user_active_request(context.user_id, context.request_id)
        elif request.is_processed():
            await self.store.clear_user_active_request(context.user_id)

    async def find_recent(self, limit: int = 10) -> list[JoinRequest]:
        return await self.find_recent_by_status(None, limit)

    async def find_recent_by_status(
        self, status: RequestStatusFilter | None, limit: int = 10
    ) -> list[JoinRequest]:
        """Newest first; `limit` applies after the status filter."""
        request_ids = await self.store.get_recent_requests(limit, status)
        requests = []
        for request_id in request_ids:
            request = await self.find_by_id(request_id)
            if request is not None:
                requests.append(request)
        return requests

    async def mark_pending_as_stale_resolved(
        self, request_ids: list[str], resolved_by: str
    ) -> int:
        """
        Close out undecided requests administratively.

        Writes a declined decision by admin id 0 straight to the store,
        bypassing the entity's transition guards. Already-decided or missing
        ids are skipped. Returns how many were marked.
        """
        marked = 0
        now = utcnow()

        for request_id in request_ids:
            state = await self.store.get(request_id)
            if state is None or state.is_completed:
                continue

            state.decision_status = DecisionStatus.DECLINED.value
            state.decision_admin_id = 0
            state.decision_admin_name = resolved_by
            state.decision_at = now
            await self.store.set(request_id, state)
            await self.store.clear_user_active_request(state.user_id)
            marked += 1

        if marked:
            logger.info(f"Marked {marked} stale request(s) as resolved by {resolved_by}")
        return marked
