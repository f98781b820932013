"""
State store: key/value persistence for join requests plus two indices.

- Active-request pointer: user id -> request id of their undecided request
- Timeline: request ids, newest first, filterable by pending/completed

Backends implement the `StateStore` protocol; nothing inherits from a base
class. `create_state_store` picks one from settings.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Literal, Protocol, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import Settings

logger = logging.getLogger(__name__)

RequestStatusFilter = Literal["pending", "completed"]

TIMELINE_CAPACITY = 1000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class StoreError(Exception):
    """Persistence I/O failed; the write must not be assumed to have happened."""
    pass


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class RequestState:
    """Flat, backend-neutral representation of one persisted request."""
    user_id: int
    target_chat_id: int
    display_name: str
    timestamp: datetime
    username: str | None = None
    reason: str | None = None
    additional_messages: list[str] = field(default_factory=list)
    admin_msg_id: int | None = None
    decision_status: Literal["approved", "declined"] | None = None
    decision_admin_id: int | None = None
    decision_admin_name: str | None = None
    decision_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.decision_status is not None

    def copy(self) -> "RequestState":
        return replace(self, additional_messages=list(self.additional_messages))


def matches_status(state: RequestState, status: RequestStatusFilter | None) -> bool:
    if status is None:
        return True
    if status == "completed":
        return state.is_completed
    return not state.is_completed


# =============================================================================
# CAPABILITY INTERFACE
# =============================================================================


@runtime_checkable
class StateStore(Protocol):
    """Operations every storage backend provides."""

    async def set(self, request_id: str, state: RequestState) -> None: ...

    async def get(self, request_id: str) -> RequestState | None: ...

    async def set_user_active_request(self, user_id: int, request_id: str) -> None: ...

    async def clear_user_active_request(self, user_id: int) -> None: ...

    async def get_active_request_id_by_user_id(self, user_id: int) -> str | None: ...

    async def add_to_timeline(self, request_id: str, timestamp: datetime) -> None: ...

    async def get_recent_requests(
        self, limit: int, status: RequestStatusFilter | None = None
    ) -> list[str]: ...

    async def purge_expired(self) -> int: ...


# =============================================================================
# IN-MEMORY BACKEND
# =============================================================================


class MemoryStateStore:
    """
    Process-local store for tests and development.

    Values are copied on the way in and out, so callers never share mutable
    state with the store. Records older than the TTL read as absent.
    """

    def __init__(
        self,
        ttl_seconds: int = 604800,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store: dict[str, RequestState] = {}
        self._user_active_requests: dict[int, str] = {}
        self._timeline: list[str] = []  # newest first
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def _is_expired(self, state: RequestState) -> bool:
        return self._clock() - state.timestamp > self._ttl

    async def set(self, request_id: str, state: RequestState) -> None:
        self._store[request_id] = state.copy()

    async def get(self, request_id: str) -> RequestState | None:
        state = self._store.get(request_id)
        if state is None:
            return None

        if self._is_expired(state):
            del self._store[request_id]
            return None

        return state.copy()

    async def set_user_active_request(self, user_id: int, request_id: str) -> None:
        self._user_active_requests[user_id] = request_id

    async def clear_user_active_request(self, user_id: int) -> None:
        self._user_active_requests.pop(user_id, None)

    async def get_active_request_id_by_user_id(self, user_id: int) -> str | None:
        request_id = self._user_active_requests.get(user_id)
        if request_id is None:
            return None

        state = await self.get(request_id)
        if state is None or state.is_completed:
            self._user_active_requests.pop(user_id, None)
            return None

        return request_id

    async def add_to_timeline(self, request_id: str, timestamp: datetime) -> None:
        if request_id in self._timeline:
            return
        self._timeline.append(request_id)
        # Request ids are ULIDs, so lexicographic order is creation order
        self._timeline.sort(reverse=True)
        del self._timeline[TIMELINE_CAPACITY:]

    async def get_recent_requests(
        self, limit: int, status: RequestStatusFilter | None = None
    ) -> list[str]:
        """Newest first. Filters before truncating to `limit`."""
        result: list[str] = []
        for request_id in self._timeline:
            if len(result) >= limit:
                break

            state = await self.get(request_id)
            if state is None:
                continue

            if matches_status(state, status):
                result.append(request_id)

        return result

    async def purge_expired(self) -> int:
        expired = [rid for rid, state in self._store.items() if self._is_expired(state)]
        for request_id in expired:
            del self._store[request_id]

        for user_id, request_id in list(self._user_active_requests.items()):
            state = self._store.get(request_id)
            if state is None or state.is_completed:
                del self._user_active_requests[user_id]

        self._timeline = [rid for rid in self._timeline if rid in self._store]

        if expired:
            logger.info(f"Purged {len(expired)} expired request(s) from memory store")
        return len(expired)


# =============================================================================
# FACTORY
# =============================================================================


def create_state_store(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> StateStore:
    """Pick the backend: explicit STORAGE_TYPE first, then auto-detection."""
    if settings.resolved_storage_type == "sql":
        if session_factory is None:
            raise ValueError("SQL storage selected but no session factory was provided")

        from .sql_store import SQLStateStore

        logger.info("Using SQL state store")
        return SQLStateStore(session_factory, ttl_seconds=settings.reason_ttl_seconds)

    logger.info("Using in-memory state store")
    return MemoryStateStore(ttl_seconds=settings.reason_ttl_seconds)
