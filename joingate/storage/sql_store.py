"""
Durable state store backed by SQLAlchemy (PostgreSQL in production, SQLite in tests).

The timeline is not stored separately: it is the join_requests table ordered
by request id, which is time-ordered.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.database import get_session_context
from ..models import ActiveRequestPointer, JoinRequestRecord
from .state import RequestState, RequestStatusFilter, StoreError, utcnow

logger = logging.getLogger(__name__)


def _to_record(request_id: str, state: RequestState) -> JoinRequestRecord:
    return JoinRequestRecord(
        request_id=request_id,
        user_id=state.user_id,
        target_chat_id=state.target_chat_id,
        display_name=state.display_name,
        username=state.username,
        reason=state.reason,
        additional_messages=list(state.additional_messages),
        admin_msg_id=state.admin_msg_id,
        timestamp=state.timestamp,
        decision_status=state.decision_status,
        decision_admin_id=state.decision_admin_id,
        decision_admin_name=state.decision_admin_name,
        decision_at=state.decision_at,
    )


def _to_state(record: JoinRequestRecord) -> RequestState:
    return RequestState(
        user_id=record.user_id,
        target_chat_id=record.target_chat_id,
        display_name=record.display_name,
        timestamp=record.timestamp,
        username=record.username,
        reason=record.reason,
        additional_messages=list(record.additional_messages or []),
        admin_msg_id=record.admin_msg_id,
        decision_status=record.decision_status,
        decision_admin_id=record.decision_admin_id,
        decision_admin_name=record.decision_admin_name,
        decision_at=record.decision_at,
    )


class SQLStateStore:
    """StateStore over the join_requests and active_requests tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ttl_seconds: int = 604800,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def _cutoff(self) -> datetime:
        return self._clock() - self._ttl

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with get_session_context(self._session_factory) as session:
                yield session
        except SQLAlchemyError as e:
            raise StoreError(f"{operation} failed: {e}") from e

    async def set(self, request_id: str, state: RequestState) -> None:
        async with self._session("set") as session:
            await session.merge(_to_record(request_id, state))

    async def get(self, request_id: str) -> RequestState | None:
        async with self._session("get") as session:
            record = await session.get(JoinRequestRecord, request_id)
            if record is None or record.timestamp < self._cutoff():
                return None
            return _to_state(record)

    async def set_user_active_request(self, user_id: int, request_id: str) -> None:
        async with self._session("set_user_active_request") as session:
            await session.merge(ActiveRequestPointer(user_id=user_id, request_id=request_id))

    async def clear_user_active_request(self, user_id: int) -> None:
        async with self._session("clear_user_active_request") as session:
            await session.execute(
                delete(ActiveRequestPointer)
                .where(ActiveRequestPointer.user_id == user_id)
                .execution_options(synchronize_session=False)
            )

    async def get_active_request_id_by_user_id(self, user_id: int) -> str | None:
        async with self._session("get_active_request_id_by_user_id") as session:
            pointer = await session.get(ActiveRequestPointer, user_id)
            if pointer is None:
                return None

            record = await session.get(JoinRequestRecord, pointer.request_id)
            if (
                record is None
                or record.timestamp < self._cutoff()
                or record.decision_status is not None
            ):
                await session.delete(pointer)
                return None

            return pointer.request_id

    async def add_to_timeline(self, request_id: str, timestamp: datetime) -> None:
        # The table itself is the timeline; the row is written by set()
        return None

    async def get_recent_requests(
        self, limit: int, status: RequestStatusFilter | None = None
    ) -> list[str]:
        stmt = select(JoinRequestRecord.request_id).where(
            JoinRequestRecord.timestamp >= self._cutoff()
        )
        if status == "completed":
            stmt = stmt.where(JoinRequestRecord.decision_status.is_not(None))
        elif status == "pending":
            stmt = stmt.where(JoinRequestRecord.decision_status.is_(None))

        stmt = stmt.order_by(JoinRequestRecord.request_id.desc()).limit(limit)

        async with self._session("get_recent_requests") as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def purge_expired(self) -> int:
        async with self._session("purge_expired") as session:
            result = await session.execute(
                delete(JoinRequestRecord)
                .where(JoinRequestRecord.timestamp < self._cutoff())
                .execution_options(synchronize_session=False)
            )
            purged = result.rowcount or 0

            live_ids = select(JoinRequestRecord.request_id).where(
                JoinRequestRecord.decision_status.is_(None)
            )
            await session.execute(
                delete(ActiveRequestPointer)
                .where(ActiveRequestPointer.request_id.not_in(live_ids))
                .execution_options(synchronize_session=False)
            )

        if purged:
            logger.info(f"Purged {purged} expired request(s) from SQL store")
        return purged
