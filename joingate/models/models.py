"""SQLAlchemy ORM models for the durable state store.

One row per join request, plus one pointer row per requester that has an
undecided request.
"""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class JoinRequestRecord(Base):
    """Serialized JoinRequestContext, keyed by its time-ordered request id."""

    __tablename__ = "join_requests"

    # ULIDs sort lexicographically by creation time
    request_id: Mapped[str] = mapped_column(String(26), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    target_chat_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    additional_messages: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    admin_msg_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(nullable=False, index=True)

    # Decision (all NULL while undecided)
    decision_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    decision_admin_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    decision_admin_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    decision_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "decision_status IS NULL OR decision_status IN ('approved', 'declined')",
            name="valid_decision_status",
        ),
        Index("ix_join_requests_decision_status_request_id", "decision_status", "request_id"),
    )

    def __repr__(self) -> str:
        return f"<JoinRequestRecord {self.request_id} user={self.user_id} decision={self.decision_status}>"


class ActiveRequestPointer(Base):
    """Routes a requester's free-text messages to their undecided request."""

    __tablename__ = "active_requests"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    request_id: Mapped[str] = mapped_column(String(26), nullable=False)
