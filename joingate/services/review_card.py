"""
Review card: the moderator-facing message for one join request.

Provides:
- ReviewCards: static builders for the pending and decided renderings
- post/append/update helpers that talk to the moderator chat

The helpers are best-effort: failures are logged, never raised.
"""

import html
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Literal, TypeVar

from ..core.config import Settings
from ..core.dates import format_date
from ..domain.join_request import JoinRequestContext
from ..integrations.telegram.client import ChatApi, TelegramAPIError
from ..integrations.telegram.errors import is_message_not_modified_error
from ..messages import get_message

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ReviewCardData:
    """What a moderator sees about a request."""
    request_id: str
    user_id: int
    display_name: str
    reason: str
    timestamp: datetime
    username: str | None = None
    additional_messages: list[str] = field(default_factory=list)

    @classmethod
    def from_context(cls, context: JoinRequestContext) -> "ReviewCardData":
        return cls(
            request_id=context.request_id,
            user_id=context.user_id,
            display_name=context.display_name,
            reason=context.reason or "",
            timestamp=context.timestamp,
            username=context.username,
            additional_messages=list(context.additional_messages),
        )


class ReviewCards:
    """Text and keyboard builders for review cards (HTML parse mode)."""

    @staticmethod
    def _user_line(data: ReviewCardData) -> str:
        handle = f" (@{html.escape(data.username)})" if data.username else ""
        return get_message("card-user", name=html.escape(data.display_name)) + handle

    @staticmethod
    def keyboard(request_id: str) -> dict:
        return {
            "inline_keyboard": [[
                {"text": get_message("button-approve"), "callback_data": f"approve_{request_id}"},
                {"text": get_message("button-decline"), "callback_data": f"decline_{request_id}"},
            ]]
        }

    @staticmethod
    def pending_text(data: ReviewCardData, timezone: str) -> str:
        lines = [
            get_message("card-title-pending"),
            "",
            ReviewCards._user_line(data),
            get_message("card-id", user_id=data.user_id),
            get_message("card-time", time=format_date(data.timestamp, timezone)),
            "",
            get_message("card-reason"),
            html.escape(data.reason),
        ]
        for message in data.additional_messages:
            lines.extend(["", html.escape(message)])
        return "\n".join(lines)

    @staticmethod
    def decided_text(
        data: ReviewCardData,
        status: Literal["approved", "declined"],
        admin_name: str,
    ) -> str:
        lines = [
            get_message(f"card-title-{status}"),
            "",
            ReviewCards._user_line(data),
            get_message("card-id", user_id=data.user_id),
            "",
            get_message("card-reason"),
            html.escape(data.reason),
            "",
            "---",
            get_message(f"card-decided-by-{status}", admin_name=html.escape(admin_name or "Unknown")),
        ]
        return "\n".join(lines)


# =============================================================================
# MODERATOR CHAT OPERATIONS
# =============================================================================


async def _with_admin_chat_retry(
    settings: Settings,
    fn: Callable[[int], Awaitable[T]],
) -> T | None:
    """Run `fn` against the moderator chat, retrying once if the group was migrated."""
    chat_id = settings.admin_review_chat_id
    try:
        return await fn(chat_id)
    except TelegramAPIError as e:
        new_chat_id = e.migrate_to_chat_id
        if new_chat_id is None:
            raise

        logger.warning(
            f"Moderator chat {chat_id} was upgraded to supergroup {new_chat_id}. "
            f"Update ADMIN_REVIEW_CHAT_ID."
        )
        try:
            return await fn(new_chat_id)
        except TelegramAPIError as retry_error:
            logger.error(f"Error after chat migration to {new_chat_id}: {retry_error}")
            return None


async def post_review_card(bot: ChatApi, data: ReviewCardData, settings: Settings) -> int | None:
    """Send a pending card. Returns its message id, or None if it could not be posted."""
    text = ReviewCards.pending_text(data, settings.timezone)

    async def send(chat_id: int) -> int:
        message = await bot.send_message(chat_id, text, reply_markup=ReviewCards.keyboard(data.request_id))
        return message["message_id"]

    try:
        return await _with_admin_chat_retry(settings, send)
    except TelegramAPIError as e:
        logger.error(f"Error posting review card for user {data.user_id}: {e}")
        return None


async def append_message_to_review_card(
    bot: ChatApi,
    message_id: int,
    data: ReviewCardData,
    settings: Settings,
) -> None:
    """Re-render a pending card after the requester sent a follow-up message."""
    text = ReviewCards.pending_text(data, settings.timezone)

    async def edit(chat_id: int) -> None:
        await bot.edit_message_text(chat_id, message_id, text, reply_markup=ReviewCards.keyboard(data.request_id))

    try:
        await _with_admin_chat_retry(settings, edit)
    except TelegramAPIError as e:
        if is_message_not_modified_error(e):
            return
        logger.error(f"Error appending message to review card {message_id} (user {data.user_id}): {e}")


async def update_review_card(
    bot: ChatApi,
    message_id: int,
    status: Literal["approved", "declined"],
    admin_name: str,
    data: ReviewCardData,
    settings: Settings,
) -> None:
    """Replace a card with its decided rendering and drop the buttons."""
    text = ReviewCards.decided_text(data, status, admin_name)

    async def edit(chat_id: int) -> None:
        await bot.edit_message_text(chat_id, message_id, text)

    try:
        await _with_admin_chat_retry(settings, edit)
    except TelegramAPIError as e:
        if is_message_not_modified_error(e):
            return
        logger.error(f"Error updating review card {message_id} to {status}: {e}")
