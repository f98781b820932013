"""Moderator authorization checks against live chat membership."""

import asyncio
import logging

from ..core.config import Settings
from ..integrations.telegram.client import ChatApi, TelegramAPIError

logger = logging.getLogger(__name__)

ADMIN_STATUSES = frozenset({"creator", "administrator"})


async def is_admin_in_chat(bot: ChatApi, chat_id: int, user_id: int) -> bool:
    """True if the user is owner or administrator of the chat. API errors propagate."""
    member = await bot.get_chat_member(chat_id, user_id)
    return member.get("status") in ADMIN_STATUSES


async def is_admin_in_both_chats(bot: ChatApi, user_id: int, settings: Settings) -> bool:
    """
    True only if the user administers both the target chat and the moderator chat.

    Both lookups run concurrently. Any lookup failure means "not authorized".
    """
    try:
        is_target_admin, is_review_admin = await asyncio.gather(
            is_admin_in_chat(bot, settings.target_chat_id, user_id),
            is_admin_in_chat(bot, settings.admin_review_chat_id, user_id),
        )
    except TelegramAPIError as e:
        logger.error(f"Error checking admin status for user {user_id}: {e}")
        return False

    return is_target_admin and is_review_admin


async def can_use_admin_commands(bot: ChatApi, chat: dict, user_id: int, settings: Settings) -> bool:
    """Admin commands are open in the moderator chat, and in private to its admins."""
    if chat.get("id") == settings.admin_review_chat_id:
        return True

    if chat.get("type") == "private":
        try:
            return await is_admin_in_chat(bot, settings.admin_review_chat_id, user_id)
        except TelegramAPIError as e:
            logger.error(f"Failed to verify admin status for user {user_id}: {e}")

    return False
