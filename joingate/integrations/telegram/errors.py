"""Error reporting helpers for the Telegram integration."""

import logging

from ...messages import get_message
from .client import ChatApi, TelegramAPIError

logger = logging.getLogger(__name__)


def is_message_not_modified_error(error: Exception) -> bool:
    """Telegram rejects edits that would leave a message unchanged."""
    return isinstance(error, TelegramAPIError) and "message is not modified" in error.description


async def send_error_to_admin_group(
    bot: ChatApi,
    admin_chat_id: int,
    error: BaseException | str,
    context: str,
) -> None:
    """Post an error notice to the moderator chat. Never raises."""
    description = str(error) or type(error).__name__
    text = get_message("admin-alert", context=context, error=description)

    try:
        await bot.send_message(admin_chat_id, text, parse_mode=None)
    except TelegramAPIError as e:
        logger.error(f"Failed to send error to admin group: {e}")
