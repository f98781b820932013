"""
Update routing: dispatches raw Bot API updates to the workflow.

Handles:
- chat_join_request for the target chat
- private free-text messages from requesters
- moderator commands (/admin, /pending, /completed, /cleanup)
- inline button presses (approve_/decline_ and admin:*)
"""

import logging
import re

from ...core.config import Settings
from ...domain.join_request import AdminAction
from ...messages import get_message
from ...services.admin_commands import AdminCommands
from ...services.authz import can_use_admin_commands
from ...services.join_request_service import JoinRequestService
from .client import ChatApi, TelegramAPIError

logger = logging.getLogger(__name__)

ULID_PATTERN = re.compile(r"^[0-9A-Z]{26}$", re.IGNORECASE)
ADMIN_COMMANDS = frozenset({"admin", "pending", "completed", "cleanup"})


def parse_command(text: str) -> tuple[str, str]:
    """Split "/pending@SomeBot 5" into ("pending", "5")."""
    head, _, argument = text.strip().partition(" ")
    name = head[1:].split("@", 1)[0].lower()
    return name, argument.strip()


class UpdateRouter:
    """Request-scoped dispatcher for one webhook delivery."""

    def __init__(
        self,
        service: JoinRequestService,
        admin: AdminCommands,
        settings: Settings,
        bot: ChatApi,
    ):
        self.service = service
        self.admin = admin
        self.settings = settings
        self.bot = bot

    async def handle(self, update: dict) -> None:
        update_id = update.get("update_id")

        if "chat_join_request" in update:
            await self._on_join_request(update["chat_join_request"])
        elif "message" in update:
            await self._on_message(update["message"])
        elif "callback_query" in update:
            await self._on_callback_query(update["callback_query"])
        else:
            logger.debug(f"Ignoring update {update_id}: no handled payload")

    # =========================================================================
    # JOIN REQUESTS
    # =========================================================================

    async def _on_join_request(self, join_request: dict) -> None:
        chat_id = join_request["chat"]["id"]
        if chat_id != self.settings.target_chat_id:
            logger.info(f"Ignoring join request for unconfigured chat {chat_id}")
            return

        # Errors propagate so the webhook answers 500 and the platform redelivers
        await self.service.initialize_request(
            join_request["from"],
            chat_id,
            join_request.get("user_chat_id"),
        )

    # =========================================================================
    # MESSAGES
    # =========================================================================

    async def _on_message(self, message: dict) -> None:
        text = message.get("text")
        chat = message.get("chat") or {}
        sender = message.get("from")
        if not text or sender is None:
            return

        if text.startswith("/"):
            await self._on_command(chat, sender, text)
            return

        if chat.get("type") != "private":
            return

        logger.info(f"Private message received from user {sender['id']}")
        reply = await self.service.handle_user_message(sender["id"], text)
        if not reply:
            return
        # The message is already applied; a failed reply must not trigger redelivery
        try:
            await self.bot.send_message(chat["id"], reply, parse_mode=None)
        except TelegramAPIError as e:
            logger.warning(f"Failed to reply to user {sender['id']}: {e}")

    async def _on_command(self, chat: dict, sender: dict, text: str) -> None:
        name, argument = parse_command(text)
        if name not in ADMIN_COMMANDS:
            return

        if not await can_use_admin_commands(self.bot, chat, sender["id"], self.settings):
            logger.info(f"Ignoring /{name} from unauthorized user {sender['id']}")
            return

        chat_id = chat["id"]
        if name == "admin":
            await self.admin.dashboard(chat_id)
        elif name in ("pending", "completed"):
            await self.admin.list_requests(chat_id, name, argument)
        else:
            await self.admin.cleanup(chat_id, argument)

    # =========================================================================
    # CALLBACK QUERIES
    # =========================================================================

    async def _on_callback_query(self, query: dict) -> None:
        data = query.get("data") or ""
        sender = query["from"]

        if data in ("admin:pending", "admin:completed"):
            await self._on_dashboard_button(query, data.split(":", 1)[1])
            return

        action_name, _, request_id = data.partition("_")
        if action_name not in ("approve", "decline"):
            await self._answer(query, get_message("invalid-callback"), show_alert=True)
            return

        if not ULID_PATTERN.match(request_id):
            await self._answer(
                query, get_message("invalid-request-id", request_id=request_id), show_alert=True
            )
            return

        admin_name = sender.get("username") or sender.get("first_name") or "Unknown"
        result = await self.service.handle_admin_action(
            request_id.upper(), sender["id"], admin_name, AdminAction(action_name)
        )
        await self._answer(query, result.message, show_alert=not result.ok)

    async def _on_dashboard_button(self, query: dict, status: str) -> None:
        message = query.get("message") or {}
        chat = message.get("chat") or {}

        if not await can_use_admin_commands(self.bot, chat, query["from"]["id"], self.settings):
            await self._answer(query, get_message("not-authorized"))
            return

        await self._answer(query)
        await self.admin.show_listing_in_place(chat["id"], message["message_id"], status)

    async def _answer(self, query: dict, text: str | None = None, show_alert: bool = False) -> None:
        """Answer a callback query; the spinner must stop even if this fails."""
        try:
            await self.bot.answer_callback_query(query["id"], text=text, show_alert=show_alert)
        except TelegramAPIError as e:
            logger.warning(f"Failed to answer callback query {query['id']}: {e}")
