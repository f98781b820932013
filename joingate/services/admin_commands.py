"""Moderator commands: request listings and stale-request cleanup."""

import html
import logging
from typing import Literal

from ..core.config import Settings
from ..core.dates import format_date
from ..domain.join_request import JoinRequest, JoinRequestState
from ..integrations.telegram.client import ChatApi, TelegramAPIError
from ..integrations.telegram.errors import is_message_not_modified_error
from ..messages import get_message
from ..storage.repository import JoinRequestRepository

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 10
MAX_LIST_LIMIT = 20
CLEANUP_LIMIT = 100

STATE_ICONS = {
    JoinRequestState.COLLECTING_REASON: "📝",
    JoinRequestState.AWAITING_REVIEW: "👀",
    JoinRequestState.APPROVED: "✅",
    JoinRequestState.DECLINED: "❌",
}


def parse_limit(argument: str | None) -> int:
    """Listing size from a command argument: default 10, clamped to 1..20."""
    try:
        limit = int((argument or "").strip())
    except ValueError:
        return DEFAULT_LIST_LIMIT
    return max(1, min(limit, MAX_LIST_LIMIT))


def format_request_list(requests: list[JoinRequest], timezone: str) -> str:
    if not requests:
        return get_message("admin-no-requests")

    entries = []
    for request in requests:
        context = request.context
        icon = STATE_ICONS.get(request.state, "⏳")

        lines = [f"{icon} <b>{html.escape(context.display_name)}</b>"]
        if context.username:
            lines[0] += f" (@{html.escape(context.username)})"
        lines.append(f"📅 {format_date(context.timestamp, timezone)}")
        lines.append(f"🆔 <code>{context.request_id[:8]}</code>")
        if context.decision is not None:
            lines.append(f"👮 {html.escape(context.decision.admin_name)}")

        entries.append("\n".join(lines) + "\n\n")

    return "".join(entries)


def dashboard_keyboard() -> dict:
    return {
        "inline_keyboard": [
            [{"text": get_message("admin-button-pending"), "callback_data": "admin:pending"}],
            [{"text": get_message("admin-button-completed"), "callback_data": "admin:completed"}],
        ]
    }


class AdminCommands:
    """Handlers behind /admin, /pending, /completed, /cleanup and the dashboard buttons."""

    def __init__(self, repo: JoinRequestRepository, settings: Settings, bot: ChatApi):
        self.repo = repo
        self.settings = settings
        self.bot = bot

    async def _send(self, chat_id: int, text: str, **kwargs) -> None:
        """Send a command reply. Failures are logged, never raised back to the webhook."""
        try:
            await self.bot.send_message(chat_id, text, **kwargs)
        except TelegramAPIError as e:
            logger.warning(f"Failed to send admin reply to chat {chat_id}: {e}")

    async def dashboard(self, chat_id: int) -> None:
        await self._send(chat_id, get_message("admin-dashboard"), reply_markup=dashboard_keyboard())

    async def listing_text(self, status: Literal["pending", "completed"], limit: int) -> str:
        requests = await self.repo.find_recent_by_status(status, limit)
        title = get_message(f"admin-title-{status}")
        return f"<b>{title}</b>\n\n{format_request_list(requests, self.settings.timezone)}"

    async def list_requests(
        self,
        chat_id: int,
        status: Literal["pending", "completed"],
        argument: str | None = None,
    ) -> None:
        limit = parse_limit(argument)
        await self._send(chat_id, get_message("admin-fetching", limit=limit), parse_mode=None)
        await self._send(chat_id, await self.listing_text(status, limit))

    async def show_listing_in_place(
        self,
        chat_id: int,
        message_id: int,
        status: Literal["pending", "completed"],
    ) -> None:
        """Replace the dashboard message with a listing."""
        text = await self.listing_text(status, DEFAULT_LIST_LIMIT)
        try:
            await self.bot.edit_message_text(chat_id, message_id, text)
        except TelegramAPIError as e:
            if is_message_not_modified_error(e):
                logger.info(f"Listing edit skipped for {status}: message unchanged")
                return
            raise

    async def cleanup(self, chat_id: int, argument: str | None = None) -> int:
        """Preview stale pending requests, or resolve them with `confirm`. Returns the number marked."""
        confirm = (argument or "").strip().lower() == "confirm"
        pending = await self.repo.find_recent_by_status("pending", CLEANUP_LIMIT)

        if confirm:
            if not pending:
                await self._send(chat_id, get_message("admin-cleanup-nothing-to-clean"), parse_mode=None)
                return 0

            request_ids = [request.request_id for request in pending]
            marked = await self.repo.mark_pending_as_stale_resolved(request_ids, "system")
            logger.info(f"Cleanup: marked {marked} of {len(request_ids)} pending request(s) as stale")
            await self._send(chat_id, get_message("admin-cleanup-done", marked=marked), parse_mode=None)
            return marked

        if not pending:
            await self._send(chat_id, get_message("admin-cleanup-none"), parse_mode=None)
            return 0

        listing = format_request_list(pending, self.settings.timezone)
        await self._send(
            chat_id, get_message("admin-cleanup-preview", listing=listing, count=len(pending))
        )
        return 0
