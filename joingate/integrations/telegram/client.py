"""Telegram Bot API client.

Talks to the Bot API over HTTPS directly (no SDK dependency). Every method
returns the decoded `result` field or raises `TelegramAPIError`.
"""

import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)


class TelegramAPIError(Exception):
    """The Bot API answered ok=false, or the request never completed."""

    def __init__(
        self,
        description: str,
        error_code: int | None = None,
        parameters: dict | None = None,
        method: str | None = None,
    ):
        super().__init__(description)
        self.description = description
        self.error_code = error_code
        self.parameters = parameters or {}
        self.method = method

    @property
    def migrate_to_chat_id(self) -> int | None:
        return self.parameters.get("migrate_to_chat_id")

    def __str__(self) -> str:
        prefix = f"{self.method}: " if self.method else ""
        code = f" ({self.error_code})" if self.error_code is not None else ""
        return f"{prefix}{self.description}{code}"


class ChatApi(Protocol):
    """The subset of the Bot API the workflow depends on."""

    async def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: str | None = "HTML",
        reply_markup: dict | None = None,
    ) -> dict: ...

    async def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        parse_mode: str | None = "HTML",
        reply_markup: dict | None = None,
    ) -> dict | bool: ...

    async def answer_callback_query(
        self, callback_query_id: str, text: str | None = None, show_alert: bool = False
    ) -> bool: ...

    async def get_chat_member(self, chat_id: int, user_id: int) -> dict: ...

    async def approve_chat_join_request(self, chat_id: int, user_id: int) -> bool: ...

    async def decline_chat_join_request(self, chat_id: int, user_id: int) -> bool: ...


class TelegramBotClient:
    """
    Minimal async Bot API client.

    Pass an `httpx` transport to route requests somewhere other than the
    network (tests use `httpx.MockTransport`).
    """

    BASE_URL = "https://api.telegram.org"

    def __init__(
        self,
        token: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ):
        self.token = token
        self._transport = transport
        self._timeout = timeout

    @property
    def api_url(self) -> str:
        return f"{self.BASE_URL}/bot{self.token}"

    async def call(self, method: str, **params: Any) -> Any:
        """Invoke a Bot API method. Parameters that are None are omitted."""
        payload = {key: value for key, value in params.items() if value is not None}

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.post(f"{self.api_url}/{method}", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Telegram request {method} failed: {type(e).__name__}")
            raise TelegramAPIError(f"Request failed: {type(e).__name__}", method=method) from e

        try:
            data = response.json()
        except ValueError as e:
            raise TelegramAPIError(
                f"Invalid response body (HTTP {response.status_code})",
                error_code=response.status_code,
                method=method,
            ) from e

        if not data.get("ok"):
            raise TelegramAPIError(
                data.get("description", "Unknown error"),
                error_code=data.get("error_code", response.status_code),
                parameters=data.get("parameters"),
                method=method,
            )

        return data.get("result")

    # =========================================================================
    # MESSAGES
    # =========================================================================

    async def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: str | None = "HTML",
        reply_markup: dict | None = None,
    ) -> dict:
        return await self.call(
            "sendMessage",
            chat_id=chat_id,
            text=text,
            parse_mode=parse_mode,
            reply_markup=reply_markup,
            disable_web_page_preview=True,
        )

    async def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        parse_mode: str | None = "HTML",
        reply_markup: dict | None = None,
    ) -> dict | bool:
        return await self.call(
            "editMessageText",
            chat_id=chat_id,
            message_id=message_id,
            text=text,
            parse_mode=parse_mode,
            reply_markup=reply_markup,
            disable_web_page_preview=True,
        )

    async def answer_callback_query(
        self, callback_query_id: str, text: str | None = None, show_alert: bool = False
    ) -> bool:
        return await self.call(
            "answerCallbackQuery",
            callback_query_id=callback_query_id,
            text=text,
            show_alert=show_alert,
        )

    # =========================================================================
    # CHAT MEMBERSHIP
    # =========================================================================

    async def get_chat_member(self, chat_id: int, user_id: int) -> dict:
        return await self.call("getChatMember", chat_id=chat_id, user_id=user_id)

    async def approve_chat_join_request(self, chat_id: int, user_id: int) -> bool:
        return await self.call("approveChatJoinRequest", chat_id=chat_id, user_id=user_id)

    async def decline_chat_join_request(self, chat_id: int, user_id: int) -> bool:
        return await self.call("declineChatJoinRequest", chat_id=chat_id, user_id=user_id)

    # =========================================================================
    # WEBHOOK
    # =========================================================================

    async def set_webhook(
        self,
        url: str,
        secret_token: str | None = None,
        drop_pending_updates: bool = False,
        allowed_updates: list[str] | None = None,
    ) -> bool:
        return await self.call(
            "setWebhook",
            url=url,
            secret_token=secret_token,
            drop_pending_updates=drop_pending_updates,
            allowed_updates=allowed_updates,
        )

    async def get_webhook_info(self) -> dict:
        return await self.call("getWebhookInfo")

    async def delete_webhook(self, drop_pending_updates: bool = False) -> bool:
        return await self.call("deleteWebhook", drop_pending_updates=drop_pending_updates)
