"""Telegram Bot API integration."""

from .client import ChatApi, TelegramAPIError, TelegramBotClient

__all__ = ["TelegramBotClient", "TelegramAPIError", "ChatApi"]
