"""joingate: moderated join requests for Telegram group chats."""

__version__ = "1.0.0"
