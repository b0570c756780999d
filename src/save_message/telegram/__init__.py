"""Telegram-specific clients and adapters."""

from .client import BotClient, GatewayError, TelegramClient, TelegramRetryAfter
from .parsing import parse_incoming_update, poll_incoming
from .types import (
    TelegramCallbackQuery,
    TelegramIncomingMessage,
    TelegramIncomingUpdate,
    TelegramMembershipUpdate,
    TelegramSender,
)

__all__ = [
    "BotClient",
    "GatewayError",
    "TelegramCallbackQuery",
    "TelegramClient",
    "TelegramIncomingMessage",
    "TelegramIncomingUpdate",
    "TelegramMembershipUpdate",
    "TelegramRetryAfter",
    "TelegramSender",
    "parse_incoming_update",
    "poll_incoming",
]
