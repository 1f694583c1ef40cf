"""Telegram Bot API delivery."""

from telegram_alerts.telegram.client import TelegramClient, TelegramError

__all__ = [
    "TelegramClient",
    "TelegramError",
]
