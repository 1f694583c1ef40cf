"""Inbound webhook server."""

from telegram_alerts.server.app import WebhookServer
from telegram_alerts.server.formatter import format_alert
from telegram_alerts.server.handler import Messenger, WebhookHandler
from telegram_alerts.server.models import AlertPayload, InvalidAlertError

__all__ = [
    "AlertPayload",
    "InvalidAlertError",
    "Messenger",
    "WebhookHandler",
    "WebhookServer",
    "format_alert",
]
