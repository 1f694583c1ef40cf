"""Render alert payloads as Telegram message text."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from telegram_alerts.server.models import AlertPayload


def format_alert(payload: AlertPayload) -> str:
    """Build the message text for an alert.

    The raw message comes first, followed by one ``Label: value`` line per
    non-empty detail in the order Symbol, Interval, Time.

    Example:
        ```
        Heavy volume
        Symbol: BTCUSD
        Interval: 1h
        Time: 2024-06-03T10:00:00Z
        ```
    """
    details = [
        f"{label}: {value}"
        for label, value in (
            ("Symbol", payload.ticker),
            ("Interval", payload.interval),
            ("Time", payload.time),
        )
        if value
    ]

    if not details:
        return payload.message
    return "\n".join([payload.message, *details])
