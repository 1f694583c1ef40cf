"""Data models for the webhook server."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InvalidAlertError(ValueError):
    """Raised when a decoded alert is missing required content."""


class AlertPayload(BaseModel):
    """A TradingView alert as posted to the webhook.

    Only ``message`` is mandatory. The other fields are free-form strings
    and are left out of the relayed text when empty. The ticker arrives in
    the ``tick`` key.

    Attributes:
        message: Alert text written in the TradingView alert dialog.
        ticker: Instrument symbol, e.g. ``BTCUSD``.
        time: Alert timestamp, passed through unparsed.
        interval: Chart interval label, e.g. ``1h``.
    """

    model_config = ConfigDict(
        frozen=True,
        strict=True,
        extra="ignore",
    )

    message: str = ""
    ticker: str = Field(default="", alias="tick")
    time: str = ""
    interval: str = ""

    @field_validator("message", "ticker", "time", "interval", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        """Treat JSON null like a missing key."""
        return "" if v is None else v

    def check_required_fields(self) -> None:
        """Raise InvalidAlertError unless the message has visible content."""
        if not self.message.strip():
            raise InvalidAlertError("message is required")
