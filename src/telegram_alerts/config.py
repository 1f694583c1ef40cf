"""Configuration management service with Pydantic Settings.

Settings are read from environment variables (and a ``.env`` file), with an
optional TOML file layered on top:

```toml
[telegram]
bot_token = "123456:ABC"
chat_id = "-100200300"

[server]
addr = ":8080"
```
"""

from __future__ import annotations

import logging
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_BASE_URL = "https://api.telegram.org"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080


class TelegramSettings(BaseSettings):
    """Telegram Bot API credentials and transport settings."""

    model_config = SettingsConfigDict(
        env_prefix="TELEGRAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    bot_token: SecretStr = Field(
        alias="TELEGRAM_BOT_TOKEN",
        description="Telegram bot token",
    )
    chat_id: str = Field(
        alias="TELEGRAM_CHAT_ID",
        description="Chat or channel ID that receives alerts",
    )
    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL,
        alias="TELEGRAM_API_BASE_URL",
        description="Telegram Bot API base URL",
    )
    request_timeout: float = Field(
        default=10.0,
        alias="TELEGRAM_REQUEST_TIMEOUT",
        description="Per-request HTTP timeout in seconds",
        gt=0,
    )

    @field_validator("bot_token")
    @classmethod
    def validate_bot_token(cls, v: SecretStr) -> SecretStr:
        """Reject an empty bot token."""
        if not v.get_secret_value().strip():
            raise ValueError("telegram bot token is required")
        return v

    @field_validator("chat_id", mode="before")
    @classmethod
    def validate_chat_id(cls, v: Any) -> str:
        """Reject an empty chat ID; numeric IDs from TOML become strings."""
        chat_id = str(v).strip() if v is not None else ""
        if not chat_id:
            raise ValueError("telegram chat id is required")
        return chat_id

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Validate API base URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Telegram API base URL must be an HTTP(S) endpoint")
        return v


class ServerSettings(BaseSettings):
    """Inbound webhook server settings."""

    model_config = SettingsConfigDict(
        env_prefix="SERVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    host: str = Field(
        default=DEFAULT_HOST,
        alias="SERVER_HOST",
        description="Interface to listen on",
    )
    port: int = Field(
        default=DEFAULT_PORT,
        alias="SERVER_PORT",
        description="TCP port to listen on",
        ge=1,
        le=65535,
    )
    delivery_timeout: float = Field(
        default=5.0,
        alias="SERVER_DELIVERY_TIMEOUT",
        description="Upper bound in seconds for relaying one alert",
        gt=0,
    )
    shutdown_timeout: float = Field(
        default=5.0,
        alias="SERVER_SHUTDOWN_TIMEOUT",
        description="Grace period in seconds for in-flight requests on shutdown",
        gt=0,
    )
    client_max_size: int = Field(
        default=1024**2,
        alias="SERVER_CLIENT_MAX_SIZE",
        description="Maximum accepted request body size in bytes",
        gt=0,
    )


class Settings(BaseSettings):
    """Main application settings.

    Example:
        ```python
        from telegram_alerts.config import get_settings

        settings = get_settings()
        print(settings.server.port)
        print(settings.telegram.chat_id)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str]:
        """Get a summary of settings with the bot token masked."""
        return {
            "telegram_bot_token": self._redact_token(self.telegram.bot_token),
            "telegram_chat_id": self.telegram.chat_id,
            "telegram_api_base_url": self.telegram.api_base_url,
            "listen_address": f"{self.server.host}:{self.server.port}",
            "delivery_timeout": str(self.server.delivery_timeout),
            "shutdown_timeout": str(self.server.shutdown_timeout),
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_token(token: SecretStr) -> str:
        """Keep only the bot ID part of a ``<id>:<secret>`` token."""
        bot_id, sep, _ = token.get_secret_value().partition(":")
        if sep:
            return f"{bot_id}:***"
        return "***"


def parse_listen_address(addr: str) -> tuple[str, int]:
    """Split a ``host:port`` listen address; an empty host means all interfaces.

    Raises:
        ValueError: If the port part is missing or not a number.
    """
    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid listen address {addr!r}, expected host:port")
    return host.strip("[]") or DEFAULT_HOST, int(port)


def load_settings(config_file: str | Path | None = None) -> Settings:
    """Build settings from the environment, overlaid with a TOML file if given.

    Raises:
        OSError: If the config file cannot be read.
        tomllib.TOMLDecodeError: If the config file is not valid TOML.
        ValidationError: If required values are missing or invalid.
    """
    if config_file is None:
        return Settings()

    with Path(config_file).open("rb") as f:
        data = tomllib.load(f)

    server_data = dict(data.get("server", {}))
    addr = server_data.pop("addr", None)
    if addr:
        server_data["host"], server_data["port"] = parse_listen_address(addr)

    overrides = {k: v for k, v in data.items() if k not in ("telegram", "server")}
    return Settings(
        telegram=TelegramSettings(**data.get("telegram", {})),
        server=ServerSettings(**server_data),
        **overrides,
    )


@lru_cache(maxsize=1)
def get_settings(config_file: str | None = None) -> Settings:
    """Get the application settings singleton.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return load_settings(config_file)


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
