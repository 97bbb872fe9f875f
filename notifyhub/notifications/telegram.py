"""Telegram Bot API adapter."""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import Any, Final

import httpx

from notifyhub.notifications.base import RenderedMessage
from notifyhub.notifications.errors import (
    AdapterError,
    AuthenticationError,
    ConfigurationError,
    RateLimitedError,
    RecipientRejectedError,
    TransportError,
)

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL: Final = "https://api.telegram.org"
DEFAULT_TIMEOUT_SECONDS: Final = 10.0
CHAT_ID_MIN: Final = -(2**63)
CHAT_ID_MAX: Final = 2**63 - 1
_TOKEN_PATTERN: Final = re.compile(r"^\d+:[A-Za-z0-9_-]+$")
_UNKNOWN_CHAT_MARKERS: Final = ("chat not found", "user not found", "chat_id is empty")


class ParseMode(str, enum.Enum):
    PLAIN = ""
    MARKDOWN = "Markdown"
    MARKDOWN_V2 = "MarkdownV2"
    HTML = "HTML"


@dataclass(frozen=True, slots=True)
class TelegramOptions:
    parse_mode: ParseMode = ParseMode.MARKDOWN
    api_base_url: str = DEFAULT_API_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS


def _is_chat_id(value: object) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and CHAT_ID_MIN <= value <= CHAT_ID_MAX
    )


def _read_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _retry_after(body: dict[str, Any]) -> float | None:
    parameters = body.get("parameters")
    if not isinstance(parameters, dict):
        return None
    value = parameters.get("retry_after")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _error_from_body(
    status: int, body: dict[str, Any], chat_id: int
) -> AdapterError:
    description = str(body.get("description") or "Unknown")
    message = f"Telegram rejected chat {chat_id}: {status} {description}"
    if status in (401, 403, 404):
        return AuthenticationError(message, recipient=chat_id, status_code=status)
    if status == 429:
        return RateLimitedError(
            message,
            recipient=chat_id,
            status_code=status,
            retry_after=_retry_after(body),
        )
    if status == 400 and any(
        marker in description.lower() for marker in _UNKNOWN_CHAT_MARKERS
    ):
        return RecipientRejectedError(message, recipient=chat_id, status_code=status)
    return AdapterError(message, recipient=chat_id, status_code=status)


class TelegramAdapter:
    """Send messages to Telegram chats through one bot."""

    name = "telegram"

    def __init__(
        self,
        token: str,
        *,
        options: TelegramOptions | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not token or not _TOKEN_PATTERN.match(token):
            raise ConfigurationError("Telegram bot token is missing or malformed")
        options = options or TelegramOptions()
        try:
            self._parse_mode = ParseMode(options.parse_mode)
        except ValueError as exc:
            raise ConfigurationError(
                f"Unsupported Telegram parse mode: {options.parse_mode!r}"
            ) from exc

        self._options = options
        self._api_url = f"{options.api_base_url.rstrip('/')}/bot{token}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(options.timeout_seconds)
        )

    @property
    def parse_mode(self) -> ParseMode:
        return self._parse_mode

    async def verify(self) -> dict[str, Any]:
        """Check the token against ``getMe`` and return the bot profile."""

        try:
            response = await self._client.get(f"{self._api_url}/getMe")
        except httpx.TransportError as exc:
            raise TransportError(f"Failed to reach Telegram: {exc}") from exc

        body = _read_body(response)
        if response.status_code != 200 or not body.get("ok"):
            raise ConfigurationError(
                "Telegram rejected the bot token: "
                f"{response.status_code} {body.get('description', 'Unknown')}"
            )
        result = body.get("result")
        profile = result if isinstance(result, dict) else {}
        logger.info(f"Telegram bot verified: {profile.get('username')}")
        return profile

    def build_payload(self, chat_id: int, rendered: RenderedMessage) -> dict[str, Any]:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": rendered.text}
        if self._parse_mode is not ParseMode.PLAIN:
            payload["parse_mode"] = self._parse_mode.value
        return payload

    async def send_one(self, recipient: int, rendered: RenderedMessage) -> None:
        if not _is_chat_id(recipient):
            raise RecipientRejectedError(
                f"Telegram chat ID must be a signed 64-bit integer, got {recipient!r}",
                recipient=recipient,
            )

        payload = self.build_payload(recipient, rendered)
        try:
            response = await self._client.post(
                f"{self._api_url}/sendMessage", json=payload
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise _error_from_body(
                exc.response.status_code, _read_body(exc.response), recipient
            ) from exc
        except httpx.TransportError as exc:
            raise TransportError(
                f"Failed to reach Telegram: {exc}", recipient=recipient
            ) from exc

        result = _read_body(response)
        if not result.get("ok"):
            raise _error_from_body(response.status_code, result, recipient)

        logger.debug(f"Telegram message sent to chat_id={recipient}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["ParseMode", "TelegramAdapter", "TelegramOptions"]
