"""ntfy push gateway adapter."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
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

DEFAULT_API_BASE_URL: Final = "https://ntfy.sh/"
DEFAULT_TIMEOUT_SECONDS: Final = 10.0
# ntfy error codes for an invalid or disallowed topic
_TOPIC_ERROR_CODES: Final = frozenset({40009, 40010})


class Priority(enum.IntEnum):
    MIN = 1
    LOW = 2
    DEFAULT = 3
    HIGH = 4
    MAX = 5


class Mode(str, enum.Enum):
    """How ntfy should treat the message body."""

    TEXT = "text/plain"
    MARKDOWN = "text/markdown"


@dataclass(frozen=True, slots=True)
class ClickAction:
    """An action button attached to a notification."""

    label: str
    url: str
    action: str = "view"

    def as_payload(self) -> dict[str, str]:
        return {"action": self.action, "label": self.label, "url": self.url}


@dataclass(frozen=True, slots=True)
class NtfyOptions:
    """ntfy-specific tuning, applied to every message the adapter sends."""

    api_base_url: str = DEFAULT_API_BASE_URL
    parse_mode: Mode = Mode.TEXT
    priority: int = Priority.DEFAULT
    tags: tuple[str, ...] = ()
    icon: str = ""
    delay: str = ""
    click_action: str = ""
    actions: tuple[ClickAction, ...] = field(default_factory=tuple)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS


def _validate_base_url(raw: str) -> str:
    try:
        url = httpx.URL(raw)
    except (httpx.InvalidURL, TypeError) as exc:
        raise ConfigurationError(f"Invalid ntfy API base URL: {raw!r}") from exc
    if url.scheme not in {"http", "https"} or not url.host:
        raise ConfigurationError(f"Invalid ntfy API base URL: {raw!r}")
    return raw


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _error_body(response: httpx.Response) -> tuple[int | None, str]:
    try:
        body = response.json()
    except ValueError:
        return None, response.text.strip() or response.reason_phrase
    if not isinstance(body, dict):
        return None, response.reason_phrase
    code = body.get("code")
    detail = str(body.get("error") or response.reason_phrase)
    return (code if isinstance(code, int) else None), detail


def _is_topic_error(code: int | None, detail: str) -> bool:
    return code in _TOPIC_ERROR_CODES or "topic" in detail.lower()


def _error_from_response(response: httpx.Response, topic: str) -> AdapterError:
    status = response.status_code
    code, detail = _error_body(response)
    message = f"ntfy rejected topic {topic!r}: {status} {detail}"
    if status in (401, 403):
        return AuthenticationError(message, recipient=topic, status_code=status)
    if status == 429:
        return RateLimitedError(
            message,
            recipient=topic,
            status_code=status,
            retry_after=_retry_after(response),
        )
    if status == 400 and _is_topic_error(code, detail):
        return RecipientRejectedError(message, recipient=topic, status_code=status)
    return AdapterError(message, recipient=topic, status_code=status)


class NtfyAdapter:
    """Publish messages to ntfy topics through the JSON publishing API."""

    name = "ntfy"

    def __init__(
        self,
        token: str = "",
        *,
        options: NtfyOptions | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        options = options or NtfyOptions()
        self._url = _validate_base_url(options.api_base_url)
        if options.priority not in set(Priority):
            raise ConfigurationError(
                f"ntfy priority must be between {Priority.MIN} and {Priority.MAX}"
            )
        try:
            parse_mode = Mode(options.parse_mode)
        except ValueError as exc:
            raise ConfigurationError(
                f"Unsupported ntfy parse mode: {options.parse_mode!r}"
            ) from exc

        self._options = options
        self._markdown = parse_mode is Mode.MARKDOWN
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(options.timeout_seconds)
        )

    @property
    def options(self) -> NtfyOptions:
        return self._options

    def build_payload(self, topic: str, rendered: RenderedMessage) -> dict[str, Any]:
        options = self._options
        payload: dict[str, Any] = {
            "topic": topic,
            "title": rendered.subject,
            "message": rendered.text,
            "tags": list(options.tags),
            "priority": int(options.priority),
            "markdown": self._markdown,
        }
        if options.actions:
            payload["actions"] = [action.as_payload() for action in options.actions]
        if options.click_action:
            payload["click"] = options.click_action
        if options.delay:
            payload["delay"] = options.delay
        if options.icon:
            payload["icon"] = options.icon
        return payload

    async def send_one(self, recipient: str, rendered: RenderedMessage) -> None:
        if not isinstance(recipient, str) or not recipient.strip():
            raise RecipientRejectedError(
                f"ntfy topic must be a non-empty string, got {recipient!r}",
                recipient=recipient,
            )

        payload = self.build_payload(recipient, rendered)
        try:
            response = await self._client.post(
                self._url, json=payload, headers=self._headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise _error_from_response(exc.response, recipient) from exc
        except httpx.TransportError as exc:
            raise TransportError(
                f"Failed to reach ntfy at {self._url}: {exc}", recipient=recipient
            ) from exc

        logger.debug(f"ntfy message published to topic={recipient}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["ClickAction", "Mode", "NtfyAdapter", "NtfyOptions", "Priority"]
