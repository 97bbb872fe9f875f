"""Notification services: a fan-out dispatcher over pluggable backends."""

from notifyhub.notifications.base import (
    BackendAdapter,
    MessageContext,
    MessageRenderer,
    RenderedMessage,
    body_only_renderer,
    default_renderer,
)
from notifyhub.notifications.dispatcher import DispatchOutcome, RecipientFailure, dispatch
from notifyhub.notifications.errors import (
    AdapterError,
    AuthenticationError,
    ConfigurationError,
    DispatchCancelledError,
    DispatchError,
    NotificationError,
    RateLimitedError,
    RecipientRejectedError,
    TransportError,
)
from notifyhub.notifications.factory import (
    new_ntfy_service,
    new_telegram_service,
    ntfy_service_from_settings,
    telegram_service_from_settings,
)
from notifyhub.notifications.ntfy import NtfyAdapter, NtfyOptions
from notifyhub.notifications.service import Service, ServiceOptions, ServiceState
from notifyhub.notifications.telegram import TelegramAdapter, TelegramOptions

__all__ = [
    "AdapterError",
    "AuthenticationError",
    "BackendAdapter",
    "ConfigurationError",
    "DispatchCancelledError",
    "DispatchError",
    "DispatchOutcome",
    "MessageContext",
    "MessageRenderer",
    "NotificationError",
    "NtfyAdapter",
    "NtfyOptions",
    "RateLimitedError",
    "RecipientFailure",
    "RecipientRejectedError",
    "RenderedMessage",
    "Service",
    "ServiceOptions",
    "ServiceState",
    "TelegramAdapter",
    "TelegramOptions",
    "TransportError",
    "body_only_renderer",
    "default_renderer",
    "dispatch",
    "new_ntfy_service",
    "new_telegram_service",
    "ntfy_service_from_settings",
    "telegram_service_from_settings",
]
