"""Constructors for ready-to-use services."""

from __future__ import annotations

import logging
from collections.abc import Iterable

import httpx

from notifyhub.config import Settings, get_settings
from notifyhub.notifications.base import body_only_renderer
from notifyhub.notifications.ntfy import NtfyAdapter, NtfyOptions
from notifyhub.notifications.service import Service, ServiceOptions
from notifyhub.notifications.telegram import (
    ParseMode,
    TelegramAdapter,
    TelegramOptions,
)


def new_ntfy_service(
    token: str = "",
    *,
    recipients: Iterable[str] = (),
    options: ServiceOptions | None = None,
    ntfy_options: NtfyOptions | None = None,
    client: httpx.AsyncClient | None = None,
) -> Service[str]:
    """Build an ntfy service. Topics are the recipients.

    The subject is published as the ntfy title, so the default renderer
    keeps only the body.
    """

    adapter = NtfyAdapter(token, options=ntfy_options, client=client)
    return Service(
        adapter,
        recipients=recipients,
        options=options or ServiceOptions(renderer=body_only_renderer),
    )


def new_telegram_service(
    token: str,
    *,
    recipients: Iterable[int] = (),
    options: ServiceOptions | None = None,
    telegram_options: TelegramOptions | None = None,
    client: httpx.AsyncClient | None = None,
) -> Service[int]:
    """Build a Telegram service. Chat IDs are the recipients."""

    adapter = TelegramAdapter(token, options=telegram_options, client=client)
    return Service(adapter, recipients=recipients, options=options)


def _service_options(
    settings: Settings, logger: logging.Logger | None, **overrides: object
) -> ServiceOptions:
    return ServiceOptions(
        dry_run=settings.dispatch_dry_run,
        continue_on_err=settings.dispatch_continue_on_error,
        concurrency=settings.dispatch_concurrency,
        timeout=settings.dispatch_timeout_seconds,
        logger=logger,
        **overrides,
    )


def ntfy_service_from_settings(
    settings: Settings | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    logger: logging.Logger | None = None,
) -> Service[str]:
    settings = settings or get_settings()
    return new_ntfy_service(
        settings.ntfy_token,
        recipients=settings.ntfy_topics,
        options=_service_options(settings, logger, renderer=body_only_renderer),
        ntfy_options=NtfyOptions(
            api_base_url=settings.ntfy_api_base_url,
            priority=settings.ntfy_priority,
            tags=tuple(settings.ntfy_tags),
            timeout_seconds=settings.request_timeout_seconds,
        ),
        client=client,
    )


def telegram_service_from_settings(
    settings: Settings | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    logger: logging.Logger | None = None,
) -> Service[int]:
    settings = settings or get_settings()
    return new_telegram_service(
        settings.telegram_bot_token,
        recipients=settings.telegram_chat_ids,
        options=_service_options(settings, logger),
        telegram_options=TelegramOptions(
            parse_mode=ParseMode(settings.telegram_parse_mode),
            timeout_seconds=settings.request_timeout_seconds,
        ),
        client=client,
    )


__all__ = [
    "new_ntfy_service",
    "new_telegram_service",
    "ntfy_service_from_settings",
    "telegram_service_from_settings",
]
