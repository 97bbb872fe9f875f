"""Backend-agnostic service facade."""

from __future__ import annotations

import dataclasses
import enum
import logging
import threading
from collections.abc import Hashable, Iterable, Mapping, MutableMapping
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Generic, TypeVar

from notifyhub.notifications.base import (
    BackendAdapter,
    MessageContext,
    MessageRenderer,
    RenderedMessage,
    default_renderer,
)
from notifyhub.notifications.dispatcher import dispatch
from notifyhub.notifications.errors import ConfigurationError, DispatchCancelledError

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Hashable)


class ServiceState(enum.Enum):
    CONFIGURED = "configured"
    ACTIVE = "active"


@dataclass(frozen=True, slots=True)
class ServiceOptions:
    """Backend-independent options of a :class:`Service`.

    ``name`` falls back to the adapter's name when left empty.
    """

    name: str = ""
    renderer: MessageRenderer = default_renderer
    dry_run: bool = False
    continue_on_err: bool = False
    concurrency: int = 1
    timeout: float | None = None
    logger: logging.Logger | None = None

    def validate(self) -> None:
        if self.concurrency < 1:
            raise ConfigurationError("concurrency must be at least 1")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        if not callable(self.renderer):
            raise ConfigurationError("renderer must be callable")


class _ServiceLogAdapter(logging.LoggerAdapter):
    """Prefix records with the owning service name."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("service", self.extra["service"])
        kwargs["extra"] = extra
        return f"[{self.extra['service']}] {msg}", kwargs


class Service(Generic[R]):
    """Send one message to every registered recipient of a backend."""

    def __init__(
        self,
        adapter: BackendAdapter[R],
        *,
        recipients: Iterable[R] = (),
        options: ServiceOptions | None = None,
    ) -> None:
        options = options or ServiceOptions()
        if not options.name:
            options = dataclasses.replace(options, name=adapter.name)
        options.validate()

        self._adapter = adapter
        self._options = options
        self._recipients: list[R] = list(recipients)
        self._lock = threading.Lock()
        self._state = ServiceState.CONFIGURED
        self._log = self._bind_logger(options)
        self._log.debug(f"Service created with {len(self._recipients)} recipients")

    @staticmethod
    def _bind_logger(options: ServiceOptions) -> _ServiceLogAdapter:
        return _ServiceLogAdapter(options.logger or logger, {"service": options.name})

    @property
    def name(self) -> str:
        return self._options.name

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def options(self) -> ServiceOptions:
        return self._options

    @property
    def adapter(self) -> BackendAdapter[R]:
        return self._adapter

    @property
    def recipients(self) -> tuple[R, ...]:
        with self._lock:
            return tuple(self._recipients)

    def add_recipients(self, *recipients: R) -> None:
        """Register more recipients. There is no removal."""

        with self._lock:
            self._recipients.extend(recipients)
            total = len(self._recipients)
        self._log.debug(f"Recipients added: count={len(recipients)} total={total}")

    def configure(self, **changes: Any) -> ServiceOptions:
        """Replace option fields atomically and return the new options."""

        with self._lock:
            try:
                updated = dataclasses.replace(self._options, **changes)
            except TypeError as exc:
                raise ConfigurationError(f"Unknown service option: {exc}") from exc
            if not updated.name:
                updated = dataclasses.replace(updated, name=self._adapter.name)
            updated.validate()
            self._options = updated
            self._log = self._bind_logger(updated)
        for key in sorted(changes):
            self._log.debug(f"Option set: {key}")
        return updated

    async def send(
        self,
        subject: str,
        message: str,
        *,
        metadata: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> None:
        """Render ``subject``/``message`` once and deliver to every recipient.

        Args:
            subject: Message subject or title.
            message: Message body.
            metadata: Extra values handed to the renderer.
            timeout: Seconds allowed for the whole fan-out; overrides the
                ``timeout`` option for this call.

        Raises:
            DispatchError: At least one recipient failed.
            DispatchCancelledError: The timeout expired mid fan-out.
        """

        with self._lock:
            options = self._options
            recipients = tuple(self._recipients)
            log = self._log
            self._state = ServiceState.ACTIVE

        context = MessageContext(
            service_name=options.name,
            recipient_count=len(recipients),
            metadata=dict(metadata or {}),
        )
        rendered = RenderedMessage(
            subject=subject, text=options.renderer(subject, message, context)
        )

        if options.dry_run:
            log.info(f"Dry run, skipping delivery to {len(recipients)} recipients")

        try:
            outcome = await dispatch(
                recipients,
                rendered,
                self._adapter,
                continue_on_err=options.continue_on_err,
                dry_run=options.dry_run,
                concurrency=options.concurrency,
                timeout=timeout if timeout is not None else options.timeout,
            )
        except DispatchCancelledError as exc:
            log.warning(
                f"Send cancelled after {exc.attempted} attempts, "
                f"{len(exc.pending)} recipients pending"
            )
            raise

        for failure in outcome.failures:
            log.warning(f"Send to {failure.recipient!r} failed: {failure.error}")
        if outcome.ok and not outcome.dry_run:
            log.info(f"Message sent to {outcome.attempted} recipients")
        outcome.raise_for_failures()

    async def aclose(self) -> None:
        await self._adapter.aclose()

    async def __aenter__(self) -> Service[R]:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


__all__ = ["Service", "ServiceOptions", "ServiceState"]
