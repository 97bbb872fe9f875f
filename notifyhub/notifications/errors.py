"""Exception hierarchy for notification services."""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from notifyhub.notifications.dispatcher import DispatchOutcome, RecipientFailure


class NotificationError(RuntimeError):
    """Base class for every error raised by notifyhub."""


class ConfigurationError(NotificationError):
    """Raised at construction time for unusable credentials or options."""


class AdapterError(NotificationError):
    """A backend failed to deliver to one recipient."""

    def __init__(
        self,
        message: str,
        *,
        recipient: Hashable | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.recipient = recipient
        self.status_code = status_code


class TransportError(AdapterError):
    """The backend could not be reached."""


class AuthenticationError(AdapterError):
    """The backend rejected the credentials."""


class RecipientRejectedError(AdapterError):
    """The backend does not know or refuses the recipient."""


class RateLimitedError(AdapterError):
    """The backend is throttling requests."""

    def __init__(
        self,
        message: str,
        *,
        recipient: Hashable | None = None,
        status_code: int | None = 429,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, recipient=recipient, status_code=status_code)
        self.retry_after = retry_after


def _describe(failures: Sequence[RecipientFailure]) -> str:
    return "; ".join(f"{failure.recipient!r}: {failure.error}" for failure in failures)


class DispatchError(NotificationError):
    """One or more recipients failed during a dispatch."""

    def __init__(self, outcome: DispatchOutcome) -> None:
        failures = outcome.failures
        noun = "recipient" if len(failures) == 1 else "recipients"
        super().__init__(f"send failed for {len(failures)} {noun}: {_describe(failures)}")
        self.outcome = outcome

    @property
    def failures(self) -> list[RecipientFailure]:
        return self.outcome.failures


class DispatchCancelledError(NotificationError):
    """The fan-out was abandoned before every recipient was handled."""

    def __init__(
        self,
        *,
        failures: Sequence[RecipientFailure],
        pending: Sequence[Hashable],
        attempted: int,
    ) -> None:
        message = f"dispatch cancelled with {len(pending)} recipient(s) pending"
        if failures:
            message += f"; earlier failures: {_describe(failures)}"
        super().__init__(message)
        self.failures = list(failures)
        self.pending = list(pending)
        self.attempted = attempted


__all__ = [
    "AdapterError",
    "AuthenticationError",
    "ConfigurationError",
    "DispatchCancelledError",
    "DispatchError",
    "NotificationError",
    "RateLimitedError",
    "RecipientRejectedError",
    "TransportError",
]
