"""Shared types for notification services and backend adapters."""

from __future__ import annotations

from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar, runtime_checkable

R_contra = TypeVar("R_contra", bound=Hashable, contravariant=True)


@dataclass(frozen=True, slots=True)
class RenderedMessage:
    """Text produced by a renderer, plus the subject it was rendered from."""

    subject: str
    text: str


@dataclass(frozen=True, slots=True)
class MessageContext:
    """Read-only facts a renderer may use besides subject and body."""

    service_name: str
    recipient_count: int
    metadata: Mapping[str, Any] = field(default_factory=dict)


MessageRenderer = Callable[[str, str, MessageContext], str]


def default_renderer(subject: str, message: str, context: MessageContext) -> str:
    """Put the subject and the message on separate paragraphs."""

    if not subject:
        return message
    if not message:
        return subject
    return f"{subject}\n\n{message}"


def body_only_renderer(subject: str, message: str, context: MessageContext) -> str:
    """Drop the subject; for backends that carry it in a title field."""

    return message


@runtime_checkable
class BackendAdapter(Protocol[R_contra]):
    """Capability every backend implements: deliver to a single recipient."""

    name: str

    async def send_one(self, recipient: R_contra, rendered: RenderedMessage) -> None:
        """Deliver ``rendered`` to ``recipient``.

        Raises:
            AdapterError: or any subclass describing why delivery failed.
        """
        ...

    async def aclose(self) -> None:
        """Release transport resources held by the adapter."""
        ...


__all__ = [
    "BackendAdapter",
    "MessageContext",
    "MessageRenderer",
    "RenderedMessage",
    "body_only_renderer",
    "default_renderer",
]
