"""Shared fixtures for the notification tests."""

import sys
from collections.abc import Hashable, Iterator
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import pytest

from notifyhub.config import get_settings
from notifyhub.notifications.base import RenderedMessage


class RecordingAdapter:
    """In-memory backend that records calls and fails selected recipients."""

    name = "recording"

    def __init__(
        self,
        failing: dict[Hashable, Exception] | None = None,
    ) -> None:
        self.failing = failing or {}
        self.calls: list[tuple[Hashable, RenderedMessage]] = []
        self.closed = False

    async def send_one(self, recipient: Hashable, rendered: RenderedMessage) -> None:
        self.calls.append((recipient, rendered))
        error = self.failing.get(recipient)
        if error is not None:
            raise error

    async def aclose(self) -> None:
        self.closed = True

    @property
    def recipients_called(self) -> list[Hashable]:
        return [recipient for recipient, _ in self.calls]


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def make_adapter() -> type[RecordingAdapter]:
    return RecordingAdapter
