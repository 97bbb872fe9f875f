"""Fan-out of one rendered message to many recipients.

The dispatcher is a plain coroutine: it owns no state between calls, performs
no I/O of its own and never logs. Every side effect happens inside the
adapter's ``send_one``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Hashable, Iterable
from dataclasses import dataclass, field

from notifyhub.notifications.base import BackendAdapter, RenderedMessage
from notifyhub.notifications.errors import DispatchCancelledError, DispatchError


@dataclass(frozen=True, slots=True)
class RecipientFailure:
    """A recipient paired with the error its delivery raised."""

    recipient: Hashable
    error: Exception


@dataclass(slots=True)
class DispatchOutcome:
    """Result of one dispatch. Only failures are recorded."""

    failures: list[RecipientFailure] = field(default_factory=list)
    attempted: int = 0
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        """Raise :class:`DispatchError` unless every recipient succeeded."""

        if self.failures:
            raise DispatchError(self)


class _Progress:
    """Bookkeeping for a single dispatch, indexed by registration order."""

    def __init__(
        self,
        recipients: tuple[Hashable, ...],
        rendered: RenderedMessage,
        adapter: BackendAdapter,
    ) -> None:
        self._recipients = recipients
        self._rendered = rendered
        self._adapter = adapter
        self._failures: dict[int, RecipientFailure] = {}
        self._done: set[int] = set()
        self.attempted = 0

    async def deliver(self, index: int) -> bool:
        recipient = self._recipients[index]
        self.attempted += 1
        try:
            await self._adapter.send_one(recipient, self._rendered)
        except Exception as exc:
            self._failures[index] = RecipientFailure(recipient, exc)
            self._done.add(index)
            return False
        self._done.add(index)
        return True

    def failures(self) -> list[RecipientFailure]:
        return [self._failures[index] for index in sorted(self._failures)]

    def pending(self) -> list[Hashable]:
        return [
            recipient
            for index, recipient in enumerate(self._recipients)
            if index not in self._done
        ]


async def _run_sequential(progress: _Progress, count: int, continue_on_err: bool) -> None:
    for index in range(count):
        delivered = await progress.deliver(index)
        if not delivered and not continue_on_err:
            return


async def _run_concurrent(
    progress: _Progress, count: int, continue_on_err: bool, concurrency: int
) -> None:
    slots = asyncio.Semaphore(concurrency)
    stop = asyncio.Event()

    async def worker(index: int) -> None:
        async with slots:
            if stop.is_set():
                return
            delivered = await progress.deliver(index)
            if not delivered and not continue_on_err:
                stop.set()

    async with asyncio.TaskGroup() as group:
        for index in range(count):
            group.create_task(worker(index))


async def dispatch(
    recipients: Iterable[Hashable],
    rendered: RenderedMessage,
    adapter: BackendAdapter,
    *,
    continue_on_err: bool = False,
    dry_run: bool = False,
    concurrency: int = 1,
    timeout: float | None = None,
) -> DispatchOutcome:
    """Deliver ``rendered`` to every recipient through ``adapter``.

    Recipients are handled in the order given. With ``continue_on_err`` off
    the first failure stops the batch and is the only one reported; with it
    on every recipient is attempted and all failures are reported in
    registration order. ``dry_run`` skips the adapter entirely.

    With ``concurrency`` above one, up to that many ``send_one`` calls run at
    once. No new call starts after a fail-fast failure, but calls already in
    flight finish; the earliest-registered failure is the one reported.

    Raises:
        DispatchCancelledError: ``timeout`` expired before the fan-out
            completed. Calls already issued are not retracted.
    """

    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    snapshot = tuple(recipients)
    if not snapshot:
        return DispatchOutcome()
    if dry_run:
        return DispatchOutcome(dry_run=True)

    progress = _Progress(snapshot, rendered, adapter)
    try:
        async with asyncio.timeout(timeout):
            if concurrency == 1:
                await _run_sequential(progress, len(snapshot), continue_on_err)
            else:
                await _run_concurrent(
                    progress, len(snapshot), continue_on_err, concurrency
                )
    except TimeoutError as exc:
        raise DispatchCancelledError(
            failures=progress.failures(),
            pending=progress.pending(),
            attempted=progress.attempted,
        ) from exc

    failures = progress.failures()
    if not continue_on_err:
        failures = failures[:1]
    return DispatchOutcome(failures=failures, attempted=progress.attempted)


__all__ = ["DispatchOutcome", "RecipientFailure", "dispatch"]
