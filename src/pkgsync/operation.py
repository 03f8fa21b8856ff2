"""Operation tracker: one deduplicated, observable fetch per data source.

A tracker runs at most one *current* fetch. ``start(force=False)`` while a
fetch is ongoing joins it; ``start(force=True)`` bumps the generation counter
and starts a fresh fetch. The superseded fetch is not aborted, its result is
simply dropped when it arrives. Failures never propagate out of the task:
they are delivered to ``finished`` observers as ``OperationOutcome.error``.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Awaitable, Callable, Iterable

import structlog

from pkgsync.errors import ErrorCode, PkgSyncError
from pkgsync.models import FetchKind, FetchResult, PackageResult
from pkgsync.signals import Signal

if TYPE_CHECKING:
    from collections.abc import Iterator

log = structlog.get_logger()

FetchCallable = Callable[[], Awaitable[Iterable[PackageResult]]]


class OperationState(StrEnum):
    IDLE = "idle"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class OperationOutcome:
    kind: FetchKind
    sequence: int
    result: FetchResult | None = None
    error: PkgSyncError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def sequence_counter() -> Callable[[], int]:
    """Return a callable yielding 1, 2, 3, ... shared by a collection's trackers."""
    counter: Iterator[int] = itertools.count(1)
    return lambda: next(counter)


class OperationTracker:
    def __init__(
        self,
        kind: FetchKind,
        fetch: FetchCallable,
        next_sequence: Callable[[], int] | None = None,
    ) -> None:
        self.kind = kind
        self._fetch = fetch
        self._next_sequence = next_sequence or sequence_counter()
        self._generation = 0
        self._state = OperationState.IDLE
        self._task: asyncio.Task[OperationOutcome | None] | None = None
        # Superseded tasks are still running; hold them so they are not collected.
        self._tasks: set[asyncio.Task[OperationOutcome | None]] = set()
        self.last_error: PkgSyncError | None = None

        self.finished = Signal(f"{kind.value}.finished")
        self.state_changed = Signal(f"{kind.value}.state_changed")

    @property
    def state(self) -> OperationState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    def is_ongoing(self) -> bool:
        return self._state is OperationState.ONGOING

    def start(self, force: bool = False) -> asyncio.Task[OperationOutcome | None]:
        """Start a fetch, or join the ongoing one when ``force`` is false.

        Returns the task whose completion will be reported to ``finished``.
        """
        current = self._task
        if current is not None and self.is_ongoing() and not force:
            log.debug("fetch_joined", kind=self.kind.value, generation=self._generation)
            return current

        was_ongoing = self.is_ongoing()
        self._generation += 1
        generation = self._generation
        sequence = self._next_sequence()
        self._state = OperationState.ONGOING

        task = asyncio.get_running_loop().create_task(
            self._run(generation, sequence),
            name=f"pkgsync-{self.kind.value}-{generation}",
        )
        self._task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        log.info(
            "fetch_started",
            kind=self.kind.value,
            generation=generation,
            superseded=was_ongoing,
        )
        if not was_ongoing:
            self.state_changed.emit(self.kind, True)
        return task

    async def wait(self) -> OperationOutcome | None:
        """Wait for the current fetch, following any forced restarts."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        if self._task is None or self._task.cancelled():
            return None
        return self._task.result()

    async def aclose(self) -> None:
        """Cancel every in-flight fetch. Used on teardown only."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if self.is_ongoing():
            self._state = OperationState.IDLE

    async def _run(self, generation: int, sequence: int) -> OperationOutcome | None:
        try:
            packages = tuple(await self._fetch())
        except PkgSyncError as exc:
            outcome = OperationOutcome(kind=self.kind, sequence=sequence, error=exc)
        except Exception as exc:
            log.error("fetch_unexpected_error", kind=self.kind.value, exc_info=True)
            error = PkgSyncError(
                ErrorCode.OPERATION_FAILED,
                str(exc) or type(exc).__name__,
                recoverable=True,
            )
            outcome = OperationOutcome(kind=self.kind, sequence=sequence, error=error)
        else:
            result = FetchResult(kind=self.kind, packages=packages, sequence=sequence)
            outcome = OperationOutcome(kind=self.kind, sequence=sequence, result=result)

        if generation != self._generation:
            log.debug(
                "fetch_stale_result_discarded",
                kind=self.kind.value,
                generation=generation,
                current=self._generation,
            )
            return None

        if outcome.ok:
            self._state = OperationState.COMPLETED
            self.last_error = None
            log.info("fetch_completed", kind=self.kind.value, count=len(outcome.result.packages))
        else:
            self._state = OperationState.FAILED
            self.last_error = outcome.error
            log.warning("fetch_failed", kind=self.kind.value, **outcome.error.to_dict())

        self.finished.emit(outcome)
        self.state_changed.emit(self.kind, False)
        return outcome
