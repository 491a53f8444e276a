"""Bounded task group used by the I/O-heavy pipeline stages.

Work items are keyed (by question id), run with a fixed number in flight,
and settle into a lock-protected outcome map. ``join()`` is the barrier
the next stage waits on: it returns once every item has succeeded, failed,
been skipped, or been cancelled.

A cancel event stops new dispatch at once. Items already in flight get a
grace period, after which they are cancelled. A stage deadline applies the
same hard stop without the grace period.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

SettledCallback = Callable[[int, int], None]


@dataclass
class TaskOutcome(Generic[T]):
    """How one keyed work item settled."""

    key: str
    result: T | None = None
    error: Exception | None = None
    cancelled: bool = False  # Hard-aborted at a deadline or after the grace period
    skipped: bool = False  # Never dispatched because the run was cancelled

    @property
    def ok(self) -> bool:
        return not (self.error or self.cancelled or self.skipped)


@dataclass
class GroupResult(Generic[T]):
    """Outcomes of a joined task group."""

    outcomes: dict[str, TaskOutcome[T]] = field(default_factory=dict)
    cancelled: bool = False
    timed_out: bool = False

    @property
    def succeeded(self) -> dict[str, T]:
        return {k: o.result for k, o in self.outcomes.items() if o.ok and o.result is not None}


class BoundedTaskGroup(Generic[T]):
    """Run keyed coroutines with bounded concurrency and an explicit join."""

    def __init__(
        self,
        limit: int = 5,
        cancel_event: asyncio.Event | None = None,
        deadline_seconds: float | None = None,
        grace_seconds: float = 5.0,
        on_settled: SettledCallback | None = None,
    ):
        self.limit = max(1, limit)
        self.cancel_event = cancel_event or asyncio.Event()
        self.deadline_seconds = deadline_seconds
        self.grace_seconds = grace_seconds
        self.on_settled = on_settled

        self._semaphore = asyncio.Semaphore(self.limit)
        self._lock = asyncio.Lock()
        self._tasks: dict[str, asyncio.Task] = {}
        self._outcomes: dict[str, TaskOutcome[T]] = {}

    def spawn(self, key: str, factory: Callable[[], Awaitable[T]]) -> None:
        """Schedule a work item. ``factory`` is only called once a slot is free."""
        if key in self._tasks:
            raise ValueError(f"Duplicate task key: {key}")
        self._tasks[key] = asyncio.create_task(self._run(key, factory), name=f"task-{key}")

    async def _run(self, key: str, factory: Callable[[], Awaitable[T]]) -> None:
        async with self._semaphore:
            if self.cancel_event.is_set():
                await self._record(TaskOutcome(key=key, skipped=True))
                return
            try:
                result = await factory()
            except Exception as e:
                await self._record(TaskOutcome(key=key, error=e))
                return
        await self._record(TaskOutcome(key=key, result=result))

    async def _record(self, outcome: TaskOutcome[T]) -> None:
        async with self._lock:
            self._outcomes[outcome.key] = outcome
            settled = len(self._outcomes)
        if self.on_settled:
            self.on_settled(settled, len(self._tasks))

    async def join(self) -> GroupResult[T]:
        """Wait for every item to settle, honouring cancel and deadline."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.deadline_seconds if self.deadline_seconds else None
        pending: set[asyncio.Task] = set(self._tasks.values())
        cancel_waiter = asyncio.create_task(self.cancel_event.wait())
        cancelled = False
        timed_out = False

        try:
            while pending:
                timeout = None
                if deadline is not None:
                    timeout = deadline - loop.time()
                    if timeout <= 0:
                        timed_out = True
                        break

                done, _ = await asyncio.wait(
                    pending | {cancel_waiter},
                    timeout=timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                pending -= done

                if cancel_waiter in done:
                    cancelled = True
                    if pending and self.grace_seconds > 0:
                        _, pending = await asyncio.wait(pending, timeout=self.grace_seconds)
                    break
        finally:
            cancel_waiter.cancel()
        cancelled = cancelled or self.cancel_event.is_set()

        if pending:
            logger.warning(
                "task_group_aborting",
                in_flight=len(pending),
                cancelled=cancelled,
                timed_out=timed_out,
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        async with self._lock:
            for key in self._tasks:
                if key not in self._outcomes:
                    self._outcomes[key] = TaskOutcome(key=key, cancelled=True)
            outcomes = dict(self._outcomes)

        return GroupResult(outcomes=outcomes, cancelled=cancelled, timed_out=timed_out)
