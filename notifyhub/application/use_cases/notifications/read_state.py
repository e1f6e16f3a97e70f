"""Reconcile local read-state changes with the persistence collaborator."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass

import anyio
from anyio import to_thread

from notifyhub.utils import RetryPolicy

from .collaborators import NotificationPersistence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadStateWrite:
    """One pending write.

    A mark-all write has no ``notification_id`` and carries the ids that were
    unread when it was issued, so a retry never reaches notifications that
    arrived afterwards.
    """

    notification_id: str | None = None
    scope: tuple[str, ...] = ()

    def apply(self, persistence: NotificationPersistence, user_id: str) -> None:
        if self.notification_id is None:
            persistence.persist_mark_all_as_read(user_id, list(self.scope))
        else:
            persistence.persist_mark_as_read(user_id, self.notification_id)

    def __str__(self) -> str:
        if self.notification_id is None:
            return f"mark-all-as-read ({len(self.scope)})"
        return f"mark-as-read {self.notification_id}"


class ReadStateSynchronizer:
    """Queue read-state writes and deliver them in order.

    Writes are fire-and-forget for the caller. A failed write stays at the
    head of the queue and is retried with capped exponential backoff; the
    in-memory store is never rolled back.
    """

    def __init__(
        self,
        persistence: NotificationPersistence,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._persistence = persistence
        self._policy = policy or RetryPolicy.from_settings()
        self._pending: deque[ReadStateWrite] = deque()
        self._lock = threading.Lock()
        self._flush_lock = asyncio.Lock()
        self._user_id: str | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wakeup: asyncio.Event | None = None
        self._task: asyncio.Task | None = None
        self.failures = 0

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def pending(self) -> list[ReadStateWrite]:
        with self._lock:
            return list(self._pending)

    async def start(self, user_id: str) -> None:
        self._user_id = user_id
        self._loop = asyncio.get_running_loop()
        self._wakeup = asyncio.Event()
        self._task = self._loop.create_task(self._run())
        if self.pending_count:
            self._wakeup.set()

    async def stop(self) -> None:
        task, self._task = self._task, None
        self._loop = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self.pending_count:
            logger.warning("Stopping with %d unsynchronized read-state writes", self.pending_count)

    def mark_as_read(self, notification_id: str) -> None:
        self._enqueue(ReadStateWrite(notification_id))

    def mark_all_as_read(self, notification_ids: Iterable[str]) -> None:
        self._enqueue(ReadStateWrite(scope=tuple(notification_ids)))

    async def flush(self) -> bool:
        """Deliver queued writes in order; returns ``False`` on the first failure."""

        if self._user_id is None:
            return not self.pending_count
        async with self._flush_lock:
            while True:
                with self._lock:
                    if not self._pending:
                        return True
                    write = self._pending[0]
                try:
                    await to_thread.run_sync(write.apply, self._persistence, self._user_id)
                except Exception as exc:
                    self.failures += 1
                    logger.warning("Persisting %s failed (attempt %d): %s", write, self.failures, exc)
                    return False
                self.failures = 0
                with self._lock:
                    if self._pending and self._pending[0] is write:
                        self._pending.popleft()

    def _enqueue(self, write: ReadStateWrite) -> None:
        with self._lock:
            self._pending.append(write)
        loop, wakeup = self._loop, self._wakeup
        if loop is not None and wakeup is not None and not loop.is_closed():
            loop.call_soon_threadsafe(wakeup.set)

    async def _run(self) -> None:
        assert self._wakeup is not None
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            attempt = 0
            while not await self.flush():
                attempt += 1
                await anyio.sleep(self._policy.delay_for(attempt))


__all__ = ["ReadStateSynchronizer", "ReadStateWrite"]
