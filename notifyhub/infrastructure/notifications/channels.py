"""Push channels delivering raw source events."""

from __future__ import annotations

import asyncio
import threading
from collections import deque
from collections.abc import AsyncIterator, Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class EventChannel(Protocol):
    """A live push channel keyed by the current user.

    ``connect`` establishes the subscription and returns an async iterator of
    raw event mappings. The iterator ends when the remote side closes the
    channel cleanly and raises when the connection drops.
    """

    async def connect(self, user_id: str) -> AsyncIterator[Mapping[str, Any]]:
        ...


class _Failure:
    def __init__(self, error: BaseException) -> None:
        self.error = error


_CLOSED = object()
_EMPTY = object()


class InMemoryEventChannel:
    """Channel fed by the host process.

    Hosts that receive change events through their own client library call
    :meth:`publish` from any thread; the events are delivered to the
    connected subscription in publication order. :meth:`fail` and
    :meth:`close` simulate a dropped or cleanly closed connection.
    """

    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self.connections = 0
        self._items: deque[object] = deque()
        self._connect_errors: deque[BaseException] = deque()
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._ready: asyncio.Event | None = None

    def publish(self, event: Mapping[str, Any]) -> None:
        self._push(event)

    def fail(self, error: BaseException | None = None) -> None:
        self._push(_Failure(error or ConnectionError(f"{self.name} channel dropped")))

    def close(self) -> None:
        self._push(_CLOSED)

    def refuse_next_connect(self, error: BaseException | None = None) -> None:
        with self._lock:
            self._connect_errors.append(error or ConnectionError(f"{self.name} unavailable"))

    async def connect(self, user_id: str) -> AsyncIterator[Mapping[str, Any]]:
        with self._lock:
            self.connections += 1
            if self._connect_errors:
                raise self._connect_errors.popleft()
        self._loop = asyncio.get_running_loop()
        self._ready = asyncio.Event()
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Mapping[str, Any]]:
        assert self._ready is not None
        while True:
            with self._lock:
                item = self._items.popleft() if self._items else _EMPTY
                if item is _EMPTY:
                    self._ready.clear()
            if item is _EMPTY:
                await self._ready.wait()
                continue
            if item is _CLOSED:
                return
            if isinstance(item, _Failure):
                raise item.error
            yield item  # type: ignore[misc]

    def _push(self, item: object) -> None:
        with self._lock:
            self._items.append(item)
        loop, ready = self._loop, self._ready
        if loop is None or ready is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            ready.set()
        else:
            loop.call_soon_threadsafe(ready.set)


__all__ = ["EventChannel", "InMemoryEventChannel"]
