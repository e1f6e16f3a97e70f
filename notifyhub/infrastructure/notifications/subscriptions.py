"""Per-source live subscriptions with independent retry policies."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any

import anyio

from notifyhub.application.use_cases.notifications.events import map_source_event
from notifyhub.config import Settings, get_settings
from notifyhub.domain.entities import SourceEvent
from notifyhub.domain.exceptions import NormalizationError
from notifyhub.utils import RetryPolicy

from .channels import EventChannel

logger = logging.getLogger(__name__)

Sink = Callable[[Mapping[str, Any]], object]
Mapper = Callable[[SourceEvent], "Mapping[str, Any] | None"]


class SubscriptionStatus(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RETRYING = "retrying"
    DEGRADED = "degraded"
    CLOSED = "closed"


@dataclass
class EventSource:
    """A named channel and, optionally, a custom mapper for its events.

    When ``mapper`` is omitted the built-in table for ``name`` is used.
    """

    name: str
    channel: EventChannel
    mapper: Mapper | None = None


class SourceSubscription:
    """Consume one source until it closes, is cancelled or is degraded."""

    def __init__(
        self,
        source: EventSource,
        sink: Sink,
        policy: RetryPolicy,
        mapper: Mapper,
        sleep: Callable[[float], Awaitable[Any]] = anyio.sleep,
    ) -> None:
        self.source = source
        self._sink = sink
        self._policy = policy
        self._mapper = mapper
        self._sleep = sleep
        self.status = SubscriptionStatus.IDLE
        self.failures = 0
        self.connections = 0
        self.delivered = 0
        self.malformed = 0
        self.last_error: str | None = None

    @property
    def name(self) -> str:
        return self.source.name

    async def run(self, user_id: str) -> None:
        while True:
            self.status = SubscriptionStatus.CONNECTING
            try:
                stream = await self.source.channel.connect(user_id)
                self.status = SubscriptionStatus.CONNECTED
                self.connections += 1
                first = True
                async for raw in stream:
                    if first:
                        self.failures = 0
                        first = False
                    self._handle(raw)
            except Exception as exc:
                self.failures += 1
                self.last_error = f"{type(exc).__name__}: {exc}"
                if self._policy.exhausted(self.failures):
                    self.status = SubscriptionStatus.DEGRADED
                    logger.error(
                        "Source %s degraded after %d consecutive failures: %s",
                        self.name,
                        self.failures,
                        self.last_error,
                    )
                    return
                delay = self._policy.delay_for(self.failures)
                self.status = SubscriptionStatus.RETRYING
                logger.warning(
                    "Source %s failed (%s); retrying in %.1fs", self.name, self.last_error, delay
                )
                await self._sleep(delay)
            else:
                self.status = SubscriptionStatus.CLOSED
                logger.info("Source %s closed its channel", self.name)
                return

    def diagnostics(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "failures": self.failures,
            "connections": self.connections,
            "delivered": self.delivered,
            "malformed": self.malformed,
            "last_error": self.last_error,
        }

    def _handle(self, raw: Mapping[str, Any]) -> None:
        try:
            event = SourceEvent.from_payload(self.name, raw)
            payload = self._mapper(event)
        except NormalizationError as exc:
            self.malformed += 1
            logger.warning("Dropping malformed %s event: %s", self.name, exc)
            return
        except Exception:
            self.malformed += 1
            logger.exception("Could not map %s event", self.name)
            return

        if payload is None:
            return
        try:
            self._sink(payload)
        except Exception:
            logger.exception("Ingestion of %s event %s failed", self.name, payload.get("id"))
            return
        self.delivered += 1


class EventIngestionAdapter:
    """Own one subscription task per source for the lifetime of a session."""

    def __init__(
        self,
        sources: Iterable[EventSource],
        sink: Sink,
        *,
        policy: RetryPolicy | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = anyio.sleep,
    ) -> None:
        self._sources = list(sources)
        names = [source.name for source in self._sources]
        if len(names) != len(set(names)):
            raise ValueError("Event source names must be unique")
        self._sink = sink
        self._settings = settings or get_settings()
        self._policy = policy or RetryPolicy.from_settings(self._settings)
        self._sleep = sleep
        self._subscriptions: dict[str, SourceSubscription] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    def subscription(self, name: str) -> SourceSubscription | None:
        return self._subscriptions.get(name)

    async def start(self, user_id: str) -> None:
        if self._tasks:
            raise RuntimeError("Event ingestion is already running")
        loop = asyncio.get_running_loop()
        for source in self._sources:
            mapper = source.mapper or partial(
                map_source_event, settings=self._settings, user_id=user_id
            )
            subscription = SourceSubscription(
                source, self._sink, self._policy, mapper, sleep=self._sleep
            )
            self._subscriptions[source.name] = subscription
            self._tasks[source.name] = loop.create_task(
                subscription.run(user_id), name=f"notifyhub-source-{source.name}"
            )
        logger.info("Started %d event sources for user %s", len(self._tasks), user_id)

    async def stop_source(self, name: str) -> bool:
        task = self._tasks.pop(name, None)
        if task is None:
            return False
        await _cancel(task)
        subscription = self._subscriptions.get(name)
        if subscription is not None and subscription.status not in (
            SubscriptionStatus.DEGRADED,
            SubscriptionStatus.CLOSED,
        ):
            subscription.status = SubscriptionStatus.CLOSED
        return True

    async def stop(self) -> None:
        for name in list(self._tasks):
            await self.stop_source(name)

    def diagnostics(self) -> dict[str, dict[str, Any]]:
        return {name: sub.diagnostics() for name, sub in self._subscriptions.items()}

    def degraded_sources(self) -> list[str]:
        return [
            name
            for name, sub in self._subscriptions.items()
            if sub.status is SubscriptionStatus.DEGRADED
        ]


async def _cancel(task: asyncio.Task) -> None:
    if task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


__all__ = [
    "EventIngestionAdapter",
    "EventSource",
    "SourceSubscription",
    "SubscriptionStatus",
]
