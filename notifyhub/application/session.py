"""Session-scoped notification engine."""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import datetime
from typing import Any, TypeVar

import anyio
from anyio import to_thread

from notifyhub.config import Settings, get_settings
from notifyhub.domain.entities import (
    Notification,
    NotificationAction,
    Preferences,
    RemovalReason,
    ToastInstance,
    apply_preference,
    ensure_offer_acceptable,
)
from notifyhub.domain.exceptions import OfferExpiredError
from notifyhub.infrastructure.notifications.subscriptions import (
    EventIngestionAdapter,
    EventSource,
)
from notifyhub.utils import RetryPolicy, now_in_app_timezone

from .engine import (
    NotificationStore,
    PresentationQueries,
    PriorityScheduler,
    ToastLifecycleController,
    feedback_for,
    rejection_reason,
)
from .use_cases.notifications import (
    NotificationPersistence,
    PreferenceProvider,
    ReadStateSynchronizer,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NotificationSession:
    """Notification state of one signed-in user.

    ``start`` loads preferences, seeds the store from persistence and opens
    every event source; ``stop`` tears all of it down again, including every
    live toast timer. All state changes go through this object and are
    serialized by one re-entrant lock; a scheduling pass follows every change
    so the visible set always reflects the current candidates.
    """

    def __init__(
        self,
        sources: Iterable[EventSource] = (),
        *,
        persistence: NotificationPersistence | None = None,
        preference_provider: PreferenceProvider | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = anyio.sleep,
    ) -> None:
        self._settings = settings or get_settings()
        self._clock = clock or now_in_app_timezone
        self._lock = threading.RLock()
        self._policy = retry_policy or RetryPolicy.from_settings(self._settings)

        self.store = NotificationStore()
        self.scheduler = PriorityScheduler(self._settings.max_visible_toasts)
        self.lifecycle = ToastLifecycleController(
            tick_interval_ms=self._settings.tick_interval_ms,
            default_duration_ms=self._settings.default_toast_duration_ms,
            critical_duration_multiplier=self._settings.critical_duration_multiplier,
            clock=self._clock,
        )
        self.queries = PresentationQueries(
            self.store, self.lifecycle, overflow=lambda: self._overflow, clock=self._clock
        )

        self._persistence = persistence
        self._preference_provider = preference_provider
        self._read_sync = (
            ReadStateSynchronizer(persistence, self._policy) if persistence is not None else None
        )
        self._adapter = EventIngestionAdapter(
            sources, self.ingest, policy=self._policy, settings=self._settings, sleep=sleep
        )

        self._preferences = Preferences()
        self._candidates: dict[str, Notification] = {}
        self._overflow = 0
        self._user_id: str | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tick_task: asyncio.Task | None = None

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def running(self) -> bool:
        return self._loop is not None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def preferences(self) -> Preferences:
        return self._preferences

    @property
    def adapter(self) -> EventIngestionAdapter:
        return self._adapter

    @property
    def read_sync(self) -> ReadStateSynchronizer | None:
        return self._read_sync

    @property
    def diagnostics(self) -> dict[str, Any]:
        with self._lock:
            return {
                "user_id": self._user_id,
                "running": self.running,
                "sources": self._adapter.diagnostics(),
                "degraded_sources": self._adapter.degraded_sources(),
                "pending_writes": self._read_sync.pending_count if self._read_sync else 0,
                "active_timers": self.lifecycle.active_timer_count,
                "visible": len(self.lifecycle),
                "waiting": len(self._candidates),
                "stored": len(self.store),
                "unread": self.store.unread_count,
            }

    # -- lifecycle -----------------------------------------------------------------

    async def start(self, user_id: str) -> None:
        if self.running:
            raise RuntimeError("Notification session is already running")
        self._user_id = user_id
        self._loop = asyncio.get_running_loop()

        if self._preference_provider is not None:
            try:
                preferences = await to_thread.run_sync(
                    self._preference_provider.load_preferences, user_id
                )
            except Exception as exc:
                logger.warning("Could not load preferences for %s: %s", user_id, exc)
            else:
                with self._lock:
                    self._preferences = preferences

        if self._persistence is not None:
            try:
                stored = await to_thread.run_sync(self._persistence.fetch_notifications, user_id)
            except Exception as exc:
                logger.warning("Could not load stored notifications for %s: %s", user_id, exc)
            else:
                with self._lock:
                    seeded = self.store.seed(stored)
                logger.info("Seeded %d notifications for %s", seeded, user_id)

        self._tick_task = self._loop.create_task(self._tick_loop(), name="notifyhub-tick")
        if self._read_sync is not None:
            await self._read_sync.start(user_id)
        await self._adapter.start(user_id)
        self.queries.publish()

    async def stop(self) -> None:
        if not self.running:
            return
        await self._adapter.stop()

        task, self._tick_task = self._tick_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        with self._lock:
            self.lifecycle.clear(RemovalReason.SESSION_ENDED)
            self._candidates.clear()
            self._overflow = 0

        if self._read_sync is not None:
            await self._read_sync.flush()
            await self._read_sync.stop()
        self._loop = None
        self.queries.publish()
        logger.info("Notification session for %s stopped", self._user_id)

    async def _tick_loop(self) -> None:
        interval = self._settings.tick_interval_ms / 1000
        while True:
            await anyio.sleep(interval)
            self.tick()

    # -- ingestion -----------------------------------------------------------------

    def ingest(self, event: Mapping[str, Any]) -> Notification | None:
        """Store ``event`` and offer it for toast admission."""

        now = self._clock()
        with self._lock:
            notification = self.store.ingest(event)
            if notification is None:
                return None
            self._consider_locked(notification, now)
            self._reschedule_locked(now)
        self.queries.publish()
        return notification

    def ingest_many(self, events: Iterable[Mapping[str, Any]]) -> list[Notification]:
        """Ingest a batch and run a single scheduling pass over it."""

        now = self._clock()
        added = []
        with self._lock:
            for event in events:
                notification = self.store.ingest(event)
                if notification is not None:
                    self._consider_locked(notification, now)
                    added.append(notification)
            if added:
                self._reschedule_locked(now)
        if added:
            self.queries.publish()
        return added

    def submit(self, event: Mapping[str, Any]) -> None:
        """Hand ``event`` to the session loop; safe to call from any thread."""

        loop = self._loop
        if loop is None:
            raise RuntimeError("Notification session is not running")
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self.ingest(event)
        else:
            loop.call_soon_threadsafe(self.ingest, dict(event))

    # -- toast interaction ---------------------------------------------------------

    def tick(self, now: datetime | None = None) -> list[ToastInstance]:
        now = now or self._clock()
        with self._lock:
            removed = self.lifecycle.tick(now)
            # Waiting offers can lapse without any mutation; drop them here.
            lapsed = any(c.is_expired(now) for c in self._candidates.values())
            changed = bool(removed) or lapsed
            if changed:
                self._reschedule_locked(now)
        if changed:
            self.queries.publish()
        return removed

    def dismiss(self, notification_id: str) -> bool:
        return self._toast_change(
            lambda: self.lifecycle.dismiss(notification_id, RemovalReason.DISMISSED)
        )

    def drag(self, notification_id: str, dismiss_requested: bool) -> bool:
        return self._toast_change(lambda: self.lifecycle.drag(notification_id, dismiss_requested))

    def pause(self, notification_id: str) -> bool:
        return self._toast_change(lambda: self.lifecycle.pause(notification_id))

    def resume(self, notification_id: str) -> bool:
        return self._toast_change(lambda: self.lifecycle.resume(notification_id))

    def invoke_action(
        self, notification_id: str, now: datetime | None = None
    ) -> NotificationAction | None:
        """Dismiss the toast, mark the notification read and return its action.

        Offers past their deadline raise :class:`OfferExpiredError`; their toast
        is expired instead.
        """

        now = now or self._clock()
        with self._lock:
            notification = self.store.get(notification_id)
            if notification is None:
                logger.warning("Action requested for unknown notification %s", notification_id)
                return None
            try:
                ensure_offer_acceptable(notification, now)
            except OfferExpiredError:
                self._expire_locked(notification_id, now)
                raise
            if notification_id in self.lifecycle:
                self.lifecycle.dismiss(notification_id, RemovalReason.ACTION)
            self._mark_read_locked(notification_id)
            self._reschedule_locked(now)
        self.queries.publish()
        return notification.action

    async def accept_offer(
        self,
        notification_id: str,
        acceptor: Callable[[Notification], Awaitable[T] | T],
    ) -> T:
        """Run ``acceptor`` for an offer that is still within its deadline.

        The deadline is checked here before the acceptor runs; the acceptor is
        expected to check it again on its side and may raise
        :class:`OfferExpiredError` itself.
        """

        notification = self.store.get(notification_id)
        if notification is None:
            raise KeyError(notification_id)
        now = self._clock()
        try:
            ensure_offer_acceptable(notification, now)
            result = acceptor(notification)
            if inspect.isawaitable(result):
                result = await result
        except OfferExpiredError:
            with self._lock:
                self._expire_locked(notification_id, self._clock())
            self.queries.publish()
            raise
        self.invoke_action(notification_id, now)
        return result

    # -- read state ----------------------------------------------------------------

    def mark_as_read(self, notification_id: str) -> bool:
        with self._lock:
            changed = self._mark_read_locked(notification_id)
            if changed:
                self._reschedule_locked(self._clock())
        if changed:
            self.queries.publish()
        return changed

    def mark_all_as_read(self) -> int:
        with self._lock:
            changed = self.store.mark_all_as_read()
            if changed:
                if self._read_sync is not None:
                    self._read_sync.mark_all_as_read(changed)
                self._reschedule_locked(self._clock())
        if changed:
            self.queries.publish()
        return len(changed)

    # -- preferences ---------------------------------------------------------------

    async def update_preference(self, key: str, value: Any) -> Preferences:
        """Apply one preference change and persist it.

        Raises ``ValueError`` for unknown keys or invalid values. A failed save
        is logged; the new preferences stay in effect for this session.
        """

        with self._lock:
            self._preferences = apply_preference(self._preferences, key, value)
            preferences = self._preferences
            self._reschedule_locked(self._clock())
        self.queries.publish()

        if self._preference_provider is not None and self._user_id is not None:
            try:
                await to_thread.run_sync(
                    self._preference_provider.save_preference, self._user_id, key, value
                )
            except Exception as exc:
                logger.warning("Could not save preference %s for %s: %s", key, self._user_id, exc)
        return preferences

    # -- internals -----------------------------------------------------------------

    def _toast_change(self, change: Callable[[], bool]) -> bool:
        with self._lock:
            changed = change()
            if changed:
                self._reschedule_locked(self._clock())
        if changed:
            self.queries.publish()
        return changed

    def _consider_locked(self, notification: Notification, now: datetime) -> None:
        reason = rejection_reason(notification, self._preferences, now)
        if reason is not None:
            logger.debug("Notification %s archived without toast (%s)", notification.id, reason.value)
            return
        if notification.is_expired(now):
            return
        self._candidates[notification.id] = notification

    def _mark_read_locked(self, notification_id: str) -> bool:
        changed = self.store.mark_as_read(notification_id)
        if changed and self._read_sync is not None:
            self._read_sync.mark_as_read(notification_id)
        return changed

    def _expire_locked(self, notification_id: str, now: datetime) -> None:
        self._candidates.pop(notification_id, None)
        if notification_id in self.lifecycle:
            self.lifecycle.expire(notification_id, RemovalReason.OFFER_EXPIRED)
        self._reschedule_locked(now)

    def _reschedule_locked(self, now: datetime) -> None:
        for notification_id, candidate in list(self._candidates.items()):
            current = self.store.get(notification_id)
            if (
                current is None
                or current.is_read
                or current.is_expired(now)
                or rejection_reason(current, self._preferences, now) is not None
            ):
                del self._candidates[notification_id]

        plan = self.scheduler.plan(self._candidates.values(), visible_count=len(self.lifecycle))
        for notification in plan.admitted:
            feedback = feedback_for(notification, self._preferences, now)
            self.lifecycle.admit(
                notification, now, sound=feedback.sound, vibrate=feedback.vibrate
            )
            del self._candidates[notification.id]
        self._overflow = plan.overflow_count


__all__ = ["NotificationSession"]
