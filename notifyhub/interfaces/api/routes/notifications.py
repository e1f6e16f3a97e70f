"""Endpoints and websocket handler consumed by rendering surfaces."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from notifyhub.application.engine import RecencyBucket
from notifyhub.application.session import NotificationSession
from notifyhub.domain.entities import NotificationCategory, parse_category
from notifyhub.domain.exceptions import NormalizationError, OfferExpiredError
from notifyhub.infrastructure.notifications import (
    PresentationConnectionManager,
    serialize_snapshot,
)
from notifyhub.interfaces.api.dependencies import get_notification_session, get_websocket_session
from notifyhub.interfaces.api.gestures import should_dismiss
from notifyhub.interfaces.api.schemas import (
    ActionRead,
    DragRequest,
    GroupedNotificationsRead,
    MarkReadResult,
    NotificationMarkReadRequest,
    NotificationRead,
    PreferenceUpdate,
    PreferencesRead,
    ToastChangeResult,
    ToastOverlayRead,
    ToastRead,
    UnreadCountRead,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _category_or_422(value: str | None) -> NotificationCategory | None:
    if value is None:
        return None
    try:
        return parse_category(value)
    except NormalizationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc


def _toast_or_404(session: NotificationSession, notification_id: str) -> None:
    if notification_id not in session.lifecycle:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Toast {notification_id} is not visible",
        )


@router.get("/", response_model=list[NotificationRead])
async def list_notifications(
    category: str | None = Query(None),
    unread_only: bool = Query(False),
    q: str | None = Query(None, description="Case-insensitive search over title and message"),
    session: NotificationSession = Depends(get_notification_session),
) -> list[NotificationRead]:
    """Return notifications newest first, optionally filtered."""

    notifications = session.queries.notifications(
        category=_category_or_422(category), unread_only=unread_only, query=q
    )
    return [NotificationRead.from_entity(notification) for notification in notifications]


@router.get("/grouped", response_model=GroupedNotificationsRead)
async def grouped_notifications(
    session: NotificationSession = Depends(get_notification_session),
) -> GroupedNotificationsRead:
    groups = session.queries.grouped_list()
    return GroupedNotificationsRead(
        **{
            bucket.value: [NotificationRead.from_entity(n) for n in groups[bucket]]
            for bucket in RecencyBucket
        }
    )


@router.get("/unread-count", response_model=UnreadCountRead)
async def unread_count(
    session: NotificationSession = Depends(get_notification_session),
) -> UnreadCountRead:
    return UnreadCountRead(unread_count=session.queries.unread_count())


@router.get("/toasts", response_model=ToastOverlayRead)
async def visible_toasts(
    session: NotificationSession = Depends(get_notification_session),
) -> ToastOverlayRead:
    return ToastOverlayRead(
        toasts=[ToastRead.from_view(view) for view in session.queries.visible_toasts()],
        overflow_count=session.queries.overflow_count(),
    )


@router.post("/read", response_model=MarkReadResult)
async def mark_as_read(
    payload: NotificationMarkReadRequest,
    session: NotificationSession = Depends(get_notification_session),
) -> MarkReadResult:
    updated = sum(1 for notification_id in payload.unique_ids() if session.mark_as_read(notification_id))
    return MarkReadResult(updated=updated, unread_count=session.queries.unread_count())


@router.post("/read-all", response_model=MarkReadResult)
async def mark_all_as_read(
    session: NotificationSession = Depends(get_notification_session),
) -> MarkReadResult:
    updated = session.mark_all_as_read()
    return MarkReadResult(updated=updated, unread_count=session.queries.unread_count())


@router.post("/toasts/{notification_id}/dismiss", response_model=ToastChangeResult)
async def dismiss_toast(
    notification_id: str,
    session: NotificationSession = Depends(get_notification_session),
) -> ToastChangeResult:
    _toast_or_404(session, notification_id)
    return ToastChangeResult(notification_id=notification_id, removed=session.dismiss(notification_id))


@router.post("/toasts/{notification_id}/drag", response_model=ToastChangeResult)
async def drag_toast(
    notification_id: str,
    payload: DragRequest,
    session: NotificationSession = Depends(get_notification_session),
) -> ToastChangeResult:
    _toast_or_404(session, notification_id)
    dismiss_requested = should_dismiss(payload.distance, payload.velocity, session.settings)
    removed = session.drag(notification_id, dismiss_requested)
    return ToastChangeResult(notification_id=notification_id, removed=removed)


@router.post("/toasts/{notification_id}/pause", response_model=ToastChangeResult)
async def pause_toast(
    notification_id: str,
    session: NotificationSession = Depends(get_notification_session),
) -> ToastChangeResult:
    _toast_or_404(session, notification_id)
    session.pause(notification_id)
    return ToastChangeResult(notification_id=notification_id, removed=False)


@router.post("/toasts/{notification_id}/resume", response_model=ToastChangeResult)
async def resume_toast(
    notification_id: str,
    session: NotificationSession = Depends(get_notification_session),
) -> ToastChangeResult:
    _toast_or_404(session, notification_id)
    session.resume(notification_id)
    return ToastChangeResult(notification_id=notification_id, removed=False)


@router.post("/{notification_id}/action", response_model=ActionRead | None)
async def invoke_action(
    notification_id: str,
    session: NotificationSession = Depends(get_notification_session),
) -> ActionRead | None:
    """Invoke the follow-up of a notification; expired offers are rejected."""

    if session.store.get(notification_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    try:
        action = session.invoke_action(notification_id)
    except OfferExpiredError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return ActionRead.from_entity(action)


@router.get("/preferences", response_model=PreferencesRead)
async def read_preferences(
    session: NotificationSession = Depends(get_notification_session),
) -> PreferencesRead:
    return PreferencesRead(**session.preferences.to_dict())


@router.put("/preferences/{key}", response_model=PreferencesRead)
async def update_preference(
    key: str,
    payload: PreferenceUpdate,
    session: NotificationSession = Depends(get_notification_session),
) -> PreferencesRead:
    try:
        preferences = await session.update_preference(key, payload.value)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return PreferencesRead(**preferences.to_dict())


@router.get("/diagnostics")
async def diagnostics(
    session: NotificationSession = Depends(get_notification_session),
) -> dict[str, Any]:
    return session.diagnostics


def _handle_message(session: NotificationSession, message: dict[str, Any]) -> dict[str, Any] | None:
    message_type = message.get("type")
    notification_id = message.get("id")

    if message_type == "ping":
        return {"type": "pong"}
    if message_type == "ack":
        ids = message.get("ids", [])
        if isinstance(ids, list):
            updated = sum(1 for value in ids if session.mark_as_read(str(value)))
            return {"type": "ack", "data": {"updated": updated}}
        return None
    if not isinstance(notification_id, str):
        return None
    if message_type == "dismiss":
        session.dismiss(notification_id)
    elif message_type == "pause":
        session.pause(notification_id)
    elif message_type == "resume":
        session.resume(notification_id)
    elif message_type == "drag":
        try:
            distance = float(message.get("distance", 0))
            velocity = float(message.get("velocity", 0))
        except (TypeError, ValueError):
            return {"type": "error", "detail": "Invalid drag measurements"}
        session.drag(notification_id, should_dismiss(distance, velocity, session.settings))
    elif message_type == "action":
        try:
            action = session.invoke_action(notification_id)
        except OfferExpiredError as exc:
            return {"type": "error", "detail": str(exc)}
        data = {"label": action.label, "target": action.target} if action else None
        return {"type": "action", "data": data}
    return None


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Stream presentation snapshots and accept toast interactions."""

    session = get_websocket_session(websocket)
    manager: PresentationConnectionManager | None = getattr(
        websocket.app.state, "presentation_manager", None
    )
    if session is None or manager is None or session.user_id is None:
        await websocket.close(code=1011)
        return

    user_id = session.user_id
    await manager.connect(user_id, websocket)
    try:
        await manager.send(
            user_id,
            websocket,
            {"type": "snapshot", "data": serialize_snapshot(session.queries.snapshot())},
        )
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                continue

            if not isinstance(message, dict):
                continue

            reply = _handle_message(session, message)
            if reply is not None:
                await manager.send(user_id, websocket, reply)
    except WebSocketDisconnect:
        manager.disconnect(user_id, websocket)
    except Exception:
        manager.disconnect(user_id, websocket)
        raise


__all__ = ["router"]
