"""FastAPI dependency utilities."""

from fastapi import HTTPException, Request, WebSocket, status

from notifyhub.application.session import NotificationSession


def _session_from_state(state) -> NotificationSession:
    session = getattr(state, "notification_session", None)
    if session is None or not session.running:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification session is not running",
        )
    return session


def get_notification_session(request: Request) -> NotificationSession:
    """Return the session started by the application lifespan."""

    return _session_from_state(request.app.state)


def get_websocket_session(websocket: WebSocket) -> NotificationSession | None:
    try:
        return _session_from_state(websocket.app.state)
    except HTTPException:
        return None


__all__ = ["get_notification_session", "get_websocket_session"]
