from contextlib import asynccontextmanager

from fastapi import FastAPI

from notifyhub.application.session import NotificationSession
from notifyhub.infrastructure.notifications import PresentationConnectionManager, SnapshotPublisher
from notifyhub.interfaces.api.routes import register_routes


def create_app(session: NotificationSession, user_id: str | None = None) -> FastAPI:
    """Build an app exposing ``session`` to rendering surfaces.

    When ``user_id`` is given the lifespan starts the session for that user
    and stops it on shutdown; otherwise the host manages the session.
    """

    manager = PresentationConnectionManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if user_id is not None:
            await session.start(user_id)
        publisher = SnapshotPublisher(manager, lambda: session.user_id)
        publisher.attach(session.queries)
        try:
            yield
        finally:
            publisher.detach()
            if user_id is not None:
                await session.stop()

    app = FastAPI(lifespan=lifespan)
    app.state.notification_session = session
    app.state.presentation_manager = manager
    register_routes(app)
    return app
