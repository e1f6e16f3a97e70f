"""Unified notification delivery and presentation engine.

The package is a library embedded by a host application. The entry point is
:class:`notifyhub.application.session.NotificationSession`; the FastAPI
adapter in :mod:`notifyhub.main` is optional.
"""
