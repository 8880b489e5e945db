# Overview: Post-commit notification dispatch (SMS/email), best effort.

from __future__ import annotations

from typing import Protocol

from flask import current_app

from .concurrency import UnitOfWork


EXTENSION_KEY = "qrdisplay.notifications"

CHANNEL_SMS = "sms"
CHANNEL_EMAIL = "email"


class NotificationDispatcher(Protocol):
    def send(self, channel: str, recipient: str, message: str) -> bool:
        ...


class LoggingDispatcher:
    """Writes notifications to the app log instead of an SMS/email provider."""

    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []

    def send(self, channel: str, recipient: str, message: str) -> bool:
        self.sent.append((channel, recipient, message))
        current_app.logger.info("Notification [%s] to %s: %s", channel, recipient, message)
        return True


def init_app(app, dispatcher: NotificationDispatcher | None = None) -> None:
    app.extensions[EXTENSION_KEY] = dispatcher or LoggingDispatcher()


def get_dispatcher() -> NotificationDispatcher:
    dispatcher = current_app.extensions.get(EXTENSION_KEY)
    if dispatcher is None:
        dispatcher = LoggingDispatcher()
        current_app.extensions[EXTENSION_KEY] = dispatcher
    return dispatcher


def send_notification(channel: str, recipient: str | None, message: str) -> bool:
    """
    Send one notification now. Never raises: a failed send is logged and
    reported as False.
    """
    if not recipient:
        current_app.logger.debug("Notification skipped (no recipient): %s", message)
        return False
    try:
        ok = bool(get_dispatcher().send(channel, recipient, message))
    except Exception:
        current_app.logger.exception("Notification [%s] to %s failed", channel, recipient)
        return False
    if not ok:
        current_app.logger.warning("Notification [%s] to %s was not accepted", channel, recipient)
    return ok


def notify_after_commit(uow: UnitOfWork, channel: str, recipient: str | None, message: str) -> None:
    """Queue a notification that is sent only once `uow` has committed."""
    uow.on_commit(send_notification, channel, recipient, message)
