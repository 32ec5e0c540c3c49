"""Household notifications for reservation decisions."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol

from app_logger import get_logger
from reservations.models import Notification

logger = get_logger("notifications")


class NotificationDispatcher(Protocol):
    def notify(self, user_ids: Iterable[str], message: str, metadata: Mapping[str, Any]) -> None: ...


class DatabaseNotificationDispatcher:
    """Stores one notification row per recipient."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def notify(self, user_ids: Iterable[str], message: str, metadata: Mapping[str, Any]) -> None:
        recipients = list(dict.fromkeys(user_ids))
        if not recipients:
            return

        with self._session_factory() as db:
            with db.begin():
                db.add_all(
                    Notification(
                        user_id=user_id,
                        facility_reservation_id=metadata.get("reservationId"),
                        type=metadata.get("type", "facility_reservation"),
                        title=metadata.get("title", "Facility Reservation"),
                        message=message,
                    )
                    for user_id in recipients
                )
        logger.info("Queued %d notification(s) of type %s", len(recipients), metadata.get("type"))


class NullNotificationDispatcher:
    def notify(self, user_ids: Iterable[str], message: str, metadata: Mapping[str, Any]) -> None:
        logger.debug("Notifications disabled; dropping %s", metadata.get("type"))


def dispatch_safely(
    dispatcher: NotificationDispatcher,
    user_ids: Iterable[str],
    message: str,
    metadata: Mapping[str, Any],
) -> None:
    # the reservation is already committed at this point
    try:
        dispatcher.notify(user_ids, message, metadata)
    except Exception:
        logger.exception("Failed to dispatch %s notification", metadata.get("type"))
