"""Fire-and-forget notifications for reservation and access events.

Events are published as JSON envelopes on a Redis channel. The API process
listens on the same channel (see ``redis_pubsub``) and forwards each
envelope to the matching WebSocket clients. Publishing never raises: a lost
notification must not undo the reservation or token change behind it.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Optional, Protocol

import redis

from roombook.core.config import settings
from roombook.core.timeutils import utcnow
from roombook.models import Reservation, RoomAccess

logger = logging.getLogger(__name__)

ADMINS = "admins"


class NotificationEvent(str, Enum):
    RESERVATION_CREATED = "reservation:created"
    RESERVATION_UPDATED = "reservation:updated"
    RESERVATION_CONFIRMED = "reservation:confirmed"
    RESERVATION_CANCELLED = "reservation:cancelled"
    RESERVATION_COMPLETED = "reservation:completed"
    RESERVATION_NO_SHOW = "reservation:no_show"
    ROOM_OCCUPIED = "room:occupied"
    ROOM_AVAILABLE = "room:available"
    ACCESS_GRANTED = "access:granted"
    ACCESS_DENIED = "access:denied"


def user_audience(user_id: Any) -> str:
    return f"user:{user_id}"


def room_audience(room_id: Any) -> str:
    return f"room:{room_id}"


class NotificationSink(Protocol):
    def publish(self, event: NotificationEvent, audience: str, payload: dict) -> None:
        ...


class NullNotificationSink:
    """Drops every event. Used when realtime delivery is disabled."""

    def publish(self, event: NotificationEvent, audience: str, payload: dict) -> None:
        logger.debug(f"Realtime disabled, dropping {event.value} for {audience}")


class RedisNotificationSink:
    """Publishes envelopes to the notifications channel."""

    def __init__(self, client: redis.Redis, channel: str = settings.NOTIFICATIONS_CHANNEL):
        self._client = client
        self.channel = channel

    def publish(self, event: NotificationEvent, audience: str, payload: dict) -> None:
        envelope = {
            "event": event.value,
            "audience": audience,
            "payload": payload,
            "timestamp": utcnow().isoformat(),
        }
        self._client.publish(self.channel, json.dumps(envelope, default=str))
        logger.debug(f"Published {event.value} to {audience}")


def safe_publish(
    sink: NotificationSink, event: NotificationEvent, audience: str, payload: dict
) -> None:
    try:
        sink.publish(event, audience, payload)
    except Exception as e:
        # Publishing never fails the committed change it announces
        logger.warning(f"Failed to publish {event.value} to {audience}: {e}", exc_info=True)


def reservation_payload(reservation: Reservation) -> dict:
    return {
        "reservation_id": str(reservation.id),
        "room_id": str(reservation.room_id),
        "user_id": str(reservation.user_id),
        "title": reservation.title,
        "status": reservation.status.value,
        "start_time": reservation.start_time.isoformat(),
        "end_time": reservation.end_time.isoformat(),
    }


def access_payload(access: RoomAccess, message: Optional[str] = None) -> dict:
    payload = {
        "access_id": str(access.id),
        "reservation_id": str(access.reservation_id),
        "room_id": str(access.room_id),
        "access_method": access.access_method.value,
    }
    if access.access_time is not None:
        payload["access_time"] = access.access_time.isoformat()
    if message:
        payload["message"] = message
    return payload


def notify_reservation(
    sink: NotificationSink,
    event: NotificationEvent,
    reservation: Reservation,
    include_admins: bool = True,
) -> None:
    """Send a reservation event to its owner and, optionally, to admins."""
    payload = reservation_payload(reservation)
    safe_publish(sink, event, user_audience(reservation.user_id), payload)
    if include_admins:
        safe_publish(sink, event, ADMINS, payload)


def notify_room_available(sink: NotificationSink, reservation: Reservation) -> None:
    safe_publish(
        sink,
        NotificationEvent.ROOM_AVAILABLE,
        room_audience(reservation.room_id),
        {
            "room_id": str(reservation.room_id),
            "start_time": reservation.start_time.isoformat(),
            "end_time": reservation.end_time.isoformat(),
        },
    )


_sink: NotificationSink | None = None


def get_notification_sink() -> NotificationSink:
    """Process-wide sink built from settings on first use."""
    global _sink
    if _sink is None:
        if settings.ENABLE_REALTIME and settings.REDIS_URL:
            client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
            _sink = RedisNotificationSink(client)
            logger.info(f"Publishing notifications to {settings.NOTIFICATIONS_CHANNEL}")
        else:
            _sink = NullNotificationSink()
    return _sink
