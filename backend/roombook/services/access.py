"""Single-use entry tokens for confirmed reservations."""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from roombook.core.timeutils import Clock, utcnow
from roombook.models import (
    AccessMethod,
    Reservation,
    ReservationStatus,
    RoomAccess,
)
from roombook.schemas import (
    AccessVerification,
    ReservationRead,
    RoomAccessRead,
    RoomStatusRead,
    VerifyOutcome,
)
from roombook.services.errors import (
    ConflictError,
    ExpiredError,
    InvalidStateError,
    TooEarlyError,
)
from roombook.services.notifications import (
    ADMINS,
    NotificationEvent,
    NotificationSink,
    NullNotificationSink,
    access_payload,
    room_audience,
    safe_publish,
    user_audience,
)
from roombook.services.reservations import ReservationService

logger = logging.getLogger(__name__)

ENTRY_LEAD = timedelta(minutes=10)
ENTRY_GRACE = timedelta(minutes=30)
MAX_MINT_ATTEMPTS = 5


def mint_token(method: AccessMethod) -> str:
    if method == AccessMethod.PIN:
        return str(100000 + secrets.randbelow(900000))
    # QR and NFC carry the same opaque 32 hex character value
    return secrets.token_hex(16)


class AccessService:
    def __init__(
        self,
        session: Session,
        notifier: Optional[NotificationSink] = None,
        clock: Clock = utcnow,
        reservations: Optional[ReservationService] = None,
    ):
        self.session = session
        self.notifier = notifier or NullNotificationSink()
        self.clock = clock
        self.reservations = reservations or ReservationService(
            session, notifier=self.notifier, clock=clock
        )

    def _live_token(self, reservation_id: UUID, now) -> Optional[RoomAccess]:
        statement = (
            select(RoomAccess)
            .where(
                RoomAccess.reservation_id == reservation_id,
                RoomAccess.is_used == False,  # noqa: E712
                RoomAccess.expires_at >= now,
            )
            .order_by(RoomAccess.created_at.desc())
        )
        return self.session.exec(statement).first()

    def generate(
        self, reservation_id: UUID, method: AccessMethod, caller_id: UUID
    ) -> RoomAccess:
        reservation = self.reservations.find_owned(reservation_id, caller_id)
        if reservation.status in (ReservationStatus.CANCELLED, ReservationStatus.COMPLETED):
            raise InvalidStateError(
                f"Cannot generate access for a {reservation.status.value} reservation"
            )
        if reservation.status != ReservationStatus.CONFIRMED:
            raise InvalidStateError("Only confirmed reservations may generate access")

        now = self.clock()
        opens_at = reservation.start_time - ENTRY_LEAD
        expires_at = reservation.start_time + ENTRY_GRACE
        if now < opens_at:
            raise TooEarlyError(
                "Access can be generated at most 10 minutes before the start time"
            )
        if now > expires_at:
            raise ExpiredError("The access window for this reservation has passed")

        for attempt in range(1, MAX_MINT_ATTEMPTS + 1):
            existing = self._live_token(reservation.id, now)
            if existing is not None:
                return existing

            access = RoomAccess(
                reservation_id=reservation.id,
                user_id=reservation.user_id,
                room_id=reservation.room_id,
                access_method=method,
                access_token=mint_token(method),
                expires_at=expires_at,
                created_at=now,
            )
            self.session.add(access)
            try:
                self.session.commit()
            except IntegrityError:
                # Another request issued a token first, or the value collided
                self.session.rollback()
                logger.info(
                    f"Token insert for reservation {reservation_id} lost a race "
                    f"(attempt {attempt})"
                )
                continue

            self.session.refresh(access)
            logger.info(
                f"Issued {method.value} token {access.id} for reservation {reservation_id}"
            )
            return access

        raise ConflictError("Could not issue an access token, please retry")

    def _deny(
        self, access: RoomAccess, outcome: VerifyOutcome, message: str
    ) -> AccessVerification:
        logger.info(f"Access denied for token {access.id}: {outcome.value}")
        safe_publish(
            self.notifier,
            NotificationEvent.ACCESS_DENIED,
            user_audience(access.user_id),
            access_payload(access, message),
        )
        return AccessVerification(success=False, outcome=outcome, message=message)

    def verify(self, token: str) -> AccessVerification:
        """Consume a token at the door. Failed checks are reported, not raised."""
        now = self.clock()
        # A consumed token may share its value with a newer unused one
        access = self.session.exec(
            select(RoomAccess)
            .where(RoomAccess.access_token == token)
            .order_by(RoomAccess.is_used, RoomAccess.created_at.desc())
        ).first()
        if access is None:
            logger.info("Access denied: unknown token")
            return AccessVerification(
                success=False,
                outcome=VerifyOutcome.INVALID_TOKEN,
                message="Invalid access token",
            )
        if access.is_used:
            return self._deny(access, VerifyOutcome.ALREADY_USED, "Access token has already been used")
        if now > access.expires_at:
            return self._deny(access, VerifyOutcome.EXPIRED, "Access token has expired")

        reservation = self.session.get(Reservation, access.reservation_id)
        if reservation is None or reservation.status != ReservationStatus.CONFIRMED:
            return self._deny(
                access,
                VerifyOutcome.RESERVATION_INACTIVE,
                "Reservation is no longer active",
            )

        result = self.session.exec(
            update(RoomAccess)
            .where(RoomAccess.id == access.id, RoomAccess.is_used == False)  # noqa: E712
            .values(is_used=True, access_time=now)
        )
        self.session.commit()
        if result.rowcount != 1:
            return self._deny(access, VerifyOutcome.ALREADY_USED, "Access token has already been used")

        self.session.refresh(access)
        logger.info(f"Access granted to room {access.room_id} for reservation {access.reservation_id}")

        payload = access_payload(access)
        safe_publish(self.notifier, NotificationEvent.ACCESS_GRANTED, user_audience(access.user_id), payload)
        safe_publish(self.notifier, NotificationEvent.ROOM_OCCUPIED, room_audience(access.room_id), payload)
        safe_publish(self.notifier, NotificationEvent.ROOM_OCCUPIED, ADMINS, payload)
        return AccessVerification(
            success=True,
            outcome=VerifyOutcome.GRANTED,
            message="Access granted",
            access=RoomAccessRead.model_validate(access),
        )

    def history(self, user_id: UUID) -> List[RoomAccess]:
        statement = (
            select(RoomAccess)
            .where(RoomAccess.user_id == user_id)
            .order_by(RoomAccess.created_at.desc())
        )
        return list(self.session.exec(statement).all())

    def current_room_status(self, room_id: UUID) -> RoomStatusRead:
        """Occupied only when someone checked in for the reservation running now."""
        now = self.clock()
        statement = (
            select(RoomAccess, Reservation)
            .join(Reservation, Reservation.id == RoomAccess.reservation_id)
            .where(
                RoomAccess.room_id == room_id,
                RoomAccess.is_used == True,  # noqa: E712
                Reservation.status == ReservationStatus.CONFIRMED,
                Reservation.start_time <= now,
                Reservation.end_time > now,
            )
            .order_by(RoomAccess.access_time.desc())
        )
        rows = self.session.exec(statement).all()
        if not rows:
            return RoomStatusRead(room_id=room_id, is_occupied=False)

        current = rows[0][1]
        return RoomStatusRead(
            room_id=room_id,
            is_occupied=True,
            current_reservation=ReservationRead.model_validate(current),
            access_records=[
                RoomAccessRead.model_validate(access)
                for access, reservation in rows
                if reservation.id == current.id
            ],
        )
