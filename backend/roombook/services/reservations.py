"""Reservation lifecycle: booking, changes, cancellation and confirmation.

All owner-scoped operations go through ``find_owned``, the single ownership
gate. The overlap check and the write that follows it run under a per-room
lock so two overlapping requests cannot both be accepted.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlmodel import Session, select

from roombook.core.locks import RoomLockRegistry, room_locks
from roombook.core.timeutils import Clock, to_utc_naive, utcnow
from roombook.models import ACTIVE_STATUSES, Reservation, ReservationStatus, Room
from roombook.schemas import (
    ReservationCreate,
    ReservationUpdate,
    RoomAvailability,
    TimeSlot,
)
from roombook.services.errors import (
    CapacityExceededError,
    ConflictError,
    ForbiddenError,
    InvalidDurationError,
    InvalidStateError,
    InvalidTimeError,
    MissingReasonError,
    NotFoundError,
    TooLateError,
)
from roombook.services.notifications import (
    NotificationEvent,
    NotificationSink,
    NullNotificationSink,
    notify_reservation,
    notify_room_available,
)
from roombook.services.rooms import OperatingWindow, RoomCatalog, free_intervals

logger = logging.getLogger(__name__)

MIN_DURATION = timedelta(minutes=30)
MAX_DURATION = timedelta(minutes=480)
UPDATE_CUTOFF = timedelta(minutes=60)
CANCEL_CUTOFF = timedelta(minutes=30)


class ReservationService:
    def __init__(
        self,
        session: Session,
        notifier: Optional[NotificationSink] = None,
        locks: RoomLockRegistry = room_locks,
        clock: Clock = utcnow,
    ):
        self.session = session
        self.notifier = notifier or NullNotificationSink()
        self.locks = locks
        self.clock = clock
        self.rooms = RoomCatalog(session)

    # Validation

    def _validate_slot(
        self, room: Room, start: datetime, end: datetime, attendees: int
    ) -> None:
        if start >= end:
            raise InvalidTimeError("Start time must be before end time")

        duration = end - start
        if duration < MIN_DURATION:
            raise InvalidDurationError("Reservation must be at least 30 minutes long")
        if duration > MAX_DURATION:
            raise InvalidDurationError("Reservation cannot be longer than 8 hours")

        self._validate_attendees(room, attendees)
        OperatingWindow.from_room(room).check(start, end)

    @staticmethod
    def _validate_attendees(room: Room, attendees: int) -> None:
        if attendees > room.capacity:
            raise CapacityExceededError(
                f"Attendees ({attendees}) exceed room capacity ({room.capacity})"
            )

    def _ensure_no_conflict(
        self,
        room_id: UUID,
        start: datetime,
        end: datetime,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        statement = select(Reservation.id).where(
            Reservation.room_id == room_id,
            Reservation.status.in_(ACTIVE_STATUSES),
            Reservation.start_time < end,
            Reservation.end_time > start,
        )
        if exclude_id is not None:
            statement = statement.where(Reservation.id != exclude_id)
        if self.session.exec(statement).first() is not None:
            raise ConflictError("Room is already reserved for this time slot")

    # Operations

    def create(self, payload: ReservationCreate, owner_id: UUID) -> Reservation:
        room = self.rooms.get(payload.room_id)
        start = to_utc_naive(payload.start_time)
        end = to_utc_naive(payload.end_time)

        if start <= self.clock():
            raise InvalidTimeError("Start time must be in the future")
        self._validate_slot(room, start, end, payload.attendees)

        reservation = Reservation(
            room_id=room.id,
            user_id=owner_id,
            title=payload.title,
            purpose=payload.purpose,
            start_time=start,
            end_time=end,
            attendees=payload.attendees,
            status=ReservationStatus.PENDING,
        )
        with self.locks.hold(room.id):
            try:
                self.rooms.lock(room.id)
                self._ensure_no_conflict(room.id, start, end)
                self.session.add(reservation)
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise
        self.session.refresh(reservation)

        logger.info(
            f"Reservation {reservation.id} created for room {room.id} "
            f"by user {owner_id} ({start:%Y-%m-%d %H:%M}-{end:%H:%M})"
        )
        notify_reservation(self.notifier, NotificationEvent.RESERVATION_CREATED, reservation)
        return reservation

    def list_owned(self, owner_id: UUID) -> List[Reservation]:
        statement = (
            select(Reservation)
            .where(Reservation.user_id == owner_id)
            .order_by(Reservation.start_time.desc())
        )
        return list(self.session.exec(statement).all())

    def get(self, reservation_id: UUID) -> Reservation:
        reservation = self.session.get(Reservation, reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation not found")
        return reservation

    def find_owned(self, reservation_id: UUID, caller_id: UUID) -> Reservation:
        reservation = self.get(reservation_id)
        if reservation.user_id != caller_id:
            raise ForbiddenError("You do not have access to this reservation")
        return reservation

    def list_all(
        self,
        status: Optional[ReservationStatus] = None,
        room_id: Optional[UUID] = None,
    ) -> List[Reservation]:
        statement = select(Reservation)
        if status is not None:
            statement = statement.where(Reservation.status == status)
        if room_id is not None:
            statement = statement.where(Reservation.room_id == room_id)
        statement = statement.order_by(Reservation.start_time.desc())
        return list(self.session.exec(statement).all())

    def update(
        self, reservation_id: UUID, patch: ReservationUpdate, caller_id: UUID
    ) -> Reservation:
        reservation = self.find_owned(reservation_id, caller_id)
        if reservation.is_terminal:
            raise InvalidStateError(
                f"Cannot update a reservation with status {reservation.status.value}"
            )

        now = self.clock()
        if now > reservation.start_time - UPDATE_CUTOFF:
            raise TooLateError(
                "Reservations can only be changed up to 1 hour before the start time"
            )

        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        start = to_utc_naive(changes.get("start_time", reservation.start_time))
        end = to_utc_naive(changes.get("end_time", reservation.end_time))
        attendees = changes.get("attendees", reservation.attendees)
        times_changed = start != reservation.start_time or end != reservation.end_time
        for field, value in (("start_time", start), ("end_time", end)):
            if field in changes:
                changes[field] = value

        room = self.rooms.get(reservation.room_id, active_only=times_changed)
        if times_changed:
            if start <= now:
                raise InvalidTimeError("Start time must be in the future")
            self._validate_slot(room, start, end, attendees)
        else:
            self._validate_attendees(room, attendees)

        with self.locks.hold(room.id):
            try:
                if times_changed:
                    self.rooms.lock(room.id)
                    self._ensure_no_conflict(room.id, start, end, exclude_id=reservation.id)
                for field, value in changes.items():
                    setattr(reservation, field, value)
                reservation.touch()
                self.session.add(reservation)
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise
        self.session.refresh(reservation)

        logger.info(f"Reservation {reservation.id} updated: {sorted(changes)}")
        notify_reservation(self.notifier, NotificationEvent.RESERVATION_UPDATED, reservation)
        return reservation

    def cancel(self, reservation_id: UUID, reason: Optional[str], caller_id: UUID) -> Reservation:
        reservation = self.find_owned(reservation_id, caller_id)
        if reservation.is_terminal:
            raise InvalidStateError(
                f"Cannot cancel a reservation with status {reservation.status.value}"
            )
        if not reason or not reason.strip():
            raise MissingReasonError("A cancellation reason is required")
        if self.clock() > reservation.start_time - CANCEL_CUTOFF:
            raise TooLateError(
                "Reservations can only be cancelled up to 30 minutes before the start time"
            )

        reservation.status = ReservationStatus.CANCELLED
        reservation.cancellation_reason = reason.strip()
        reservation.touch()
        self.session.add(reservation)
        self.session.commit()
        self.session.refresh(reservation)

        logger.info(f"Reservation {reservation.id} cancelled by user {caller_id}")
        notify_reservation(self.notifier, NotificationEvent.RESERVATION_CANCELLED, reservation)
        notify_room_available(self.notifier, reservation)
        return reservation

    def confirm(self, reservation_id: UUID) -> Reservation:
        reservation = self.get(reservation_id)
        if reservation.status != ReservationStatus.PENDING:
            raise InvalidStateError(
                f"Only pending reservations can be confirmed (status is {reservation.status.value})"
            )

        reservation.status = ReservationStatus.CONFIRMED
        reservation.touch()
        self.session.add(reservation)
        self.session.commit()
        self.session.refresh(reservation)

        logger.info(f"Reservation {reservation.id} confirmed")
        notify_reservation(
            self.notifier,
            NotificationEvent.RESERVATION_CONFIRMED,
            reservation,
            include_admins=False,
        )
        return reservation

    def find_by_room(self, room_id: UUID) -> List[Reservation]:
        self.rooms.get(room_id, active_only=False)
        statement = (
            select(Reservation)
            .where(
                Reservation.room_id == room_id,
                Reservation.status == ReservationStatus.CONFIRMED,
            )
            .order_by(Reservation.start_time)
        )
        return list(self.session.exec(statement).all())

    def room_availability(self, room_id: UUID, day: date) -> RoomAvailability:
        """Free time left on ``day`` within the room's operating hours."""
        room = self.rooms.get(room_id)
        window = OperatingWindow.from_room(room)
        if not window.operates_on(day):
            return RoomAvailability(
                room_id=room.id,
                day=day,
                is_operating=False,
                message="Room is not operating on this day",
            )

        opens, closes = window.bounds(day)
        statement = (
            select(Reservation)
            .where(
                Reservation.room_id == room.id,
                Reservation.status.in_(ACTIVE_STATUSES),
                Reservation.start_time < closes,
                Reservation.end_time > opens,
            )
            .order_by(Reservation.start_time)
        )
        booked = [(r.start_time, r.end_time) for r in self.session.exec(statement).all()]
        return RoomAvailability(
            room_id=room.id,
            day=day,
            is_operating=True,
            operating_start=opens,
            operating_end=closes,
            free_slots=[TimeSlot(start_time=s, end_time=e) for s, e in free_intervals((opens, closes), booked)],
            booked_slots=[TimeSlot(start_time=s, end_time=e) for s, e in booked],
        )
