import threading
from datetime import timedelta
from uuid import uuid4

import pytest
from sqlmodel import Session, select

from roombook.core.locks import RoomLockRegistry
from roombook.models import AccessMethod, Reservation, ReservationStatus, RoomAccess
from roombook.schemas import ReservationCreate, VerifyOutcome
from roombook.services.access import AccessService, mint_token
from roombook.services.errors import (
    ExpiredError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    TooEarlyError,
)
from roombook.services.reservations import ReservationService

from .conftest import MONDAY, at, build_room


def test_qr_and_nfc_tokens_are_32_hex_chars():
    for method in (AccessMethod.QR, AccessMethod.NFC):
        token = mint_token(method)
        assert len(token) == 32
        int(token, 16)


def test_pin_tokens_are_six_digits():
    for _ in range(50):
        pin = mint_token(AccessMethod.PIN)
        assert pin.isdigit()
        assert 100000 <= int(pin) <= 999999


class TestGenerate:
    def test_inside_window(self, access, confirmed_reservation, owner_id, clock):
        clock.set(at(MONDAY, 9, 55))

        token = access.generate(confirmed_reservation.id, AccessMethod.QR, owner_id)

        assert token.is_used is False
        assert token.expires_at == at(MONDAY, 10, 30)
        assert token.room_id == confirmed_reservation.room_id
        assert token.user_id == owner_id

    def test_too_early(self, access, confirmed_reservation, owner_id, clock):
        clock.set(at(MONDAY, 9, 49))

        with pytest.raises(TooEarlyError):
            access.generate(confirmed_reservation.id, AccessMethod.QR, owner_id)

    def test_window_edges_are_inclusive(self, access, confirmed_reservation, owner_id, clock):
        clock.set(at(MONDAY, 9, 50))
        first = access.generate(confirmed_reservation.id, AccessMethod.QR, owner_id)

        clock.set(at(MONDAY, 10, 30))
        again = access.generate(confirmed_reservation.id, AccessMethod.QR, owner_id)

        assert again.id == first.id

    def test_expired_after_window(self, access, confirmed_reservation, owner_id, clock):
        clock.set(at(MONDAY, 10, 31))

        with pytest.raises(ExpiredError):
            access.generate(confirmed_reservation.id, AccessMethod.QR, owner_id)

    def test_regenerate_returns_same_live_token(self, session, access, confirmed_reservation, owner_id, clock):
        clock.set(at(MONDAY, 10))
        first = access.generate(confirmed_reservation.id, AccessMethod.QR, owner_id)

        clock.advance(minutes=5)
        second = access.generate(confirmed_reservation.id, AccessMethod.PIN, owner_id)

        assert second.id == first.id
        assert second.access_token == first.access_token
        tokens = session.exec(
            select(RoomAccess).where(RoomAccess.reservation_id == confirmed_reservation.id)
        ).all()
        assert len(tokens) == 1

    def test_new_token_after_previous_was_used(self, access, confirmed_reservation, owner_id, clock):
        clock.set(at(MONDAY, 10))
        first = access.generate(confirmed_reservation.id, AccessMethod.PIN, owner_id)
        assert access.verify(first.access_token).success

        second = access.generate(confirmed_reservation.id, AccessMethod.PIN, owner_id)

        assert second.id != first.id
        assert second.is_used is False

    def test_pending_reservation_rejected(self, access, reservations, booking_request, owner_id, clock):
        pending = reservations.create(booking_request(), owner_id)
        clock.set(at(MONDAY, 10))

        with pytest.raises(InvalidStateError, match="confirmed"):
            access.generate(pending.id, AccessMethod.QR, owner_id)

    def test_cancelled_reservation_rejected(self, access, reservations, confirmed_reservation, owner_id, clock):
        reservations.cancel(confirmed_reservation.id, "No longer needed", owner_id)
        clock.set(at(MONDAY, 10))

        with pytest.raises(InvalidStateError):
            access.generate(confirmed_reservation.id, AccessMethod.QR, owner_id)

    def test_only_owner_may_generate(self, access, confirmed_reservation, other_id, clock):
        clock.set(at(MONDAY, 10))

        with pytest.raises(ForbiddenError):
            access.generate(confirmed_reservation.id, AccessMethod.QR, other_id)

    def test_unknown_reservation(self, access, owner_id):
        with pytest.raises(NotFoundError):
            access.generate(uuid4(), AccessMethod.QR, owner_id)

    def test_consumed_pin_value_can_be_issued_again(
        self, monkeypatch, access, reservations, booking_request, owner_id, clock
    ):
        first = reservations.confirm(reservations.create(booking_request(start=at(MONDAY, 10)), owner_id).id)
        second = reservations.confirm(reservations.create(booking_request(start=at(MONDAY, 14)), owner_id).id)
        monkeypatch.setattr("roombook.services.access.mint_token", lambda method: "123456")

        clock.set(at(MONDAY, 10))
        used = access.generate(first.id, AccessMethod.PIN, owner_id)
        assert access.verify("123456").success

        clock.set(at(MONDAY, 14))
        fresh = access.generate(second.id, AccessMethod.PIN, owner_id)
        result = access.verify("123456")

        assert fresh.id != used.id
        assert fresh.access_token == used.access_token
        assert result.outcome == VerifyOutcome.GRANTED
        assert result.access.reservation_id == second.id

    def test_colliding_unused_value_is_retried(
        self, monkeypatch, access, reservations, booking_request, owner_id, clock
    ):
        short = booking_request(start=at(MONDAY, 10), end=at(MONDAY, 10, 30))
        first = reservations.confirm(reservations.create(short, owner_id).id)
        second = reservations.confirm(reservations.create(booking_request(start=at(MONDAY, 10, 30)), owner_id).id)
        values = iter(["111111", "111111", "222222"])
        monkeypatch.setattr("roombook.services.access.mint_token", lambda method: next(values))
        clock.set(at(MONDAY, 10, 20))

        held = access.generate(first.id, AccessMethod.PIN, owner_id)
        retried = access.generate(second.id, AccessMethod.PIN, owner_id)

        assert held.access_token == "111111"
        assert retried.access_token == "222222"

    def test_concurrent_generate_issues_one_token(self, file_engine):
        owner = uuid4()
        clock = lambda: at(MONDAY, 10)  # noqa: E731
        with Session(file_engine) as session:
            room = build_room()
            session.add(room)
            session.commit()
            reservations = ReservationService(
                session, locks=RoomLockRegistry(), clock=lambda: at(MONDAY, 8)
            )
            reservation = reservations.create(
                ReservationCreate(
                    room_id=room.id,
                    title="Workshop",
                    purpose="Design workshop",
                    start_time=at(MONDAY, 10),
                    end_time=at(MONDAY, 11),
                    attendees=4,
                ),
                owner,
            )
            reservation_id = reservations.confirm(reservation.id).id

        attempts = 6
        barrier = threading.Barrier(attempts)
        tokens = []
        errors = []

        def tap():
            with Session(file_engine) as session:
                service = AccessService(session, clock=clock)
                barrier.wait()
                try:
                    tokens.append(service.generate(reservation_id, AccessMethod.PIN, owner).access_token)
                except Exception as e:
                    errors.append(e)

        threads = [threading.Thread(target=tap) for _ in range(attempts)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(tokens) == attempts
        assert len(set(tokens)) == 1
        with Session(file_engine) as session:
            stored = session.exec(
                select(RoomAccess).where(RoomAccess.reservation_id == reservation_id)
            ).all()
        assert len(stored) == 1


class TestVerify:
    def test_single_use(self, access, confirmed_reservation, owner_id, clock, notifier):
        clock.set(at(MONDAY, 10, 5))
        token = access.generate(confirmed_reservation.id, AccessMethod.QR, owner_id)

        granted = access.verify(token.access_token)
        again = access.verify(token.access_token)

        assert granted.success is True
        assert granted.outcome == VerifyOutcome.GRANTED
        assert granted.access.is_used is True
        assert granted.access.access_time == at(MONDAY, 10, 5)
        assert again.success is False
        assert again.outcome == VerifyOutcome.ALREADY_USED
        assert "access:granted" in notifier.for_audience(f"user:{owner_id}")
        assert "room:occupied" in notifier.for_audience(f"room:{confirmed_reservation.room_id}")
        assert "access:denied" in notifier.for_audience(f"user:{owner_id}")

    def test_unknown_token(self, access):
        result = access.verify("does-not-exist")

        assert result.success is False
        assert result.outcome == VerifyOutcome.INVALID_TOKEN
        assert result.access is None

    def test_expired_token(self, access, confirmed_reservation, owner_id, clock):
        clock.set(at(MONDAY, 10))
        token = access.generate(confirmed_reservation.id, AccessMethod.QR, owner_id)

        clock.set(at(MONDAY, 10, 31))
        result = access.verify(token.access_token)

        assert result.success is False
        assert result.outcome == VerifyOutcome.EXPIRED

    def test_token_for_cancelled_reservation_is_refused(
        self, session, access, confirmed_reservation, owner_id, clock
    ):
        clock.set(at(MONDAY, 10))
        token = access.generate(confirmed_reservation.id, AccessMethod.QR, owner_id)
        confirmed_reservation.status = ReservationStatus.CANCELLED
        session.add(confirmed_reservation)
        session.commit()

        result = access.verify(token.access_token)

        assert result.success is False
        assert result.outcome == VerifyOutcome.RESERVATION_INACTIVE
        session.refresh(token)
        assert token.is_used is False

    def test_notifier_failure_does_not_block_access(self, session, clock, confirmed_reservation, owner_id):
        class BrokenNotifier:
            def publish(self, event, audience, payload):
                raise ConnectionError("redis is down")

        service = AccessService(session, notifier=BrokenNotifier(), clock=clock)
        clock.set(at(MONDAY, 10))
        token = service.generate(confirmed_reservation.id, AccessMethod.QR, owner_id)

        assert service.verify(token.access_token).success is True

    def test_concurrent_verify_grants_once(self, file_engine):
        owner = uuid4()
        clock = lambda: at(MONDAY, 10)  # noqa: E731
        with Session(file_engine) as session:
            room = build_room()
            session.add(room)
            session.commit()
            reservations = ReservationService(
                session, locks=RoomLockRegistry(), clock=lambda: at(MONDAY, 8)
            )
            reservation = reservations.create(
                ReservationCreate(
                    room_id=room.id,
                    title="Interview",
                    purpose="Candidate interview",
                    start_time=at(MONDAY, 10),
                    end_time=at(MONDAY, 11),
                    attendees=2,
                ),
                owner,
            )
            reservations.confirm(reservation.id)
            token = AccessService(session, clock=clock).generate(
                reservation.id, AccessMethod.QR, owner
            ).access_token

        barrier = threading.Barrier(2)
        outcomes = []

        def scan():
            with Session(file_engine) as session:
                service = AccessService(session, clock=clock)
                barrier.wait()
                outcomes.append(service.verify(token).outcome)

        threads = [threading.Thread(target=scan) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == sorted([VerifyOutcome.GRANTED, VerifyOutcome.ALREADY_USED])


class TestHistoryAndRoomStatus:
    def test_history_newest_first(self, access, reservations, booking_request, owner_id, clock):
        first = reservations.confirm(reservations.create(booking_request(start=at(MONDAY, 10)), owner_id).id)
        second = reservations.confirm(reservations.create(booking_request(start=at(MONDAY, 14)), owner_id).id)

        clock.set(at(MONDAY, 10))
        older = access.generate(first.id, AccessMethod.QR, owner_id)
        clock.set(at(MONDAY, 14))
        newer = access.generate(second.id, AccessMethod.PIN, owner_id)

        assert [a.id for a in access.history(owner_id)] == [newer.id, older.id]
        assert access.history(uuid4()) == []

    def test_booked_but_not_checked_in_is_not_occupied(self, access, confirmed_reservation, owner_id, clock):
        clock.set(at(MONDAY, 10, 5))
        access.generate(confirmed_reservation.id, AccessMethod.QR, owner_id)

        status = access.current_room_status(confirmed_reservation.room_id)

        assert status.is_occupied is False
        assert status.current_reservation is None

    def test_checked_in_room_is_occupied_until_end(self, access, confirmed_reservation, owner_id, clock):
        clock.set(at(MONDAY, 10, 5))
        token = access.generate(confirmed_reservation.id, AccessMethod.QR, owner_id)
        access.verify(token.access_token)

        status = access.current_room_status(confirmed_reservation.room_id)
        assert status.is_occupied is True
        assert status.current_reservation.id == confirmed_reservation.id
        assert [record.id for record in status.access_records] == [token.id]

        clock.set(at(MONDAY, 11))
        assert access.current_room_status(confirmed_reservation.room_id).is_occupied is False


def test_booking_to_door_scenario(session, reservations, access, booking_request, owner_id, clock):
    reservation = reservations.create(booking_request(attendees=5), owner_id)
    assert reservation.status == ReservationStatus.PENDING

    reservation = reservations.confirm(reservation.id)
    assert reservation.status == ReservationStatus.CONFIRMED

    clock.set(at(MONDAY, 10, 5))
    token = access.generate(reservation.id, AccessMethod.QR, owner_id)
    assert token.expires_at == at(MONDAY, 10, 30)

    result = access.verify(token.access_token)
    assert result.success is True

    status = access.current_room_status(reservation.room_id)
    assert status.is_occupied is True
    assert status.current_reservation.id == reservation.id

    again = access.verify(token.access_token)
    assert again.success is False
    assert again.message == "Access token has already been used"

    stored = session.get(Reservation, reservation.id)
    assert stored.status == ReservationStatus.CONFIRMED
