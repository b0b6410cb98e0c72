"""Periodic reservation sweeps: no-shows and auto-completion.

Both sweeps are idempotent. Every reservation moves through a conditional
update that only matches while it is still confirmed, so a cancellation that
lands between the read and the write is never overwritten. Each transition
is committed on its own; one failing reservation does not stop the batch.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy import update
from sqlmodel import Session, select

from roombook.core.locks import sweep_guard
from roombook.core.timeutils import Clock, utcnow
from roombook.db import engine
from roombook.models import Reservation, ReservationStatus, RoomAccess
from roombook.services.notifications import (
    NotificationEvent,
    NotificationSink,
    NullNotificationSink,
    notify_reservation,
    notify_room_available,
)

logger = logging.getLogger(__name__)

NO_SHOW_GRACE = timedelta(minutes=10)
NO_SHOW_REASON = "Automatically marked as no-show: nobody checked in within 10 minutes of the start time"

NO_SHOW_SWEEP = "no_show"
COMPLETION_SWEEP = "completion"


@dataclass
class SweepReport:
    sweep: str
    ran: bool = True
    examined: int = 0
    transitioned: int = 0
    skipped: int = 0
    failed: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def _default_session_factory() -> Session:
    return Session(engine)


class LifecycleScheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session] = _default_session_factory,
        notifier: Optional[NotificationSink] = None,
        guard=sweep_guard,
        clock: Clock = utcnow,
    ):
        self.session_factory = session_factory
        self.notifier = notifier or NullNotificationSink()
        self.guard = guard
        self.clock = clock

    def run_no_show_sweep(self) -> SweepReport:
        """Mark confirmed reservations nobody checked in to as NO_SHOW."""
        return self._run(NO_SHOW_SWEEP, self._sweep_no_shows)

    def run_completion_sweep(self) -> SweepReport:
        """Mark confirmed reservations whose end time has passed as COMPLETED."""
        return self._run(COMPLETION_SWEEP, self._sweep_completions)

    def _run(self, name: str, sweep: Callable[[Session, SweepReport], None]) -> SweepReport:
        report = SweepReport(sweep=name)
        with self.guard.acquire(name) as acquired:
            if not acquired:
                logger.info(f"Sweep {name} already running, skipping")
                report.ran = False
                return report

            logger.info(f"Starting {name} sweep")
            try:
                with self.session_factory() as session:
                    sweep(session, report)
            except Exception as e:
                logger.error(f"Sweep {name} aborted: {e}", exc_info=True)
                report.error = str(e)

        logger.info(
            f"Finished {name} sweep: examined={report.examined} "
            f"transitioned={report.transitioned} skipped={report.skipped} "
            f"failed={report.failed}"
        )
        return report

    def _sweep_no_shows(self, session: Session, report: SweepReport) -> None:
        now = self.clock()
        candidates = session.exec(
            select(Reservation).where(
                Reservation.status == ReservationStatus.CONFIRMED,
                Reservation.start_time < now - NO_SHOW_GRACE,
            )
        ).all()
        report.examined = len(candidates)
        logger.info(f"Found {len(candidates)} no-show candidates")

        # Ids are read up front; each commit below expires the loaded rows
        for reservation_id in [reservation.id for reservation in candidates]:
            try:
                if self._checked_in(session, reservation_id):
                    report.skipped += 1
                    continue
                changed = self._transition(
                    session, reservation_id, ReservationStatus.NO_SHOW, NO_SHOW_REASON
                )
            except Exception:
                session.rollback()
                logger.exception(f"Failed to mark reservation {reservation_id} as no-show")
                report.failed += 1
                continue

            self._record(session, report, reservation_id, changed, NotificationEvent.RESERVATION_NO_SHOW)

    def _sweep_completions(self, session: Session, report: SweepReport) -> None:
        now = self.clock()
        candidates = session.exec(
            select(Reservation).where(
                Reservation.status == ReservationStatus.CONFIRMED,
                Reservation.end_time < now,
            )
        ).all()
        report.examined = len(candidates)
        logger.info(f"Found {len(candidates)} reservations to complete")

        for reservation_id in [reservation.id for reservation in candidates]:
            try:
                changed = self._transition(session, reservation_id, ReservationStatus.COMPLETED)
            except Exception:
                session.rollback()
                logger.exception(f"Failed to complete reservation {reservation_id}")
                report.failed += 1
                continue

            self._record(session, report, reservation_id, changed, NotificationEvent.RESERVATION_COMPLETED)

    @staticmethod
    def _checked_in(session: Session, reservation_id) -> bool:
        statement = select(RoomAccess.id).where(
            RoomAccess.reservation_id == reservation_id,
            RoomAccess.access_time.is_not(None),
        )
        return session.exec(statement).first() is not None

    def _transition(
        self,
        session: Session,
        reservation_id,
        status: ReservationStatus,
        reason: Optional[str] = None,
    ) -> bool:
        values = {"status": status, "updated_at": self.clock()}
        if reason is not None:
            values["cancellation_reason"] = reason
        result = session.exec(
            update(Reservation)
            .where(
                Reservation.id == reservation_id,
                Reservation.status == ReservationStatus.CONFIRMED,
            )
            .values(**values)
        )
        session.commit()
        return result.rowcount == 1

    def _record(
        self,
        session: Session,
        report: SweepReport,
        reservation_id,
        changed: bool,
        event: NotificationEvent,
    ) -> None:
        if not changed:
            # Cancelled or transitioned elsewhere since it was selected
            report.skipped += 1
            return
        report.transitioned += 1
        try:
            reservation = session.get(Reservation, reservation_id)
            logger.info(f"Reservation {reservation_id} -> {reservation.status.value}")
            notify_reservation(self.notifier, event, reservation)
            notify_room_available(self.notifier, reservation)
        except Exception:
            # The transition is committed; only the announcement is lost
            session.rollback()
            logger.exception(f"Failed to announce transition of reservation {reservation_id}")
