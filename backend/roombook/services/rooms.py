"""Room lookups and operating-hours arithmetic used by the booking services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import FrozenSet, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlmodel import Session, select

from roombook.core.timeutils import sunday_based_weekday
from roombook.models import Room
from roombook.schemas.room import OperatingHours
from roombook.services.errors import NotFoundError, OperatingHoursError

logger = logging.getLogger(__name__)

Interval = Tuple[datetime, datetime]


@dataclass(frozen=True)
class OperatingWindow:
    opens_at: time
    closes_at: time
    weekdays: FrozenSet[int]

    @classmethod
    def from_room(cls, room: Room) -> "OperatingWindow":
        hours = OperatingHours.model_validate(room.operating_hours)
        return cls(hours.opens_at, hours.closes_at, frozenset(hours.weekdays))

    def operates_on(self, day: date) -> bool:
        return sunday_based_weekday(day) in self.weekdays

    def bounds(self, day: date) -> Interval:
        return datetime.combine(day, self.opens_at), datetime.combine(day, self.closes_at)

    def check(self, start: datetime, end: datetime) -> None:
        """Raise OperatingHoursError unless [start, end) fits one operating day."""
        if start.date() != end.date():
            raise OperatingHoursError("Reservation must start and end on the same day")
        if not self.operates_on(start.date()):
            raise OperatingHoursError("Room is not available on this day")
        opens, closes = self.bounds(start.date())
        if start < opens or end > closes:
            raise OperatingHoursError(
                f"Reservation must be within operating hours "
                f"{self.opens_at:%H:%M}-{self.closes_at:%H:%M}"
            )


def free_intervals(window: Interval, busy: Sequence[Interval]) -> List[Interval]:
    """Parts of ``window`` not covered by any busy interval."""
    start, end = window
    free: List[Interval] = []
    cursor = start
    for busy_start, busy_end in sorted(busy):
        if busy_end <= cursor:
            continue
        if busy_start >= end:
            break
        if busy_start > cursor:
            free.append((cursor, busy_start))
        cursor = max(cursor, busy_end)
    if cursor < end:
        free.append((cursor, end))
    return free


class RoomCatalog:
    """Read access to rooms for the reservation core."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, room_id: UUID, active_only: bool = True) -> Room:
        room = self.session.get(Room, room_id)
        if room is None or (active_only and not room.is_active):
            raise NotFoundError("Room not found")
        return room

    def lock(self, room_id: UUID) -> Optional[Room]:
        """Take a row lock on the room until the current transaction ends.

        Databases without row locks (SQLite) render a plain SELECT; the
        in-process room lock covers them.
        """
        statement = select(Room).where(Room.id == room_id).with_for_update()
        return self.session.exec(statement).first()
