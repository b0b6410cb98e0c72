from .reservation import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Reservation,
    ReservationStatus,
)
from .room import Room
from .room_access import AccessMethod, RoomAccess

__all__ = [
    "ACTIVE_STATUSES",
    "AccessMethod",
    "Reservation",
    "ReservationStatus",
    "Room",
    "RoomAccess",
    "TERMINAL_STATUSES",
]
