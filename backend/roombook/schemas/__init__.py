from .reservation import (
    ReservationCancel,
    ReservationCreate,
    ReservationRead,
    ReservationUpdate,
)
from .room import (
    OperatingHours,
    RoomAvailability,
    RoomCreate,
    RoomRead,
    RoomUpdate,
    TimeSlot,
)
from .room_access import (
    AccessGenerate,
    AccessVerification,
    AccessVerifyRequest,
    RoomAccessRead,
    RoomStatusRead,
    VerifyOutcome,
)

__all__ = [
    "AccessGenerate",
    "AccessVerification",
    "AccessVerifyRequest",
    "OperatingHours",
    "ReservationCancel",
    "ReservationCreate",
    "ReservationRead",
    "ReservationUpdate",
    "RoomAccessRead",
    "RoomAvailability",
    "RoomCreate",
    "RoomRead",
    "RoomStatusRead",
    "RoomUpdate",
    "TimeSlot",
    "VerifyOutcome",
]
