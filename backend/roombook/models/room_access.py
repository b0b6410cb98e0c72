from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime, Index, text
from sqlmodel import Field, SQLModel


class AccessMethod(str, Enum):
    QR = "QR"
    PIN = "PIN"
    NFC = "NFC"


class RoomAccess(SQLModel, table=True):
    """Single-use entry credential issued for a confirmed reservation.

    Only verification mutates a row after creation: it flips ``is_used`` and
    stamps ``access_time`` in one conditional update.
    """

    __tablename__ = "room_accesses"
    __table_args__ = (
        Index("ix_room_accesses_reservation_used", "reservation_id", "is_used"),
        Index("ix_room_accesses_user_created", "user_id", "created_at"),
        Index("ix_room_accesses_room_created", "room_id", "created_at"),
        # At most one unused token per reservation
        Index(
            "uq_room_accesses_reservation_unused",
            "reservation_id",
            unique=True,
            sqlite_where=text("is_used = 0"),
            postgresql_where=text("NOT is_used"),
        ),
        # Token values are unique among unused tokens only
        Index(
            "uq_room_accesses_token_unused",
            "access_token",
            unique=True,
            sqlite_where=text("is_used = 0"),
            postgresql_where=text("NOT is_used"),
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    reservation_id: UUID = Field(foreign_key="reservations.id", nullable=False)
    user_id: UUID = Field(nullable=False)
    room_id: UUID = Field(foreign_key="rooms.id", nullable=False)
    access_method: AccessMethod
    access_token: str = Field(max_length=64, index=True)
    access_time: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=True)
    )
    expires_at: datetime = Field(sa_column=Column(DateTime, nullable=False))
    is_used: bool = Field(default=False, nullable=False)
    created_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False)
    )
