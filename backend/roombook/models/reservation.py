from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime, Index
from sqlmodel import Field, SQLModel


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


# Statuses that hold a room's time slot
ACTIVE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)
TERMINAL_STATUSES = (
    ReservationStatus.CANCELLED,
    ReservationStatus.COMPLETED,
    ReservationStatus.NO_SHOW,
)


class Reservation(SQLModel, table=True):
    """A user's booking of a room for a time range (naive UTC)."""

    __tablename__ = "reservations"
    __table_args__ = (
        Index(
            "ix_reservations_room_status_time",
            "room_id",
            "status",
            "start_time",
            "end_time",
        ),
        Index("ix_reservations_user_time", "user_id", "start_time"),
        Index("ix_reservations_status_start", "status", "start_time"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    room_id: UUID = Field(foreign_key="rooms.id", nullable=False)
    # Users live in the identity provider; only the id is kept here
    user_id: UUID = Field(nullable=False)
    title: str = Field(max_length=255)
    purpose: str = Field(max_length=1000)
    start_time: datetime = Field(sa_column=Column(DateTime, nullable=False))
    end_time: datetime = Field(sa_column=Column(DateTime, nullable=False))
    attendees: int = Field(ge=1)
    status: ReservationStatus = Field(default=ReservationStatus.PENDING)
    cancellation_reason: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False)
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def touch(self) -> None:
        self.updated_at = datetime.utcnow()
