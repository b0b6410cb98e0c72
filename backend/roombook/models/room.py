from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel


class Room(SQLModel, table=True):
    """Bookable room with its capacity and weekly operating hours."""

    __tablename__ = "rooms"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    room_number: str = Field(max_length=50, unique=True, index=True)
    name: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, max_length=500)
    capacity: int = Field(default=1, ge=1)
    location: Optional[str] = Field(default=None, max_length=255)
    facilities: List[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    # {"start_time": "HH:MM", "end_time": "HH:MM", "weekdays": [0..6]}, 0 = Sunday
    operating_hours: dict = Field(sa_column=Column(JSON, nullable=False))
    is_active: bool = Field(default=True)
    created_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False)
    )

    def touch(self) -> None:
        self.updated_at = datetime.utcnow()
