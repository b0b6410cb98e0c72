from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from roombook.models.reservation import ReservationStatus


class ReservationBase(BaseModel):
    room_id: UUID
    title: str = Field(min_length=1, max_length=255)
    purpose: str = Field(min_length=1, max_length=1000)
    start_time: datetime
    end_time: datetime
    attendees: int = Field(ge=1)


class ReservationCreate(ReservationBase):
    pass


class ReservationUpdate(BaseModel):
    """Partial update. Omitted fields keep their stored values."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    purpose: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    attendees: Optional[int] = Field(default=None, ge=1)


class ReservationCancel(BaseModel):
    # Blank reasons are rejected by the service with a distinct error kind
    reason: str = Field(default="", max_length=500)


class ReservationRead(ReservationBase):
    id: UUID
    user_id: UUID
    status: ReservationStatus
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
