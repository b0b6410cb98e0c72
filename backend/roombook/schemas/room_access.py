from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from roombook.models.room_access import AccessMethod
from roombook.schemas.reservation import ReservationRead


class AccessGenerate(BaseModel):
    """Schema for requesting an entry token."""

    reservation_id: UUID
    access_method: AccessMethod = AccessMethod.QR


class AccessVerifyRequest(BaseModel):
    """Token presented at the door."""

    access_token: str = Field(min_length=1, max_length=64)


class RoomAccessRead(BaseModel):
    """Schema for reading an issued token."""

    id: UUID
    reservation_id: UUID
    user_id: UUID
    room_id: UUID
    access_method: AccessMethod
    access_token: str
    access_time: Optional[datetime] = None
    expires_at: datetime
    is_used: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VerifyOutcome(str, Enum):
    GRANTED = "GRANTED"
    INVALID_TOKEN = "INVALID_TOKEN"
    ALREADY_USED = "ALREADY_USED"
    EXPIRED = "EXPIRED"
    RESERVATION_INACTIVE = "RESERVATION_INACTIVE"


class AccessVerification(BaseModel):
    success: bool
    outcome: VerifyOutcome
    message: str
    access: Optional[RoomAccessRead] = None


class RoomStatusRead(BaseModel):
    room_id: UUID
    is_occupied: bool
    current_reservation: Optional[ReservationRead] = None
    access_records: List[RoomAccessRead] = []
