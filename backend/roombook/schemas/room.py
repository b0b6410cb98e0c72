from __future__ import annotations

from datetime import date, datetime, time
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class OperatingHours(BaseModel):
    """Daily opening range on the UTC wall clock. Weekdays use 0 = Sunday."""

    start_time: str = Field(pattern=r"^\d{2}:\d{2}$")
    end_time: str = Field(pattern=r"^\d{2}:\d{2}$")
    weekdays: List[int] = Field(min_length=1)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_clock(cls, value: str) -> str:
        hours, minutes = (int(part) for part in value.split(":"))
        if hours > 23 or minutes > 59:
            raise ValueError("time must be a valid HH:MM clock value")
        return value

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, value: List[int]) -> List[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("weekdays must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(value))

    @model_validator(mode="after")
    def check_range(self) -> "OperatingHours":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

    @property
    def opens_at(self) -> time:
        return time.fromisoformat(self.start_time)

    @property
    def closes_at(self) -> time:
        return time.fromisoformat(self.end_time)


class RoomBase(BaseModel):
    room_number: str = Field(max_length=50)
    name: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, max_length=500)
    capacity: int = Field(default=1, ge=1)
    location: Optional[str] = Field(default=None, max_length=255)
    facilities: List[str] = Field(default_factory=list)
    operating_hours: OperatingHours
    is_active: bool = Field(default=True)


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    room_number: Optional[str] = Field(default=None, max_length=50)
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=500)
    capacity: Optional[int] = Field(default=None, ge=1)
    location: Optional[str] = Field(default=None, max_length=255)
    facilities: Optional[List[str]] = None
    operating_hours: Optional[OperatingHours] = None
    is_active: Optional[bool] = None


class RoomRead(RoomBase):
    id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TimeSlot(BaseModel):
    start_time: datetime
    end_time: datetime


class RoomAvailability(BaseModel):
    room_id: UUID
    day: date
    is_operating: bool
    operating_start: Optional[datetime] = None
    operating_end: Optional[datetime] = None
    free_slots: List[TimeSlot] = []
    booked_slots: List[TimeSlot] = []
    message: Optional[str] = None
