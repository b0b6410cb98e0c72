from __future__ import annotations

import logging
from datetime import date
from typing import List
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from sqlmodel import select

from roombook.api.deps import AdminUser, CurrentUser, ReservationServiceDep
from roombook.core.cache import ROOMS_KEY, get_cache, invalidate_room_cache
from roombook.db import SessionDep
from roombook.models import Reservation, Room
from roombook.schemas import (
    ReservationRead,
    RoomAvailability,
    RoomCreate,
    RoomRead,
    RoomUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_room_or_404(session: SessionDep, room_id: UUID) -> Room:
    room = session.get(Room, room_id)
    if not room:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Room not found"
        )
    return room


def _ensure_room_number_free(session: SessionDep, room_number: str, room_id: UUID | None = None) -> None:
    statement = select(Room).where(Room.room_number == room_number)
    existing = session.exec(statement).first()
    if existing and existing.id != room_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Room number {room_number} already exists",
        )


@router.get("/", response_model=List[RoomRead], summary="List rooms")
def list_rooms(session: SessionDep) -> List[dict]:
    cache = get_cache()
    cached = cache.get(ROOMS_KEY)
    if cached is not None:
        return cached

    statement = select(Room).where(Room.is_active == True).order_by(Room.room_number)  # noqa: E712
    rooms = [
        RoomRead.model_validate(room).model_dump(mode="json")
        for room in session.exec(statement).all()
    ]
    cache.set(ROOMS_KEY, rooms)
    return rooms


@router.post(
    "/",
    response_model=RoomRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create room",
)
def create_room(payload: RoomCreate, session: SessionDep, admin: AdminUser) -> Room:
    _ensure_room_number_free(session, payload.room_number)
    room = Room(**payload.model_dump())
    session.add(room)
    session.commit()
    session.refresh(room)
    invalidate_room_cache(room.id)
    logger.info(f"Room {room.room_number} created by {admin.id}")
    return room


@router.get(
    "/{room_id}",
    response_model=RoomRead,
    summary="Get room by id",
)
def get_room(room_id: UUID, session: SessionDep) -> Room:
    return _get_room_or_404(session, room_id)


@router.put(
    "/{room_id}",
    response_model=RoomRead,
    summary="Update room",
)
def update_room(
    room_id: UUID, payload: RoomUpdate, session: SessionDep, admin: AdminUser
) -> Room:
    room = _get_room_or_404(session, room_id)

    update_data = payload.model_dump(exclude_unset=True)
    if update_data.get("room_number"):
        _ensure_room_number_free(session, update_data["room_number"], room.id)
    for field, value in update_data.items():
        setattr(room, field, value)
    room.touch()

    session.add(room)
    session.commit()
    session.refresh(room)
    invalidate_room_cache(room.id)
    return room


@router.delete(
    "/{room_id}",
    status_code=status.HTTP_200_OK,
    summary="Deactivate room",
)
def delete_room(room_id: UUID, session: SessionDep, admin: AdminUser) -> dict[str, str]:
    """Soft delete: reservations keep pointing at the room."""
    room = _get_room_or_404(session, room_id)
    room.is_active = False
    room.touch()
    session.add(room)
    session.commit()
    invalidate_room_cache(room.id)
    logger.info(f"Room {room.room_number} deactivated by {admin.id}")
    return {"status": "deactivated"}


@router.get(
    "/{room_id}/availability",
    response_model=RoomAvailability,
    summary="Get free time slots for a date",
)
def get_room_availability(
    room_id: UUID,
    current_user: CurrentUser,
    service: ReservationServiceDep,
    day: date = Query(..., alias="date", description="Date to check (YYYY-MM-DD, UTC)"),
) -> RoomAvailability:
    return service.room_availability(room_id, day)


@router.get(
    "/{room_id}/reservations",
    response_model=List[ReservationRead],
    summary="Confirmed reservations of a room",
)
def list_room_reservations(
    room_id: UUID, current_user: CurrentUser, service: ReservationServiceDep
) -> List[Reservation]:
    return service.find_by_room(room_id)
