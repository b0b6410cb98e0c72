from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, status

from roombook.api.deps import AdminUser, CurrentUser, ReservationServiceDep
from roombook.models import Reservation
from roombook.schemas import (
    ReservationCancel,
    ReservationCreate,
    ReservationRead,
    ReservationUpdate,
)

router = APIRouter()


@router.post(
    "/",
    response_model=ReservationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create reservation",
)
def create_reservation(
    payload: ReservationCreate, current_user: CurrentUser, service: ReservationServiceDep
) -> Reservation:
    return service.create(payload, current_user.id)


@router.get("/", response_model=List[ReservationRead], summary="List my reservations")
def list_my_reservations(
    current_user: CurrentUser, service: ReservationServiceDep
) -> List[Reservation]:
    return service.list_owned(current_user.id)


@router.get(
    "/{reservation_id}",
    response_model=ReservationRead,
    summary="Get reservation by id",
)
def get_reservation(
    reservation_id: UUID, current_user: CurrentUser, service: ReservationServiceDep
) -> Reservation:
    return service.find_owned(reservation_id, current_user.id)


@router.patch(
    "/{reservation_id}",
    response_model=ReservationRead,
    summary="Update reservation",
)
def update_reservation(
    reservation_id: UUID,
    payload: ReservationUpdate,
    current_user: CurrentUser,
    service: ReservationServiceDep,
) -> Reservation:
    return service.update(reservation_id, payload, current_user.id)


@router.post(
    "/{reservation_id}/cancel",
    response_model=ReservationRead,
    summary="Cancel reservation",
)
def cancel_reservation(
    reservation_id: UUID,
    payload: ReservationCancel,
    current_user: CurrentUser,
    service: ReservationServiceDep,
) -> Reservation:
    return service.cancel(reservation_id, payload.reason, current_user.id)


@router.post(
    "/{reservation_id}/confirm",
    response_model=ReservationRead,
    summary="Confirm reservation",
)
def confirm_reservation(
    reservation_id: UUID, admin: AdminUser, service: ReservationServiceDep
) -> Reservation:
    return service.confirm(reservation_id)
