from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Query

from roombook.api.deps import AdminUser, ReservationServiceDep, SchedulerDep
from roombook.models import Reservation, ReservationStatus
from roombook.schemas import ReservationRead

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/reservations",
    response_model=List[ReservationRead],
    summary="List all reservations",
)
def list_all_reservations(
    admin: AdminUser,
    service: ReservationServiceDep,
    status: Optional[ReservationStatus] = Query(default=None),
    room_id: Optional[UUID] = Query(default=None),
) -> List[Reservation]:
    return service.list_all(status=status, room_id=room_id)


@router.post("/scheduler/no-shows", summary="Run the no-show sweep now")
def run_no_show_sweep(admin: AdminUser, scheduler: SchedulerDep) -> dict:
    logger.info(f"Manual no-show sweep requested by {admin.id}")
    return scheduler.run_no_show_sweep().to_dict()


@router.post("/scheduler/completions", summary="Run the completion sweep now")
def run_completion_sweep(admin: AdminUser, scheduler: SchedulerDep) -> dict:
    logger.info(f"Manual completion sweep requested by {admin.id}")
    return scheduler.run_completion_sweep().to_dict()
