import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Request, status

from roombook.api.deps import AccessServiceDep, CurrentUser
from roombook.core.config import settings
from roombook.core.limiter import limiter
from roombook.models import RoomAccess
from roombook.schemas import (
    AccessGenerate,
    AccessVerification,
    AccessVerifyRequest,
    RoomAccessRead,
    RoomStatusRead,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/generate",
    response_model=RoomAccessRead,
    status_code=status.HTTP_201_CREATED,
    summary="Generate entry token",
)
def generate_access(
    payload: AccessGenerate, current_user: CurrentUser, service: AccessServiceDep
) -> RoomAccess:
    return service.generate(payload.reservation_id, payload.access_method, current_user.id)


@router.post(
    "/verify",
    response_model=AccessVerification,
    summary="Verify entry token",
)
@limiter.limit(settings.VERIFY_RATE_LIMIT)
def verify_access(
    request: Request, payload: AccessVerifyRequest, service: AccessServiceDep
) -> AccessVerification:
    """Called by door readers. Denials come back as ``success: false``."""
    return service.verify(payload.access_token)


@router.get("/history", response_model=List[RoomAccessRead], summary="My issued tokens")
def access_history(current_user: CurrentUser, service: AccessServiceDep) -> List[RoomAccess]:
    return service.history(current_user.id)


@router.get(
    "/rooms/{room_id}/current",
    response_model=RoomStatusRead,
    summary="Current occupancy of a room",
)
def current_room_status(
    room_id: UUID, current_user: CurrentUser, service: AccessServiceDep
) -> RoomStatusRead:
    return service.current_room_status(room_id)
