from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from roombook.core.locks import room_locks, sweep_guard
from roombook.core.security import verify_token
from roombook.core.timeutils import Clock, utcnow
from roombook.db import SessionDep
from roombook.services.access import AccessService
from roombook.services.notifications import NotificationSink, get_notification_sink
from roombook.services.reservations import ReservationService
from roombook.services.scheduler import LifecycleScheduler

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Caller:
    """Identity taken from a validated bearer token."""

    id: UUID
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def caller_from_token(token: str) -> Caller:
    """Raise ValueError unless ``token`` is a valid access token."""
    payload = verify_token(token, token_type="access")
    user_id = payload.get("sub")
    if not user_id:
        raise ValueError("Invalid authentication payload")
    return Caller(id=UUID(user_id), role=payload.get("role") or "user")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Caller:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return caller_from_token(credentials.credentials)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None


CurrentUser = Annotated[Caller, Depends(get_current_user)]


def require_admin(current_user: CurrentUser) -> Caller:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator privileges required",
        )
    return current_user


AdminUser = Annotated[Caller, Depends(require_admin)]


def get_notifier() -> NotificationSink:
    return get_notification_sink()


def get_clock() -> Clock:
    return utcnow


NotifierDep = Annotated[NotificationSink, Depends(get_notifier)]
ClockDep = Annotated[Clock, Depends(get_clock)]


def get_reservation_service(
    session: SessionDep, notifier: NotifierDep, clock: ClockDep
) -> ReservationService:
    return ReservationService(session, notifier=notifier, locks=room_locks, clock=clock)


def get_access_service(
    session: SessionDep, notifier: NotifierDep, clock: ClockDep
) -> AccessService:
    reservations = ReservationService(session, notifier=notifier, locks=room_locks, clock=clock)
    return AccessService(session, notifier=notifier, clock=clock, reservations=reservations)


def get_scheduler(
    session: SessionDep, notifier: NotifierDep, clock: ClockDep
) -> LifecycleScheduler:
    bind = session.get_bind()
    return LifecycleScheduler(
        session_factory=lambda: Session(bind),
        notifier=notifier,
        guard=sweep_guard,
        clock=clock,
    )


ReservationServiceDep = Annotated[ReservationService, Depends(get_reservation_service)]
AccessServiceDep = Annotated[AccessService, Depends(get_access_service)]
SchedulerDep = Annotated[LifecycleScheduler, Depends(get_scheduler)]
