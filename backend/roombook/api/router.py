from fastapi import APIRouter

from roombook.api.v1 import access, admin, health, reservations, rooms, websocket


api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(rooms.router, prefix="/rooms", tags=["rooms"])
api_router.include_router(reservations.router, prefix="/reservations", tags=["reservations"])
api_router.include_router(access.router, prefix="/access", tags=["access"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(websocket.router, prefix="/ws", tags=["websocket"])
