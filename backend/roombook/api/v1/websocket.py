"""WebSocket endpoint for real-time notifications."""

import json
import logging
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from roombook.api.deps import caller_from_token
from roombook.services.websocket_manager import ConnectionManager

logger = logging.getLogger(__name__)

router = APIRouter()


async def _handle_client_message(
    manager: ConnectionManager, websocket: WebSocket, data: str
) -> dict:
    if data == "ping":
        return {"type": "pong"}

    try:
        message = json.loads(data)
        action = message.get("action")
        room_id = UUID(str(message.get("room_id")))
    except (ValueError, AttributeError):
        return {"type": "error", "message": "Unsupported message"}

    if action == "subscribe_room":
        await manager.subscribe_room(websocket, room_id)
        return {"type": "subscribed", "room_id": str(room_id)}
    if action == "unsubscribe_room":
        await manager.unsubscribe_room(websocket, room_id)
        return {"type": "unsubscribed", "room_id": str(room_id)}
    return {"type": "error", "message": f"Unknown action: {action}"}


@router.websocket("/notifications")
async def websocket_notifications(websocket: WebSocket, token: str = Query(...)):
    """
    WebSocket endpoint for real-time notifications.

    Client connects with: ws://<host>/api/v1/ws/notifications?token=JWT_TOKEN

    Client messages:
        "ping"
        {"action": "subscribe_room", "room_id": "<uuid>"}
        {"action": "unsubscribe_room", "room_id": "<uuid>"}

    Server messages:
    {
        "type": "reservation:confirmed",
        "data": {"reservation_id": "uuid", "status": "CONFIRMED", ...},
        "timestamp": "2030-01-07T10:00:00"
    }
    """
    try:
        caller = caller_from_token(token)
    except ValueError as e:
        logger.warning(f"WebSocket auth error: {e}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager: ConnectionManager = websocket.app.state.connection_manager
    await manager.connect(websocket, caller.id, is_admin=caller.is_admin)

    try:
        await websocket.send_json({
            "type": "connected",
            "message": "WebSocket connected successfully",
            "user_id": str(caller.id),
        })

        while True:
            data = await websocket.receive_text()
            await websocket.send_json(await _handle_client_message(manager, websocket, data))

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected gracefully for user {caller.id}")

    finally:
        await manager.disconnect(websocket)
        logger.info(f"WebSocket connection closed for user {caller.id}")
