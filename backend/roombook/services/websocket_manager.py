"""
WebSocket session registry for real-time notifications.
Tracks each socket's user, admin role and room subscriptions.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Set
from uuid import UUID

from fastapi import WebSocket

from roombook.services.notifications import ADMINS

logger = logging.getLogger(__name__)


@dataclass
class ClientSession:
    websocket: WebSocket
    user_id: UUID
    is_admin: bool = False
    rooms: Set[UUID] = field(default_factory=set)


class ConnectionManager:
    """Manages WebSocket sessions. One instance is owned by the application."""

    def __init__(self):
        self._sessions: Dict[WebSocket, ClientSession] = {}
        # {user_id: {websocket1, websocket2, ...}}
        self._by_user: Dict[UUID, Set[WebSocket]] = {}
        self._by_room: Dict[UUID, Set[WebSocket]] = {}
        self._admins: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: UUID, is_admin: bool = False):
        """Accept WebSocket connection and register its session."""
        await websocket.accept()

        async with self._lock:
            self._sessions[websocket] = ClientSession(websocket, user_id, is_admin)
            self._by_user.setdefault(user_id, set()).add(websocket)
            if is_admin:
                self._admins.add(websocket)

        logger.info(
            f"WebSocket connected: user_id={user_id}, admin={is_admin}, "
            f"total_connections={self.get_connection_count(user_id)}"
        )

    async def disconnect(self, websocket: WebSocket):
        """Remove the session and every subscription it holds."""
        async with self._lock:
            session = self._remove(websocket)

        if session is not None:
            logger.info(f"WebSocket disconnected: user_id={session.user_id}")

    def _remove(self, websocket: WebSocket) -> Optional[ClientSession]:
        session = self._sessions.pop(websocket, None)
        if session is None:
            return None
        sockets = self._by_user.get(session.user_id)
        if sockets is not None:
            sockets.discard(websocket)
            if not sockets:
                del self._by_user[session.user_id]
        for room_id in session.rooms:
            subscribers = self._by_room.get(room_id)
            if subscribers is not None:
                subscribers.discard(websocket)
                if not subscribers:
                    del self._by_room[room_id]
        self._admins.discard(websocket)
        return session

    async def subscribe_room(self, websocket: WebSocket, room_id: UUID) -> bool:
        async with self._lock:
            session = self._sessions.get(websocket)
            if session is None:
                return False
            session.rooms.add(room_id)
            self._by_room.setdefault(room_id, set()).add(websocket)
        logger.debug(f"User {session.user_id} subscribed to room {room_id}")
        return True

    async def unsubscribe_room(self, websocket: WebSocket, room_id: UUID) -> bool:
        async with self._lock:
            session = self._sessions.get(websocket)
            if session is None or room_id not in session.rooms:
                return False
            session.rooms.discard(room_id)
            subscribers = self._by_room.get(room_id, set())
            subscribers.discard(websocket)
            if not subscribers:
                self._by_room.pop(room_id, None)
        return True

    async def _send(self, sockets: Iterable[WebSocket], message: dict) -> int:
        sent = 0
        dead = []
        for websocket in list(sockets):
            try:
                await websocket.send_json(message)
                sent += 1
            except Exception as e:
                logger.error(f"Error sending message over WebSocket: {e}")
                dead.append(websocket)

        # Clean up disconnected sockets
        if dead:
            async with self._lock:
                for websocket in dead:
                    self._remove(websocket)
        return sent

    async def send_personal_message(self, message: dict, user_id: UUID) -> int:
        """Send message to all WebSocket connections of a specific user."""
        sockets = self._by_user.get(user_id)
        if not sockets:
            logger.debug(f"No active connections for user {user_id}")
            return 0
        return await self._send(sockets, message)

    async def send_to_admins(self, message: dict) -> int:
        return await self._send(self._admins, message)

    async def send_to_room(self, message: dict, room_id: UUID) -> int:
        return await self._send(self._by_room.get(room_id, ()), message)

    async def deliver(self, envelope: dict) -> int:
        """Route a published envelope to the sockets its audience names."""
        audience = envelope.get("audience", "")
        message = {
            "type": envelope.get("event"),
            "data": envelope.get("payload", {}),
            "timestamp": envelope.get("timestamp"),
        }
        if audience == ADMINS:
            return await self.send_to_admins(message)
        scope, _, identifier = audience.partition(":")
        if scope == "user":
            return await self.send_personal_message(message, UUID(identifier))
        if scope == "room":
            return await self.send_to_room(message, UUID(identifier))
        logger.warning(f"Unknown notification audience: {audience}")
        return 0

    async def broadcast(self, message: dict) -> int:
        """Broadcast message to all connected sockets."""
        return await self._send(self._sessions.keys(), message)

    def get_active_users(self) -> Set[UUID]:
        """Get set of user IDs with active WebSocket connections."""
        return set(self._by_user.keys())

    def get_connection_count(self, user_id: UUID) -> int:
        """Get number of active connections for a user."""
        return len(self._by_user.get(user_id, set()))

    def get_room_subscriber_count(self, room_id: UUID) -> int:
        return len(self._by_room.get(room_id, set()))

    def get_session(self, websocket: WebSocket) -> Optional[ClientSession]:
        return self._sessions.get(websocket)
