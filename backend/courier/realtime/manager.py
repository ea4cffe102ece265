"""WebSocket connection manager: the live notification channel.

This module tracks every open WebSocket, which user it belongs to
(``PresenceRegistry``) and which chat rooms it has joined
(``RoomMembership``), and pushes events to them.

Key features:
    - One connection id (UUID) per WebSocket, assigned by the backend
    - Last-connect-wins presence with online-list broadcast on change
    - Room broadcasts with optional sender exclusion (typing indicators)
    - Concurrent room/global broadcasting with asyncio.gather()
    - Emits to absent or dead connections are silent no-ops

Frame format (server -> client):
    {"type": "<event>", "data": <payload>}

Thread Safety:
    This implementation is designed for async/await usage with a single event loop.
    Presence and room reads used for delivery decisions never span an await,
    so they see a consistent snapshot. It is NOT thread-safe for concurrent
    access from multiple threads, and a multi-process deployment needs an
    external shared registry.
"""
import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

from .presence import PresenceRegistry
from .rooms import RoomMembership

logger = logging.getLogger(__name__)

# =============================================================================
# Event names
# =============================================================================

EVENT_ONLINE_USERS = "getOnlineUser"
EVENT_NEW_MESSAGE = "newMessage"
EVENT_MESSAGES_SEEN = "messagesSeen"
EVENT_USER_TYPING = "userTyping"
EVENT_USER_STOPPED_TYPING = "userStoppedTyping"
EVENT_ERROR = "error"


def make_frame(event: str, data: Any) -> dict:
    return {"type": event, "data": data}


# =============================================================================
# Connection Manager
# =============================================================================


class ConnectionManager:
    """Owns live connections, presence and room membership.

    Attributes:
        presence: user id -> connection id registry.
        rooms: connection id -> joined chat rooms.
        active_connections: connection id -> WebSocket.
        connection_users: connection id -> user id (None if anonymous).

    Note:
        A module-level instance (``manager``) is shared by the WebSocket
        endpoint and the HTTP delivery path. Tests may build their own.
    """

    def __init__(
        self,
        presence: Optional[PresenceRegistry] = None,
        rooms: Optional[RoomMembership] = None,
    ) -> None:
        self.presence = presence or PresenceRegistry()
        self.rooms = rooms or RoomMembership()
        self.active_connections: Dict[str, WebSocket] = {}
        self.connection_users: Dict[str, Optional[str]] = {}

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def connect(self, websocket: WebSocket, user_id: Optional[str]) -> str:
        """Accept a WebSocket, register presence and announce the online list.

        Args:
            websocket: The WebSocket connection to accept.
            user_id: User id from the handshake query, may be None.

        Returns:
            The backend-generated connection id.
        """
        await websocket.accept()
        connection_id = str(uuid.uuid4())
        return await self.attach(connection_id, websocket, user_id)

    async def attach(self, connection_id: str, websocket: Any, user_id: Optional[str]) -> str:
        """Track an already-accepted connection under ``connection_id``."""
        self.active_connections[connection_id] = websocket
        self.rooms.add_connection(connection_id)

        registered = self.presence.register(user_id or "", connection_id)
        self.connection_users[connection_id] = user_id if registered else None
        logger.info(
            f"[Manager] Connection {connection_id} opened (userId={user_id}). "
            f"{len(self.active_connections)} active"
        )

        await self.broadcast_online_users()
        return connection_id

    async def disconnect(self, connection_id: str) -> Optional[str]:
        """Forget a connection, its rooms and (if still current) its presence.

        Returns:
            The user id the connection belonged to, if any.
        """
        self.active_connections.pop(connection_id, None)
        self.rooms.remove_connection(connection_id)
        user_id = self.connection_users.pop(connection_id, None)

        if user_id:
            self.presence.unregister(user_id, connection_id)
            await self.broadcast_online_users()

        logger.info(
            f"[Manager] Connection {connection_id} closed (userId={user_id}). "
            f"{len(self.active_connections)} active"
        )
        return user_id

    def get_user_id(self, connection_id: str) -> Optional[str]:
        return self.connection_users.get(connection_id)

    def get_connection_id(self, user_id: str) -> Optional[str]:
        """Live connection registered for ``user_id``, or None."""
        return self.presence.lookup(user_id)

    # =========================================================================
    # Rooms
    # =========================================================================

    def join_room(self, connection_id: str, room_id: str) -> None:
        self.rooms.join(connection_id, room_id)
        logger.debug(f"[Manager] {connection_id} joined room {room_id}")

    def leave_room(self, connection_id: str, room_id: str) -> None:
        self.rooms.leave(connection_id, room_id)
        logger.debug(f"[Manager] {connection_id} left room {room_id}")

    def is_viewing(self, user_id: str, room_id: str) -> bool:
        """True if the user is online and their connection has joined the room.

        This is the seen-at-write-time test. It is a synchronous read of
        presence and membership, so no other coroutine can change either
        between the two lookups.
        """
        connection_id = self.presence.lookup(user_id)
        if connection_id is None:
            return False
        return self.rooms.is_member(connection_id, room_id)

    # =========================================================================
    # Emitting
    # =========================================================================

    async def emit_to_connection(self, connection_id: Optional[str], event: str, data: Any) -> bool:
        """Send one event to one connection.

        Returns:
            True if delivered. Unknown connections return False without error.
        """
        if connection_id is None:
            return False
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            logger.debug(f"[Manager] No live connection {connection_id} for {event}")
            return False
        return await self._safe_send(websocket, make_frame(event, data))

    async def emit_to_user(self, user_id: str, event: str, data: Any) -> bool:
        return await self.emit_to_connection(self.presence.lookup(user_id), event, data)

    async def emit_to_room(
        self,
        room_id: str,
        event: str,
        data: Any,
        exclude_connection: Optional[str] = None,
    ) -> int:
        """Send an event to every connection that joined ``room_id``.

        Args:
            room_id: Chat room to target.
            event: Event name.
            data: JSON-serializable payload.
            exclude_connection: Connection to skip (e.g. the typer).

        Returns:
            Number of connections the event was delivered to.
        """
        targets = [
            cid for cid in self.rooms.members(room_id)
            if cid != exclude_connection and cid in self.active_connections
        ]
        return await self._send_many(targets, make_frame(event, data))

    async def broadcast(self, event: str, data: Any) -> int:
        """Send an event to every open connection."""
        return await self._send_many(list(self.active_connections.keys()), make_frame(event, data))

    async def broadcast_online_users(self) -> int:
        return await self.broadcast(EVENT_ONLINE_USERS, self.presence.online_users())

    async def _send_many(self, connection_ids: List[str], frame: dict) -> int:
        if not connection_ids:
            return 0
        websockets = [self.active_connections[cid] for cid in connection_ids]
        results = await asyncio.gather(
            *[self._safe_send(ws, frame) for ws in websockets],
            return_exceptions=True
        )
        return sum(1 for result in results if result is True)

    async def _safe_send(self, connection: Any, message: dict) -> bool:
        """Send a frame to a WebSocket with error handling.

        Returns:
            True if successful, False if the connection failed.
        """
        try:
            await connection.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Failed to send to connection: {e}")
            return False

    def clear(self) -> None:
        """Drop all connections, presence and rooms (used by tests)."""
        self.active_connections.clear()
        self.connection_users.clear()
        self.presence.clear()
        self.rooms.clear()


# Global singleton instance used by the WebSocket endpoint and delivery engine
manager = ConnectionManager()
