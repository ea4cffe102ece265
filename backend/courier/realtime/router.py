"""Real-time WebSocket endpoint.

This module provides:
    - WebSocket /ws?userId=<id>: presence, chat-room membership and typing

Protocol Flow:
    1. Client connects with ``userId`` query param
       → Server registers presence
       → Server broadcasts to all: {type: "getOnlineUser", data: [userIds]}
    2. Client sends: {type: "joinChat", chatId} / {type: "leaveChat", chatId}
       → Connection joins/leaves the chat room (no reply)
    3. Client sends: {type: "typing", chatId, userId} / {type: "stopTyping", ...}
       → Server sends to the rest of the room:
         {type: "userTyping" | "userStoppedTyping", data: {chatId, userId}}
    4. On disconnect → presence removed, online list re-broadcast

New messages and read receipts are pushed from the HTTP delivery path
(see ``courier.messages.delivery``) through the same manager.
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from .manager import (
    EVENT_ERROR,
    EVENT_USER_STOPPED_TYPING,
    EVENT_USER_TYPING,
    make_frame,
    manager,
)

logger = logging.getLogger(__name__)

router = APIRouter()

_TYPING_EVENTS = {
    "typing": EVENT_USER_TYPING,
    "stopTyping": EVENT_USER_STOPPED_TYPING,
}


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    userId: Optional[str] = Query(None, description="User ID of the connecting client"),
) -> None:
    """WebSocket endpoint for presence, rooms and typing indicators.

    Args:
        websocket: The WebSocket connection.
        userId: The connecting user's id (connections without one are
            anonymous: they receive broadcasts but have no presence).
    """
    connection_id = await manager.connect(websocket, userId)
    logger.info(f"[WS] User connected: connection={connection_id}, userId={userId}")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                data = None
            if not isinstance(data, dict):
                logger.debug("[WS] Connection %s sent an invalid frame", connection_id)
                await websocket.send_json(make_frame(EVENT_ERROR, {"message": "Invalid frame"}))
                continue

            message_type = data.get("type")
            chat_id = data.get("chatId")
            logger.debug("[WS] Connection %s received: type=%s", connection_id, message_type)

            if message_type in ("joinChat", "leaveChat", "typing", "stopTyping") and not chat_id:
                await websocket.send_json(
                    make_frame(EVENT_ERROR, {"message": f"chatId required for {message_type}"})
                )
                continue

            # --- Handle chat room membership ---
            if message_type == "joinChat":
                manager.join_room(connection_id, str(chat_id))
                continue

            if message_type == "leaveChat":
                manager.leave_room(connection_id, str(chat_id))
                continue

            # --- Handle TYPING indicators ---
            # Use the registered user id when the connection has one
            if message_type in _TYPING_EVENTS:
                typer = manager.get_user_id(connection_id) or data.get("userId")
                await manager.emit_to_room(
                    str(chat_id),
                    _TYPING_EVENTS[message_type],
                    {"chatId": chat_id, "userId": typer},
                    exclude_connection=connection_id,
                )
                continue

            await websocket.send_json(
                make_frame(EVENT_ERROR, {"message": f"Unknown message type: {message_type}"})
            )

    except WebSocketDisconnect:
        logger.info(f"[WS] User disconnected: connection={connection_id}")
    finally:
        await manager.disconnect(connection_id)
