"""Real-time module (WebSocket presence, chat rooms, typing indicators)."""

from .manager import ConnectionManager, manager
from .presence import PresenceRegistry
from .rooms import RoomMembership

__all__ = [
    "ConnectionManager",
    "PresenceRegistry",
    "RoomMembership",
    "manager",
]
