"""Presence registry: which live connection belongs to which user.

At most one connection is tracked per user (last-connect-wins). Several
browser tabs for the same user collapse to the newest one; the registry
does not count connections.

The registry itself has no side effects. ``ConnectionManager`` broadcasts
the online list after each register/unregister.
"""
import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# Values a client may send when it has no user id yet
_ANONYMOUS_IDS = ("", "undefined", "null")


def is_valid_user_id(user_id: Optional[str]) -> bool:
    return bool(user_id) and user_id not in _ANONYMOUS_IDS


class PresenceRegistry:
    """In-memory mapping of user id -> connection id.

    Thread Safety:
        Designed for a single event loop. Multi-process deployments need a
        shared external registry; this map only sees local connections.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, str] = {}

    def register(self, user_id: str, connection_id: str) -> bool:
        """Map ``user_id`` to ``connection_id``, replacing any prior mapping.

        Returns:
            True if the mapping was stored, False for an anonymous id.
        """
        if not is_valid_user_id(user_id):
            return False
        previous = self._connections.get(user_id)
        self._connections[user_id] = connection_id
        if previous and previous != connection_id:
            logger.info(f"[Presence] User {user_id} moved from {previous} to {connection_id}")
        else:
            logger.info(f"[Presence] User {user_id} mapped to connection {connection_id}")
        return True

    def unregister(self, user_id: str, connection_id: Optional[str] = None) -> bool:
        """Remove the mapping for ``user_id``. Absent users are a no-op.

        Args:
            user_id: User to remove.
            connection_id: When given, only remove the mapping if it still
                points at this connection (a newer tab keeps its presence).

        Returns:
            True if a mapping was removed.
        """
        current = self._connections.get(user_id)
        if current is None:
            return False
        if connection_id is not None and current != connection_id:
            logger.debug(
                f"[Presence] Keeping {user_id} -> {current}; "
                f"stale connection {connection_id} closed"
            )
            return False
        del self._connections[user_id]
        logger.info(f"[Presence] User {user_id} is offline")
        return True

    def lookup(self, user_id: str) -> Optional[str]:
        return self._connections.get(user_id)

    def online_users(self) -> List[str]:
        return list(self._connections.keys())

    def clear(self) -> None:
        self._connections.clear()
