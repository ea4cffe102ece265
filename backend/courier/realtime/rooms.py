"""Chat-room membership per live connection.

Membership is advisory: it decides who receives room broadcasts and whether
a receiver is "viewing" a chat. It is not an authorization boundary, so
join does not check that the user participates in the chat.
"""
from typing import Dict, List, Set


class RoomMembership:
    """connection id -> set of joined chat-room ids."""

    def __init__(self) -> None:
        self._rooms: Dict[str, Set[str]] = {}

    def add_connection(self, connection_id: str) -> None:
        self._rooms.setdefault(connection_id, set())

    def remove_connection(self, connection_id: str) -> None:
        self._rooms.pop(connection_id, None)

    def join(self, connection_id: str, room_id: str) -> None:
        self._rooms.setdefault(connection_id, set()).add(room_id)

    def leave(self, connection_id: str, room_id: str) -> None:
        rooms = self._rooms.get(connection_id)
        if rooms is not None:
            rooms.discard(room_id)

    def is_member(self, connection_id: str, room_id: str) -> bool:
        return room_id in self._rooms.get(connection_id, ())

    def rooms_of(self, connection_id: str) -> Set[str]:
        return set(self._rooms.get(connection_id, ()))

    def members(self, room_id: str) -> List[str]:
        """Connection ids that have joined ``room_id``."""
        return [cid for cid, rooms in self._rooms.items() if room_id in rooms]

    def clear(self) -> None:
        self._rooms.clear()
