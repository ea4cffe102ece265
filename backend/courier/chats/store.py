"""Chat persistence on top of the shared DuckDB connection."""
import logging
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

import duckdb

from courier.storage import Database, utcnow

from .schemas import Chat, LatestMessage

logger = logging.getLogger(__name__)

_CHAT_COLUMNS = (
    "id, user_one, user_two, latest_text, latest_sender, created_at, updated_at"
)


def pair_key(user_a: str, user_b: str) -> str:
    """Order-independent key for a pair of participants."""
    return ":".join(sorted((user_a, user_b)))


def _row_to_chat(row) -> Chat:
    latest = None
    if row[3] is not None and row[4] is not None:
        latest = LatestMessage(text=row[3], sender=row[4])
    return Chat(
        id=row[0],
        users=[row[1], row[2]],
        latestMessage=latest,
        createdAt=row[5],
        updatedAt=row[6],
    )


class ChatStore:
    """Reads and writes Chat records.

    Args:
        db: The shared Database.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def get(self, chat_id: str) -> Optional[Chat]:
        row = self._db.connection.execute(
            f"SELECT {_CHAT_COLUMNS} FROM chats WHERE id = ?",
            [chat_id],
        ).fetchone()
        return _row_to_chat(row) if row else None

    def find_by_pair(self, user_a: str, user_b: str) -> Optional[Chat]:
        row = self._db.connection.execute(
            f"SELECT {_CHAT_COLUMNS} FROM chats WHERE pair_key = ?",
            [pair_key(user_a, user_b)],
        ).fetchone()
        return _row_to_chat(row) if row else None

    def get_or_create(self, user_id: str, other_user_id: str) -> Tuple[Chat, bool]:
        """Return the chat for this pair, creating it if needed.

        The UNIQUE pair_key makes this safe against a concurrent create for
        the same pair: the loser of the race reads the winner's row.

        Returns:
            Tuple of (chat, created).
        """
        existing = self.find_by_pair(user_id, other_user_id)
        if existing:
            return existing, False

        now = utcnow()
        chat = Chat(
            id=str(uuid.uuid4()),
            users=[user_id, other_user_id],
            createdAt=now,
            updatedAt=now,
        )
        try:
            self._db.connection.execute(
                """
                INSERT INTO chats (id, user_one, user_two, pair_key, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [chat.id, user_id, other_user_id, pair_key(user_id, other_user_id), now, now],
            )
        except duckdb.ConstraintException:
            logger.info(f"Chat for pair {user_id}/{other_user_id} created concurrently")
            existing = self.find_by_pair(user_id, other_user_id)
            if existing is None:
                raise
            return existing, False
        return chat, True

    def list_for_user(self, user_id: str) -> List[Chat]:
        """All chats the user participates in, most recently updated first."""
        rows = self._db.connection.execute(
            f"""
            SELECT {_CHAT_COLUMNS}
            FROM chats
            WHERE user_one = ? OR user_two = ?
            ORDER BY updated_at DESC
            """,
            [user_id, user_id],
        ).fetchall()
        return [_row_to_chat(row) for row in rows]

    def update_latest_message(
        self, chat_id: str, text: str, sender: str, updated_at: Optional[datetime] = None
    ) -> None:
        """Set the latest-message summary and bump updated_at."""
        self._db.connection.execute(
            """
            UPDATE chats
            SET latest_text = ?, latest_sender = ?, updated_at = ?
            WHERE id = ?
            """,
            [text, sender, updated_at or utcnow(), chat_id],
        )
