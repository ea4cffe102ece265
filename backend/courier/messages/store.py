"""Message persistence on top of the shared DuckDB connection."""
import logging
from datetime import datetime
from typing import List, Optional

from courier.storage import Database

from .schemas import ImageRef, Message, MessageType

logger = logging.getLogger(__name__)

_MESSAGE_COLUMNS = (
    "id, chat_id, sender, text, image_url, image_public_id, "
    "message_type, seen, seen_at, created_at"
)


def _row_to_message(row) -> Message:
    image = None
    if row[4] is not None:
        image = ImageRef(url=row[4], publicId=row[5] or "")
    return Message(
        id=row[0],
        chatId=row[1],
        sender=row[2],
        text=row[3],
        image=image,
        messageType=MessageType(row[6]),
        seen=row[7],
        seenAt=row[8],
        createdAt=row[9],
    )


class MessageStore:
    """Reads and writes Message records.

    Args:
        db: The shared Database.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def create(self, message: Message) -> Message:
        """Insert a message and return it unchanged."""
        self._db.connection.execute(
            """
            INSERT INTO messages
            (id, chat_id, sender, text, image_url, image_public_id,
             message_type, seen, seen_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                message.id,
                message.chatId,
                message.sender,
                message.text,
                message.image.url if message.image else None,
                message.image.publicId if message.image else None,
                message.messageType.value,
                message.seen,
                message.seenAt,
                message.createdAt,
            ],
        )
        return message

    def get(self, message_id: str) -> Optional[Message]:
        row = self._db.connection.execute(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ?",
            [message_id],
        ).fetchone()
        return _row_to_message(row) if row else None

    def list_by_chat(self, chat_id: str) -> List[Message]:
        """All messages in a chat, oldest first."""
        rows = self._db.connection.execute(
            f"""
            SELECT {_MESSAGE_COLUMNS}
            FROM messages
            WHERE chat_id = ?
            ORDER BY created_at ASC, seq ASC
            """,
            [chat_id],
        ).fetchall()
        return [_row_to_message(row) for row in rows]

    def unseen_ids_for_reader(self, chat_id: str, reader_id: str) -> List[str]:
        """IDs of unseen messages in the chat that ``reader_id`` did not send."""
        rows = self._db.connection.execute(
            """
            SELECT id
            FROM messages
            WHERE chat_id = ? AND sender <> ? AND seen = false
            ORDER BY created_at ASC, seq ASC
            """,
            [chat_id, reader_id],
        ).fetchall()
        return [row[0] for row in rows]

    def count_unseen_for_reader(self, chat_id: str, reader_id: str) -> int:
        row = self._db.connection.execute(
            """
            SELECT COUNT(*)
            FROM messages
            WHERE chat_id = ? AND sender <> ? AND seen = false
            """,
            [chat_id, reader_id],
        ).fetchone()
        return int(row[0]) if row else 0

    def mark_seen(self, message_ids: List[str], seen_at: datetime) -> int:
        """Mark exactly the given messages as seen with one shared timestamp.

        Returns:
            Number of IDs requested.
        """
        if not message_ids:
            return 0
        placeholders = ", ".join("?" for _ in message_ids)
        self._db.connection.execute(
            f"""
            UPDATE messages
            SET seen = true, seen_at = ?
            WHERE id IN ({placeholders})
            """,
            [seen_at, *message_ids],
        )
        logger.debug(f"Marked {len(message_ids)} message(s) seen")
        return len(message_ids)
