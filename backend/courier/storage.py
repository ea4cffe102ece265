"""DuckDB-backed persistent store for chats and messages.

The service implements the singleton pattern so that every store shares one
connection (and, for ``:memory:`` databases, one database).

Database Schema:
    chats table:
        - id: Chat identifier (uuid4 string)
        - user_one / user_two: The two participants, in creation order
        - pair_key: Sorted participant ids joined by ':' (UNIQUE)
        - latest_text / latest_sender: Latest-message summary (nullable)
        - created_at / updated_at: UTC timestamps

    messages table:
        - seq: Insertion sequence (tie-breaker for ordering)
        - id: Message identifier (uuid4 string)
        - chat_id: Owning chat
        - sender: Sender user id
        - text: Message text ('' for image-only messages)
        - image_url / image_public_id: Image reference (nullable)
        - message_type: 'text' or 'image'
        - seen: Read flag
        - seen_at: Set iff seen is true
        - created_at: UTC timestamp

Thread Safety:
    The DuckDB connection is NOT thread-safe. Courier runs on a single event
    loop, so all access happens from one thread.

Usage:
    db = Database.get_instance()
    chats = ChatStore(db)
"""
from datetime import datetime, timezone
from typing import Optional

import duckdb


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Database:
    """Singleton owner of the DuckDB connection and schema.

    Attributes:
        _instance: Singleton instance of the database.
        _db_path: Path to the DuckDB database file.
    """

    _instance: Optional["Database"] = None
    _db_path: str = "courier.duckdb"

    def __init__(self, db_path: Optional[str] = None) -> None:
        """Open the database and create the schema if needed.

        Args:
            db_path: Path to DuckDB file, or ":memory:".
        """
        if db_path:
            self._db_path = db_path
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialize_db()

    @classmethod
    def get_instance(cls, db_path: Optional[str] = None) -> "Database":
        """Get or create the singleton instance.

        Args:
            db_path: Optional database path (only used on first call).
                Defaults to ``database.path`` from the settings file.

        Returns:
            The singleton Database instance.
        """
        if cls._instance is None:
            if db_path is None:
                from courier.config import get_config
                db_path = get_config().database.path
            cls._instance = cls(db_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Close the connection and clear the singleton (used by tests)."""
        if cls._instance is not None:
            cls._instance.close()
            cls._instance = None

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """Get the DuckDB connection, creating it if needed."""
        if self._connection is None:
            self._connection = duckdb.connect(self._db_path)
        return self._connection

    def _initialize_db(self) -> None:
        """Create tables, sequence and indexes. Idempotent."""
        conn = self.connection
        conn.execute("""
            CREATE TABLE IF NOT EXISTS chats (
                id VARCHAR PRIMARY KEY,
                user_one VARCHAR NOT NULL,
                user_two VARCHAR NOT NULL,
                pair_key VARCHAR NOT NULL UNIQUE,
                latest_text VARCHAR,
                latest_sender VARCHAR,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """)
        conn.execute("""
            CREATE SEQUENCE IF NOT EXISTS messages_seq START 1;
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                seq BIGINT DEFAULT nextval('messages_seq'),
                id VARCHAR PRIMARY KEY,
                chat_id VARCHAR NOT NULL,
                sender VARCHAR NOT NULL,
                text VARCHAR NOT NULL,
                image_url VARCHAR,
                image_public_id VARCHAR,
                message_type VARCHAR NOT NULL,
                seen BOOLEAN NOT NULL,
                seen_at TIMESTAMP,
                created_at TIMESTAMP NOT NULL
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_chat_id ON messages(chat_id)
        """)

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
