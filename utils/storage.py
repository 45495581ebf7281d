"""
Persistent conversation store.
Uses SQLite as a simple document store for conversations and their messages.
"""
import sqlite3
import threading
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from config import Config
from models.chat_models import Conversation, Message, MessageRole, MessageStatus
from utils.logger import app_logger


def _new_id() -> str:
    return uuid.uuid4().hex


def _to_datetime(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


class ConversationStore:
    """
    SQLite-backed store for conversations and messages.

    Messages are ordered by creation time with insertion order as tie-break.
    There is no locking: concurrent turns on one conversation are both kept.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the store, creating the schema if needed.

        Args:
            db_path: Path to SQLite database file (default: Config.DATABASE_PATH)
        """
        db_path = db_path or Config.DATABASE_PATH
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._db_path = db_path
        self._local = threading.local()
        self._init_db()

        app_logger.info(f"Conversation store initialized with SQLite: {self._db_path}")

    def _get_conn(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, 'conn'):
            self._local.conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._local.conn.row_factory = sqlite3.Row
        return self._local.conn

    def _init_db(self) -> None:
        """Initialize database schema."""
        conn = self._get_conn()
        cursor = conn.cursor()

        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA busy_timeout=5000")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS conversations (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                title TEXT NOT NULL,
                llm_model TEXT,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT UNIQUE NOT NULL,
                conversation_id TEXT NOT NULL,
                sender TEXT NOT NULL,
                text TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at REAL NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_conversations_user_updated
            ON conversations(user_id, updated_at)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_conversation_created
            ON messages(conversation_id, created_at, seq)
        """)

        conn.commit()

    @staticmethod
    def _row_to_conversation(row: sqlite3.Row) -> Conversation:
        return Conversation(
            id=row['id'],
            user_id=row['user_id'],
            title=row['title'],
            llm_model=row['llm_model'],
            created_at=_to_datetime(row['created_at']),
            updated_at=_to_datetime(row['updated_at']),
        )

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=row['id'],
            conversation_id=row['conversation_id'],
            role=MessageRole.normalize(row['sender']),
            text=row['text'],
            status=MessageStatus(row['status']),
            created_at=_to_datetime(row['created_at']),
        )

    # Conversations

    def find_conversation(self, conversation_id: str, owner_id: str) -> Optional[Conversation]:
        """Get a conversation only if it belongs to owner_id."""
        cursor = self._get_conn().execute(
            "SELECT * FROM conversations WHERE id = ? AND user_id = ?",
            (conversation_id, owner_id)
        )
        row = cursor.fetchone()
        return self._row_to_conversation(row) if row else None

    def create_conversation(self, owner_id: str, title: str, llm_model: Optional[str] = None) -> Conversation:
        """Create a new conversation."""
        now = time.time()
        conversation_id = _new_id()
        conn = self._get_conn()
        conn.execute(
            "INSERT INTO conversations (id, user_id, title, llm_model, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
            (conversation_id, owner_id, title, llm_model, now, now)
        )
        conn.commit()
        app_logger.debug(f"Store: created conversation {conversation_id}")
        return Conversation(
            id=conversation_id,
            user_id=owner_id,
            title=title,
            llm_model=llm_model,
            created_at=_to_datetime(now),
            updated_at=_to_datetime(now),
        )

    def touch_conversation(self, conversation_id: str) -> None:
        """Bump the conversation's updated timestamp. Last writer wins."""
        conn = self._get_conn()
        conn.execute(
            "UPDATE conversations SET updated_at = ? WHERE id = ?",
            (time.time(), conversation_id)
        )
        conn.commit()

    def rename_conversation(self, conversation_id: str, owner_id: str, title: str) -> Optional[Conversation]:
        """Set a new title. Returns the updated conversation or None if not owned."""
        conn = self._get_conn()
        cursor = conn.execute(
            "UPDATE conversations SET title = ?, updated_at = ? WHERE id = ? AND user_id = ?",
            (title, time.time(), conversation_id, owner_id)
        )
        conn.commit()
        if cursor.rowcount == 0:
            return None
        return self.find_conversation(conversation_id, owner_id)

    def delete_conversation(self, conversation_id: str, owner_id: str) -> bool:
        """Delete a conversation and all of its messages in one transaction."""
        conn = self._get_conn()
        with conn:
            cursor = conn.execute(
                "DELETE FROM conversations WHERE id = ? AND user_id = ?",
                (conversation_id, owner_id)
            )
            if cursor.rowcount == 0:
                return False
            removed = conn.execute(
                "DELETE FROM messages WHERE conversation_id = ?",
                (conversation_id,)
            ).rowcount
        app_logger.info(f"Store: deleted conversation {conversation_id} with {removed} messages")
        return True

    def list_conversations(self, owner_id: str, skip: int = 0, limit: int = 10) -> list[Conversation]:
        """List an owner's conversations, most recently updated first."""
        cursor = self._get_conn().execute(
            """
            SELECT * FROM conversations
            WHERE user_id = ?
            ORDER BY updated_at DESC, rowid DESC
            LIMIT ? OFFSET ?
            """,
            (owner_id, limit, skip)
        )
        return [self._row_to_conversation(row) for row in cursor.fetchall()]

    def count_conversations(self, owner_id: str) -> int:
        cursor = self._get_conn().execute(
            "SELECT COUNT(*) FROM conversations WHERE user_id = ?", (owner_id,)
        )
        return cursor.fetchone()[0]

    # Messages

    def append_message(self, conversation_id: str, role: MessageRole, text: str,
                       status: MessageStatus = MessageStatus.SENT) -> Message:
        """Append a turn to a conversation."""
        role = MessageRole.normalize(role)
        status = MessageStatus(status)
        now = time.time()
        message_id = _new_id()
        conn = self._get_conn()
        conn.execute(
            "INSERT INTO messages (id, conversation_id, sender, text, status, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (message_id, conversation_id, role.value, text or "", status.value, now)
        )
        conn.commit()
        return Message(
            id=message_id,
            conversation_id=conversation_id,
            role=role,
            text=text or "",
            status=status,
            created_at=_to_datetime(now),
        )

    def list_recent_messages(self, conversation_id: str, limit: int) -> list[Message]:
        """Get the most recent `limit` messages, returned oldest first."""
        if limit <= 0:
            return []
        cursor = self._get_conn().execute(
            """
            SELECT * FROM messages
            WHERE conversation_id = ?
            ORDER BY created_at DESC, seq DESC
            LIMIT ?
            """,
            (conversation_id, limit)
        )
        rows = cursor.fetchall()
        return [self._row_to_message(row) for row in reversed(rows)]

    def list_messages(self, conversation_id: str) -> list[Message]:
        """Get every message of a conversation, oldest first."""
        cursor = self._get_conn().execute(
            "SELECT * FROM messages WHERE conversation_id = ? ORDER BY created_at ASC, seq ASC",
            (conversation_id,)
        )
        return [self._row_to_message(row) for row in cursor.fetchall()]

    def latest_message(self, conversation_id: str) -> Optional[Message]:
        recent = self.list_recent_messages(conversation_id, 1)
        return recent[0] if recent else None

    def count_messages(self, conversation_id: str) -> int:
        cursor = self._get_conn().execute(
            "SELECT COUNT(*) FROM messages WHERE conversation_id = ?", (conversation_id,)
        )
        return cursor.fetchone()[0]

    def close(self) -> None:
        """Close this thread's connection."""
        conn = getattr(self._local, 'conn', None)
        if conn is not None:
            conn.close()
            del self._local.conn
