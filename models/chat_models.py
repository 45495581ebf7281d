"""
Data models for chat processing.
Contains persisted records, per-request context objects and orchestration results.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Optional


class MessageRole(str, Enum):
    """Sender of a conversation turn."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"

    @classmethod
    def normalize(cls, role: Any) -> "MessageRole":
        """Map any stored sender value onto a provider role, defaulting to user."""
        value = str(role.value if isinstance(role, Enum) else role or "user").lower()
        if value == cls.ASSISTANT.value:
            return cls.ASSISTANT
        if value == cls.SYSTEM.value:
            return cls.SYSTEM
        return cls.USER


class MessageStatus(str, Enum):
    """Lifecycle status of a persisted turn."""
    SENT = "sent"
    RECEIVED = "received"
    ERROR = "error"


@dataclass
class Conversation:
    """A user's conversation. The title is fixed at creation unless renamed."""
    id: str
    user_id: str
    title: str
    llm_model: Optional[str]
    created_at: datetime
    updated_at: datetime


@dataclass
class Message:
    """One persisted turn, exclusively owned by its conversation."""
    id: str
    conversation_id: str
    role: MessageRole
    text: str
    status: MessageStatus
    created_at: datetime

    def to_dict(self) -> dict:
        """Serialize for API responses."""
        return {
            "id": self.id,
            "conversationId": self.conversation_id,
            "sender": self.role.value,
            "text": self.text,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class SearchHit:
    """Web search result used to enrich the system prompt for one turn."""
    title: str
    link: str
    snippet: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ChatContext:
    """
    Context window handed to the provider for one request.
    Regenerated per request and never persisted.
    """
    conversation_id: str
    prompt: str
    messages: list
    history: list = field(default_factory=list)
    search_performed: bool = False
    search_hits: list = field(default_factory=list)

    @property
    def system_prompt(self) -> str:
        """Content of the synthesized system message."""
        return self.messages[0]["content"] if self.messages else ""


@dataclass
class ChatReply:
    """Result of a buffered completion."""
    conversation_id: str
    text: str
    message_id: str


@dataclass
class ChatStream:
    """
    A started streamed completion whose fragments have not been read yet.
    Tracks the relayed text so the reply is persisted exactly once.
    """
    conversation_id: str
    fragments: AsyncIterator[Any]
    collected: list = field(default_factory=list)
    finished: bool = False

    @property
    def text(self) -> str:
        return "".join(self.collected)
