"""
Pydantic data models for API requests and responses.
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Chat request: a new message, optionally continuing a conversation."""
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: Optional[str] = Field(None, alias="conversationId")
    message: Optional[str] = None
    stream: bool = False


class ChatResponse(BaseModel):
    """Buffered chat response."""
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(..., alias="conversationId")
    response: str
    message_id: str = Field(..., alias="messageId")


class RenameRequest(BaseModel):
    """Explicit conversation rename."""
    title: str = Field(..., max_length=200)


class ConversationSummary(BaseModel):
    """Conversation entry in the paginated history list."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    last_message: str = Field(..., alias="lastMessage")
    timestamp: str
    message_count: int = Field(..., alias="messageCount")


class HistoryPage(BaseModel):
    """Paginated conversation history."""
    model_config = ConfigDict(populate_by_name=True)

    conversations: List[ConversationSummary]
    current_page: int = Field(..., alias="currentPage")
    total_pages: int = Field(..., alias="totalPages")
    total_conversations: int = Field(..., alias="totalConversations")
