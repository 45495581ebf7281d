"""
Models package exports.
"""
from models.api_models import ChatRequest, ChatResponse, RenameRequest, ConversationSummary, HistoryPage
from models.chat_models import (
    MessageRole,
    MessageStatus,
    Conversation,
    Message,
    SearchHit,
    ChatContext,
    ChatReply,
    ChatStream,
)

__all__ = [
    'ChatRequest',
    'ChatResponse',
    'RenameRequest',
    'ConversationSummary',
    'HistoryPage',
    'MessageRole',
    'MessageStatus',
    'Conversation',
    'Message',
    'SearchHit',
    'ChatContext',
    'ChatReply',
    'ChatStream',
]
