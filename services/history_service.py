"""
Conversation history: listing, reading, renaming and deleting a user's conversations.
"""
import math

from models.api_models import ConversationSummary, HistoryPage
from utils.exceptions import NotFound, ValidationError
from utils.logger import app_logger
from utils.storage import ConversationStore

NO_MESSAGES_PLACEHOLDER = "No messages yet"


class HistoryService:
    """Read and manage stored conversations on behalf of their owner."""

    def __init__(self, store: ConversationStore):
        self.store = store

    def list_page(self, user_id: str, page: int = 1, limit: int = 10) -> HistoryPage:
        """Paginated summaries, most recently updated first."""
        page = max(page, 1)
        limit = max(limit, 1)
        total = self.store.count_conversations(user_id)
        conversations = self.store.list_conversations(user_id, skip=(page - 1) * limit, limit=limit)

        summaries = []
        for conversation in conversations:
            latest = self.store.latest_message(conversation.id)
            summaries.append(ConversationSummary(
                id=conversation.id,
                title=conversation.title,
                last_message=latest.text if latest else NO_MESSAGES_PLACEHOLDER,
                timestamp=conversation.updated_at.isoformat(),
                message_count=self.store.count_messages(conversation.id),
            ))

        return HistoryPage(
            conversations=summaries,
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_conversations=total,
        )

    def get_conversation(self, user_id: str, conversation_id: str) -> dict:
        conversation = self.store.find_conversation(conversation_id, user_id)
        if conversation is None:
            raise NotFound()
        messages = self.store.list_messages(conversation.id)
        return {
            "conversation": {
                "id": conversation.id,
                "title": conversation.title,
                "llmModel": conversation.llm_model,
                "timestamp": conversation.updated_at.isoformat(),
            },
            "messages": [msg.to_dict() for msg in messages],
        }

    def delete_conversation(self, user_id: str, conversation_id: str) -> None:
        if not self.store.delete_conversation(conversation_id, user_id):
            raise NotFound()
        app_logger.info(f"User {user_id} deleted conversation {conversation_id}")

    def rename_conversation(self, user_id: str, conversation_id: str, title: str) -> dict:
        """Explicit rename, the only way a title changes after creation."""
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required")
        conversation = self.store.rename_conversation(conversation_id, user_id, title)
        if conversation is None:
            raise NotFound()
        return {"id": conversation.id, "title": conversation.title}
