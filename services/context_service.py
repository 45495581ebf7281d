"""
Context assembly for chat completions.
Builds the (system, user) message pair from recent history and optional search results.
"""
import json
from typing import Optional

from config import Config
from models.chat_models import ChatContext, Message, MessageRole, SearchHit
from services.search import SearchService
from utils.constants import SEARCH_KEYWORDS, SEARCH_RESULTS_HEADER, SYSTEM_PROMPT
from utils.logger import app_logger
from utils.storage import ConversationStore


class ContextService:
    """Builds the bounded context window handed to the LLM provider."""

    def __init__(self, store: ConversationStore, search_service: Optional[SearchService] = None,
                 window: Optional[int] = None):
        self.store = store
        self.search_service = search_service
        self.window = window if window is not None else Config.CONTEXT_WINDOW_MESSAGES

    @staticmethod
    def should_use_search(message: str) -> bool:
        """Coarse lookup-intent check on the lowercased message."""
        lower_message = (message or "").lower()
        return any(keyword in lower_message for keyword in SEARCH_KEYWORDS)

    @staticmethod
    def format_history(history: list[Message]) -> str:
        """Render turns as `role: text` lines."""
        return "\n".join(
            f"{MessageRole.normalize(msg.role).value}: {msg.text or ''}" for msg in history
        )

    @staticmethod
    def format_search_results(hits: list[SearchHit]) -> str:
        if not hits:
            return ""
        return SEARCH_RESULTS_HEADER + json.dumps([hit.to_dict() for hit in hits], indent=2)

    async def _lookup(self, message: str) -> list[SearchHit]:
        """Run the search augmenter, treating any failure as no results."""
        if self.search_service is None:
            return []
        try:
            hits = await self.search_service.search(message)
        except Exception as e:
            app_logger.warning(f"Web search failed, continuing without results: {e}")
            return []
        return list(hits or [])

    async def build(self, conversation_id: str, message: str) -> ChatContext:
        """
        Assemble the context for one turn.

        Args:
            conversation_id: Conversation whose recent turns form the transcript
            message: The user's current message

        Returns:
            ChatContext whose messages are exactly [system, user]
        """
        history = self.store.list_recent_messages(conversation_id, self.window)

        search_performed = False
        hits: list[SearchHit] = []
        if self.should_use_search(message):
            app_logger.info("Lookup intent detected, running web search")
            search_performed = True
            hits = await self._lookup(message)

        system_prompt = SYSTEM_PROMPT.format(
            history=self.format_history(history),
            search_results=self.format_search_results(hits),
            user_query=message,
        )

        messages = [
            {"role": MessageRole.SYSTEM.value, "content": system_prompt},
            {"role": MessageRole.USER.value, "content": str(message)},
        ]
        app_logger.debug(f"Context for {conversation_id}: {len(history)} turns, {len(hits)} search results")

        return ChatContext(
            conversation_id=conversation_id,
            prompt=message,
            messages=messages,
            history=history,
            search_performed=search_performed,
            search_hits=hits,
        )
