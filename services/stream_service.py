"""
Streaming service turning relayed fragments into Server-Sent Events.
"""
import json
from contextlib import aclosing
from typing import Any, AsyncIterator, Optional

from models.chat_models import ChatReply
from utils.constants import StreamEvent
from utils.exceptions import StreamReadError
from utils.logger import app_logger


class StreamService:
    """Service for formatting chat results for the wire."""

    @staticmethod
    def format_sse(data: Any, event: Optional[str] = None) -> str:
        """Format data as one SSE event. Strings are sent raw, everything else as compact JSON."""
        payload = data if isinstance(data, str) else json.dumps(data, separators=(',', ':'))
        prefix = f"event: {event}\n" if event else ""
        return f"{prefix}data: {payload}\n\n"

    @staticmethod
    def build_reply_payload(reply: ChatReply) -> dict:
        return {
            "conversationId": reply.conversation_id,
            "response": reply.text,
            "messageId": reply.message_id,
        }

    @staticmethod
    def relay_events(conversation_id: str, pieces: AsyncIterator[str]) -> "EventStream":
        """
        Emit one data event per fragment, then an end event.

        A StreamReadError becomes a single error event before the end event.
        Closing the returned stream closes the fragment source, even before the first event.

        Args:
            conversation_id: Conversation the fragments belong to
            pieces: Fragment texts in provider order

        Returns:
            Async iterator of SSE-formatted events
        """
        return EventStream(conversation_id, pieces)

    @staticmethod
    async def _events(conversation_id: str, pieces: AsyncIterator[str]) -> AsyncIterator[str]:
        async with aclosing(pieces) as source:
            try:
                async for piece in source:
                    yield StreamService.format_sse({"content": piece, "conversationId": conversation_id})
            except StreamReadError as e:
                app_logger.error(f"Stream for {conversation_id} ended with an error: {e}")
                yield StreamService.format_sse({"message": StreamEvent.ERROR_MESSAGE}, event=StreamEvent.ERROR)
        yield StreamService.format_sse(StreamEvent.DONE_SENTINEL, event=StreamEvent.END)


class EventStream:
    """SSE events for one relayed completion. aclose() always reaches the fragment source."""

    def __init__(self, conversation_id: str, pieces: AsyncIterator[str]):
        self.conversation_id = conversation_id
        self._pieces = pieces
        self._events = StreamService._events(conversation_id, pieces)

    def __aiter__(self) -> "EventStream":
        return self

    async def __anext__(self) -> str:
        return await self._events.__anext__()

    async def aclose(self) -> None:
        await self._events.aclose()
        closer = getattr(self._pieces, "aclose", None)
        if closer is not None:
            await closer()
