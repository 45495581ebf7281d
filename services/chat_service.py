"""
Chat service containing the core completion flow.
Resolves the conversation, persists turns, assembles context and dispatches to the LLM provider.
"""
import asyncio
import inspect
import time
from typing import Any, AsyncIterator, Optional, Union

from config import Config
from models.chat_models import ChatReply, ChatStream, Conversation, MessageRole, MessageStatus
from services.context_service import ContextService
from services.llm_provider import ChatMessages, LLMProvider
from utils.exceptions import NotFound, StreamReadError, Unauthenticated, ValidationError
from utils.logger import app_logger
from utils.response_normalizer import extract_complete, extract_fragment
from utils.storage import ConversationStore


class ChatService:
    """Service for handling one chat turn end to end."""

    def __init__(self, provider: LLMProvider, store: ConversationStore, context_service: ContextService):
        self.provider = provider
        self.store = store
        self.context_service = context_service

    @staticmethod
    def make_title(message: str) -> str:
        return message[:Config.TITLE_MAX_CHARS]

    def resolve_conversation(self, user_id: str, conversation_id: Optional[str], message: str) -> Conversation:
        """
        Load the caller's conversation, or start a new one titled after the first message.

        Raises:
            NotFound: conversation_id is unknown or owned by another user
        """
        if conversation_id:
            conversation = self.store.find_conversation(conversation_id, user_id)
            if conversation is None:
                app_logger.warning(f"Conversation {conversation_id} not found for user {user_id}")
                raise NotFound()
            self.store.touch_conversation(conversation.id)
            return conversation

        conversation = self.store.create_conversation(
            owner_id=user_id,
            title=self.make_title(message),
            llm_model=self.provider.chat_model,
        )
        app_logger.info(f"Created conversation {conversation.id} for user {user_id}")
        return conversation

    async def handle(
        self,
        user_id: Optional[str],
        message: Optional[str],
        conversation_id: Optional[str] = None,
        stream: bool = False,
    ) -> Union[ChatReply, ChatStream]:
        """
        Process one user message.

        Args:
            user_id: Authenticated caller
            message: The user's message
            conversation_id: Existing conversation to continue, or None to start one
            stream: Ask the provider for an incremental response

        Returns:
            ChatReply for a buffered answer, ChatStream when fragments are still to be relayed

        Raises:
            Unauthenticated, ValidationError, NotFound, ProviderUnavailable, ProviderError
        """
        if not user_id:
            raise Unauthenticated()
        if message is None or not str(message).strip():
            raise ValidationError()
        message = str(message)

        conversation = self.resolve_conversation(user_id, conversation_id, message)
        self.store.append_message(conversation.id, MessageRole.USER, message, MessageStatus.SENT)

        context = await self.context_service.build(conversation.id, message)

        if not stream:
            return await self._complete_buffered(conversation.id, context.messages)

        app_logger.info(f"Requesting streamed completion from {self.provider.name}")
        result = await self.provider.complete(context.messages, stream=True)
        if not hasattr(result, "__aiter__"):
            app_logger.warning(
                f"{self.provider.name} returned {type(result).__name__} for a streamed request, "
                f"falling back to a buffered completion"
            )
            return await self._complete_buffered(conversation.id, context.messages)

        return ChatStream(conversation_id=conversation.id, fragments=result)

    async def _complete_buffered(self, conversation_id: str, messages: ChatMessages) -> ChatReply:
        app_logger.info(f"Requesting completion from {self.provider.name}")
        start = time.time()
        response = await self.provider.complete(messages, stream=False)
        text = await extract_complete(response)
        app_logger.info(f"Completion received in {time.time() - start:.2f}s ({len(text)} chars)")

        saved = self.store.append_message(conversation_id, MessageRole.ASSISTANT, text, MessageStatus.RECEIVED)
        return ChatReply(conversation_id=conversation_id, text=text, message_id=saved.id)

    def relay(self, chat_stream: ChatStream) -> "StreamRelay":
        """
        Yield fragment texts as they arrive and persist the assistant turn once reading stops.

        The accumulated text is stored whether the stream finishes, fails or is
        abandoned by the caller, including before the first fragment is read.

        Raises:
            StreamReadError: reading a fragment failed or stalled past the idle timeout
        """
        return StreamRelay(self, chat_stream)

    async def _relay_fragments(self, chat_stream: ChatStream) -> AsyncIterator[str]:
        iterator = chat_stream.fragments.__aiter__()
        idle_timeout = Config.stream_idle_timeout()
        start = time.time()

        try:
            while True:
                try:
                    chunk = await asyncio.wait_for(anext(iterator), idle_timeout)
                except StopAsyncIteration:
                    break
                text = extract_fragment(chunk)
                if text:
                    chat_stream.collected.append(text)
                    yield text
        except asyncio.TimeoutError as e:
            app_logger.error(f"Stream stalled for more than {idle_timeout}s, stopping relay")
            raise StreamReadError() from e
        except Exception as e:
            app_logger.error(f"Error reading streamed completion: {e}")
            raise StreamReadError() from e
        finally:
            app_logger.info(f"Stream relayed in {time.time() - start:.2f}s ({len(chat_stream.text)} chars)")
            await self.finish(chat_stream, iterator)

    async def finish(self, chat_stream: ChatStream, iterator: Any = None) -> None:
        """Persist the relayed text and close the provider stream. Later calls are no-ops."""
        if chat_stream.finished:
            return
        chat_stream.finished = True
        try:
            self.store.append_message(
                chat_stream.conversation_id, MessageRole.ASSISTANT, chat_stream.text, MessageStatus.RECEIVED
            )
        except Exception as e:
            app_logger.error(f"Failed to store streamed reply for {chat_stream.conversation_id}: {e}")
        await self._close_fragments(iterator, chat_stream.fragments)

    @staticmethod
    async def _close_fragments(*sources: Any) -> None:
        """Close a provider stream, whether it exposes aclose() or an async close()."""
        seen = set()
        for source in sources:
            if source is None or id(source) in seen:
                continue
            seen.add(id(source))
            closer = getattr(source, "aclose", None) or getattr(source, "close", None)
            if closer is None:
                continue
            try:
                result = closer()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                app_logger.debug(f"Error closing provider stream: {e}")


class StreamRelay:
    """Async iterator over relayed fragment texts whose aclose() finishes the stream even if never started."""

    def __init__(self, service: ChatService, chat_stream: ChatStream):
        self._service = service
        self._chat_stream = chat_stream
        self._fragments = service._relay_fragments(chat_stream)

    def __aiter__(self) -> "StreamRelay":
        return self

    async def __anext__(self) -> str:
        return await self._fragments.__anext__()

    async def aclose(self) -> None:
        await self._fragments.aclose()
        await self._service.finish(self._chat_stream)
