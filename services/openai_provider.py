"""
OpenAI chat completion backend.
"""
import httpx
import openai
from openai import AsyncOpenAI

from config import Config
from services.llm_provider import ChatMessages, CompletionResult
from utils.constants import ProviderName
from utils.exceptions import ProviderError, ProviderUnavailable
from utils.logger import app_logger
from utils.response_normalizer import extract_complete


class OpenAIProvider:
    """Adapter for the OpenAI chat completions and embeddings APIs."""

    name = ProviderName.OPENAI

    def __init__(
        self,
        api_key: str | None = None,
        chat_model: str | None = None,
        embedding_model: str | None = None,
        timeout: float | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.api_key = api_key if api_key is not None else Config.OPENAI_API_KEY
        self.chat_model = chat_model or Config.OPENAI_CHAT_MODEL
        self.embedding_model = embedding_model or Config.OPENAI_EMBEDDING_MODEL
        self.timeout = timeout or Config.LLM_REQUEST_TIMEOUT_SECONDS
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        """Create the SDK client on first use, once a key is known to exist."""
        if self._client is not None:
            return self._client
        if not self.api_key:
            raise ProviderUnavailable(self.name, "OPENAI_API_KEY is not configured")
        self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def embed(self, text: str) -> list[float]:
        client = self._get_client()
        try:
            response = await client.embeddings.create(model=self.embedding_model, input=text)
        except (openai.OpenAIError, httpx.HTTPError) as e:
            app_logger.error(f"Error generating OpenAI embedding: {e}")
            raise ProviderError(self.name, e) from e
        return list(response.data[0].embedding)

    async def complete(self, messages: ChatMessages, stream: bool = False) -> CompletionResult:
        """
        OpenAI accepts the uniform {role, content} shape as is.

        Returns:
            The SDK's async stream when stream is set, otherwise the answer text
        """
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.chat_model,
                messages=messages,
                stream=stream,
            )
        except (openai.OpenAIError, httpx.HTTPError) as e:
            app_logger.error(f"Error generating OpenAI chat completion: {e}")
            raise ProviderError(self.name, e) from e

        if stream:
            return response
        return await extract_complete(response)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
