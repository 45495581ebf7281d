"""
Local Ollama chat completion backend.
"""
import httpx
import ollama

from config import Config
from services.llm_provider import ChatMessages, CompletionResult
from utils.constants import ProviderName
from utils.exceptions import ProviderError
from utils.logger import app_logger


class OllamaProvider:
    """Adapter for a local Ollama server. Needs no credential."""

    name = ProviderName.OLLAMA

    def __init__(
        self,
        host: str | None = None,
        chat_model: str | None = None,
        embedding_model: str | None = None,
        client: ollama.AsyncClient | None = None,
    ):
        self.host = host or Config.OLLAMA_HOST
        self.chat_model = chat_model or Config.OLLAMA_CHAT_MODEL
        self.embedding_model = embedding_model or Config.OLLAMA_EMBEDDING_MODEL
        self._client = client

    def _get_client(self) -> ollama.AsyncClient:
        if self._client is None:
            self._client = ollama.AsyncClient(host=self.host, timeout=Config.LLM_REQUEST_TIMEOUT_SECONDS)
        return self._client

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self._get_client().embed(model=self.embedding_model, input=text)
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            app_logger.error(f"Error generating Ollama embedding: {e}")
            raise ProviderError(self.name, e) from e
        return list(response['embeddings'][0])

    async def complete(self, messages: ChatMessages, stream: bool = False) -> CompletionResult:
        """Ollama takes {role, content} messages natively; chunks carry message.content."""
        try:
            response = await self._get_client().chat(
                model=self.chat_model,
                messages=messages,
                stream=stream
            )
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            app_logger.error(f"Ollama error: {getattr(e, 'error', e)}")
            raise ProviderError(self.name, e) from e

        if stream:
            return response
        return response['message']['content'] or ""

    async def aclose(self) -> None:
        client = self._client
        self._client = None
        if client is None:
            return
        # ollama.AsyncClient keeps its httpx.AsyncClient in the `_client` attribute
        inner = getattr(client, '_client', None)
        if isinstance(inner, httpx.AsyncClient):
            await inner.aclose()
