"""
Uniform contract for LLM backends and the factory that selects one.
"""
from typing import Any, AsyncIterator, Callable, Protocol, runtime_checkable

from config import Config
from utils.constants import ProviderName
from utils.logger import app_logger

ChatMessages = list[dict[str, str]]
# Finished text for buffered calls, raw provider fragments for streamed calls
CompletionResult = str | AsyncIterator[Any]


@runtime_checkable
class LLMProvider(Protocol):
    """Capability set every backend adapter implements."""

    name: str
    chat_model: str

    async def embed(self, text: str) -> list[float]:
        """Embedding vector for text. Raises ProviderUnavailable without a credential."""
        ...

    async def complete(self, messages: ChatMessages, stream: bool = False) -> CompletionResult:
        """
        Run a chat completion.

        Args:
            messages: Ordered {role, content} dicts, roles user/assistant/system
            stream: Return a lazy fragment sequence instead of finished text

        Raises:
            ProviderUnavailable: no credential configured
            ProviderError: the remote call failed
        """
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...


def _provider_factories() -> dict[str, Callable[[], LLMProvider]]:
    from services.gemini_provider import GeminiProvider
    from services.ollama_provider import OllamaProvider
    from services.openai_provider import OpenAIProvider

    return {
        ProviderName.OPENAI: OpenAIProvider,
        ProviderName.GEMINI: GeminiProvider,
        ProviderName.OLLAMA: OllamaProvider,
    }


def build_llm_provider(name: str | None = None) -> LLMProvider:
    """
    Build the provider named by LLM_PROVIDER (or name).

    Unknown names fall back to the default provider with a warning.
    """
    provider_type = (name or Config.LLM_PROVIDER or ProviderName.DEFAULT).strip().lower()
    factories = _provider_factories()

    factory = factories.get(provider_type)
    if factory is None:
        app_logger.warning(f"Unsupported LLM_PROVIDER: {provider_type}. Defaulting to {ProviderName.DEFAULT}.")
        factory = factories[ProviderName.DEFAULT]

    provider = factory()
    app_logger.info(f"LLM provider selected: {provider.name} ({provider.chat_model})")
    return provider
