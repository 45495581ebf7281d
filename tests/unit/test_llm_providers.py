import json
import pytest
import httpx
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import openai

from config import Config
from services.gemini_provider import GeminiProvider
from services.llm_provider import LLMProvider, build_llm_provider
from services.ollama_provider import OllamaProvider
from services.openai_provider import OpenAIProvider
from tests.fixtures.responses import GEMINI_COMPLETION, GEMINI_EMBEDDING, GEMINI_SSE_BODY, OLLAMA_COMPLETION
from tests.helpers import collect
from utils.exceptions import ProviderError, ProviderUnavailable
from utils.response_normalizer import extract_fragment

MESSAGES = [
    {"role": "system", "content": "Be brief."},
    {"role": "user", "content": "Capital of France?"},
    {"role": "assistant", "content": "Paris."},
]


def _gemini(handler, api_key="gemini-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiProvider(api_key=api_key, chat_model="gemini-test", base_url="https://gemini.test/v1beta", client=client)


# Factory

@pytest.mark.parametrize("name,expected", [
    ("openai", OpenAIProvider),
    ("Gemini", GeminiProvider),
    (" ollama ", OllamaProvider),
    ("anthropic", OpenAIProvider),
])
def test_build_llm_provider_selects_backend(name, expected):
    """Given a provider name, the factory should build that backend, defaulting to OpenAI for unknown names."""
    provider = build_llm_provider(name)
    assert isinstance(provider, expected)
    assert isinstance(provider, LLMProvider)


def test_build_llm_provider_reads_config(monkeypatch):
    monkeypatch.setattr(Config, "LLM_PROVIDER", "gemini")
    assert isinstance(build_llm_provider(), GeminiProvider)


def test_provider_construction_needs_no_credentials(monkeypatch):
    monkeypatch.setattr(Config, "OPENAI_API_KEY", "")
    monkeypatch.setattr(Config, "GEMINI_API_KEY", "")
    assert build_llm_provider("openai").chat_model == Config.OPENAI_CHAT_MODEL
    assert build_llm_provider("gemini").chat_model == Config.GEMINI_CHAT_MODEL


# OpenAI

@pytest.mark.anyio
async def test_openai_without_key_is_unavailable():
    provider = OpenAIProvider(api_key="")
    with pytest.raises(ProviderUnavailable):
        await provider.complete(MESSAGES)
    with pytest.raises(ProviderUnavailable):
        await provider.embed("hello")


@pytest.mark.anyio
async def test_openai_complete_passes_messages_through():
    """Given a buffered call, the SDK should receive the uniform messages and the text be extracted."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="Paris."), text=None)]
    ))
    provider = OpenAIProvider(api_key="sk-test", chat_model="gpt-test", client=client)

    assert await provider.complete(MESSAGES) == "Paris."
    client.chat.completions.create.assert_awaited_once_with(model="gpt-test", messages=MESSAGES, stream=False)


@pytest.mark.anyio
async def test_openai_stream_returns_raw_stream():
    stream = object()
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=stream)
    provider = OpenAIProvider(api_key="sk-test", client=client)

    assert await provider.complete(MESSAGES, stream=True) is stream


@pytest.mark.anyio
async def test_openai_sdk_errors_become_provider_errors():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=openai.APIConnectionError(
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    ))
    provider = OpenAIProvider(api_key="sk-test", client=client)

    with pytest.raises(ProviderError) as exc_info:
        await provider.complete(MESSAGES)
    assert exc_info.value.provider == "openai"


@pytest.mark.anyio
async def test_openai_embed_returns_vector():
    client = MagicMock()
    client.embeddings.create = AsyncMock(return_value=SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2])]))
    provider = OpenAIProvider(api_key="sk-test", client=client)

    assert await provider.embed("hello") == [0.1, 0.2]


# Gemini

def test_gemini_translates_roles():
    """Given system, user and assistant turns, Gemini contents should only use user and model roles."""
    contents = GeminiProvider.to_gemini_contents(MESSAGES)

    assert contents == [
        {"role": "user", "parts": [{"text": "(System message: Be brief.)"}]},
        {"role": "user", "parts": [{"text": "Capital of France?"}]},
        {"role": "model", "parts": [{"text": "Paris."}]},
    ]


@pytest.mark.anyio
async def test_gemini_complete_sends_translated_payload():
    captured = {}

    def handler(request):
        captured["url"] = str(request.url)
        captured["key"] = request.headers.get("x-goog-api-key")
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=GEMINI_COMPLETION)

    provider = _gemini(handler)
    text = await provider.complete(MESSAGES)

    assert text == "Paris."
    assert captured["url"] == "https://gemini.test/v1beta/models/gemini-test:generateContent"
    assert captured["key"] == "gemini-key"
    assert captured["body"]["contents"][0]["role"] == "user"
    assert captured["body"]["contents"][2]["role"] == "model"
    assert captured["body"]["generationConfig"] == {"maxOutputTokens": Config.GEMINI_MAX_OUTPUT_TOKENS}
    await provider.aclose()


@pytest.mark.anyio
async def test_gemini_stream_yields_text_fragments():
    """Given an SSE response, each data line should become a fragment exposing its text."""
    def handler(request):
        assert request.url.params["alt"] == "sse"
        assert request.url.path.endswith(":streamGenerateContent")
        return httpx.Response(200, content=GEMINI_SSE_BODY.encode(), headers={"content-type": "text/event-stream"})

    provider = _gemini(handler)
    fragments = await collect(await provider.complete(MESSAGES, stream=True))

    assert [extract_fragment(fragment) for fragment in fragments] == ["Pa", "ris."]
    await provider.aclose()


@pytest.mark.anyio
@pytest.mark.parametrize("stream", [False, True])
async def test_gemini_http_errors_become_provider_errors(stream):
    provider = _gemini(lambda request: httpx.Response(503, json={"error": {"message": "overloaded"}}))

    with pytest.raises(ProviderError):
        await provider.complete(MESSAGES, stream=stream)
    await provider.aclose()


@pytest.mark.anyio
async def test_gemini_without_key_is_unavailable():
    provider = _gemini(lambda request: httpx.Response(200, json=GEMINI_COMPLETION), api_key="")

    with pytest.raises(ProviderUnavailable):
        await provider.complete(MESSAGES)
    await provider.aclose()


@pytest.mark.anyio
async def test_gemini_embed_returns_values():
    provider = _gemini(lambda request: httpx.Response(200, json=GEMINI_EMBEDDING))
    assert await provider.embed("hello") == [0.1, 0.2, 0.3]
    await provider.aclose()


# Ollama

@pytest.mark.anyio
async def test_ollama_complete_returns_message_content():
    client = AsyncMock()
    client.chat = AsyncMock(return_value=OLLAMA_COMPLETION)
    provider = OllamaProvider(chat_model="llama-test", client=client)

    assert await provider.complete(MESSAGES) == "Paris."
    client.chat.assert_awaited_once_with(model="llama-test", messages=MESSAGES, stream=False)


@pytest.mark.anyio
async def test_ollama_connection_errors_become_provider_errors():
    client = AsyncMock()
    client.chat = AsyncMock(side_effect=ConnectionError("ollama is not running"))
    provider = OllamaProvider(client=client)

    with pytest.raises(ProviderError):
        await provider.complete(MESSAGES)


@pytest.mark.anyio
async def test_gemini_stream_closed_before_reading_releases_response():
    """Given a stream closed before its first fragment, the streamed response should be released."""
    provider = _gemini(lambda request: httpx.Response(200, content=GEMINI_SSE_BODY.encode()))

    stream = await provider.complete(MESSAGES, stream=True)
    assert stream.response.is_closed is False
    await stream.aclose()

    assert stream.response.is_closed is True
    await provider.aclose()


@pytest.mark.anyio
async def test_gemini_stream_releases_response_when_exhausted():
    provider = _gemini(lambda request: httpx.Response(200, content=GEMINI_SSE_BODY.encode()))

    stream = await provider.complete(MESSAGES, stream=True)
    await collect(stream)

    assert stream.response.is_closed is True
    await provider.aclose()


@pytest.mark.anyio
async def test_ollama_aclose_closes_http_client():
    inner = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    client = MagicMock()
    client._client = inner
    provider = OllamaProvider(client=client)

    await provider.aclose()
    await provider.aclose()

    assert inner.is_closed
