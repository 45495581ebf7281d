"""
Google Gemini chat completion backend over the Generative Language REST API.
"""
import json
from typing import Any, AsyncIterator

import httpx

from config import Config
from services.llm_provider import ChatMessages, CompletionResult
from utils.constants import GEMINI_SYSTEM_TEMPLATE, ProviderName
from utils.exceptions import ProviderError, ProviderUnavailable
from utils.http_client import HTTPClientManager
from utils.logger import app_logger


class GeminiProvider:
    """Adapter for Gemini generateContent, streamGenerateContent and embedContent."""

    name = ProviderName.GEMINI

    def __init__(
        self,
        api_key: str | None = None,
        chat_model: str | None = None,
        embedding_model: str | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key if api_key is not None else Config.GEMINI_API_KEY
        self.chat_model = chat_model or Config.GEMINI_CHAT_MODEL
        self.embedding_model = embedding_model or Config.GEMINI_EMBEDDING_MODEL
        self.base_url = (base_url or Config.GEMINI_API_URL).rstrip("/")
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        return self._client or HTTPClientManager.get_llm_client()

    def _headers(self) -> dict:
        if not self.api_key:
            raise ProviderUnavailable(self.name, "GEMINI_API_KEY is not configured")
        return {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

    @staticmethod
    def to_gemini_contents(messages: ChatMessages) -> list[dict]:
        """
        Translate {role, content} messages into Gemini contents.

        Gemini only knows "user" and "model": assistant turns become "model",
        system turns become a user turn marked as a system message.
        """
        contents = []
        for msg in messages:
            role = str(msg.get("role", "user")).lower()
            content = msg.get("content") or ""
            if role == "system":
                contents.append({"role": "user", "parts": [{"text": GEMINI_SYSTEM_TEMPLATE.format(content=content)}]})
            elif role == "assistant":
                contents.append({"role": "model", "parts": [{"text": content}]})
            else:
                contents.append({"role": "user", "parts": [{"text": content}]})
        return contents

    @staticmethod
    def candidate_text(payload: dict) -> str:
        """Joined text parts of the first candidate."""
        candidates = payload.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts if isinstance(part, dict))

    def _payload(self, messages: ChatMessages) -> dict:
        return {
            "contents": self.to_gemini_contents(messages),
            "generationConfig": {"maxOutputTokens": Config.GEMINI_MAX_OUTPUT_TOKENS},
        }

    async def embed(self, text: str) -> list[float]:
        headers = self._headers()
        url = f"{self.base_url}/models/{self.embedding_model}:embedContent"
        body = {
            "model": f"models/{self.embedding_model}",
            "content": {"parts": [{"text": text}]},
        }
        try:
            response = await self._get_client().post(url, headers=headers, json=body)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            app_logger.error(f"Error generating Gemini embedding: {e}")
            raise ProviderError(self.name, e) from e
        return list((data.get("embedding") or {}).get("values") or [])

    async def complete(self, messages: ChatMessages, stream: bool = False) -> CompletionResult:
        headers = self._headers()
        if stream:
            return await self._open_stream(messages, headers)

        url = f"{self.base_url}/models/{self.chat_model}:generateContent"
        try:
            response = await self._get_client().post(url, headers=headers, json=self._payload(messages))
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            app_logger.error(f"Error generating Gemini chat completion: {e}")
            raise ProviderError(self.name, e) from e
        return self.candidate_text(data)

    async def _open_stream(self, messages: ChatMessages, headers: dict) -> "GeminiStream":
        """Send the streaming request and check its status before any fragment is read."""
        client = self._get_client()
        url = f"{self.base_url}/models/{self.chat_model}:streamGenerateContent"
        request = client.build_request(
            "POST", url, headers=headers, params={"alt": "sse"}, json=self._payload(messages)
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            app_logger.error(f"Error opening Gemini stream: {e}")
            raise ProviderError(self.name, e) from e

        if response.status_code >= 400:
            await response.aread()
            await response.aclose()
            error = httpx.HTTPStatusError(
                f"Gemini returned status {response.status_code}: {response.text[:200]}",
                request=request,
                response=response,
            )
            app_logger.error(f"Error opening Gemini stream: {error}")
            raise ProviderError(self.name, error)

        return GeminiStream(response)

    async def aclose(self) -> None:
        # Shared clients are closed by HTTPClientManager
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class GeminiStream:
    """
    Fragments of one streamGenerateContent response.

    Owns the streamed httpx response: aclose() releases it whether or not
    iteration has begun.
    """

    def __init__(self, response: httpx.Response):
        self.response = response
        self._events = self._iter_events()

    def __aiter__(self) -> "GeminiStream":
        return self

    async def __anext__(self) -> dict:
        return await self._events.__anext__()

    async def _iter_events(self) -> AsyncIterator[dict]:
        """Yield one fragment per SSE data line, exposing the candidate text as `text`."""
        try:
            async for line in self.response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if not data:
                    continue
                payload: dict[str, Any] = json.loads(data)
                yield {"text": GeminiProvider.candidate_text(payload), "candidates": payload.get("candidates", [])}
        finally:
            await self.response.aclose()

    async def aclose(self) -> None:
        await self._events.aclose()
        await self.response.aclose()
