"""
HTTP client utilities with connection pooling.
Provides reusable httpx clients for web search and REST-based LLM backends.
"""
import httpx
from config import Config


class HTTPClientManager:
    """Manages shared httpx clients with connection pooling."""

    _search_client: httpx.AsyncClient | None = None
    _llm_client: httpx.AsyncClient | None = None

    @classmethod
    def get_search_client(cls) -> httpx.AsyncClient:
        """
        Get or create a shared httpx client for search operations.

        Returns:
            Configured httpx.AsyncClient for search operations
        """
        if cls._search_client is None:
            limits = httpx.Limits(
                max_connections=Config.MAX_SEARCH_CONNECTIONS,
                max_keepalive_connections=5,
                keepalive_expiry=30.0
            )

            cls._search_client = httpx.AsyncClient(
                timeout=Config.SEARCH_TIMEOUT,
                follow_redirects=True,
                limits=limits,
                http2=True
            )

        return cls._search_client

    @classmethod
    def get_llm_client(cls) -> httpx.AsyncClient:
        """
        Get or create a shared httpx client for LLM REST backends.

        Reads are bounded by LLM_REQUEST_TIMEOUT_SECONDS, which also applies
        between chunks of a streamed response.

        Returns:
            Configured httpx.AsyncClient for LLM calls
        """
        if cls._llm_client is None:
            limits = httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=60.0
            )

            cls._llm_client = httpx.AsyncClient(
                timeout=httpx.Timeout(Config.LLM_REQUEST_TIMEOUT_SECONDS, connect=10.0),
                limits=limits,
                http2=True
            )

        return cls._llm_client

    @classmethod
    async def close_all(cls) -> None:
        """
        Close all managed clients and clean up connections.
        """
        if cls._search_client is not None:
            await cls._search_client.aclose()
            cls._search_client = None

        if cls._llm_client is not None:
            await cls._llm_client.aclose()
            cls._llm_client = None
