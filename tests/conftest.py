import pytest
from unittest.mock import AsyncMock, MagicMock


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store(tmp_path):
    """Conversation store on a throwaway SQLite file."""
    from utils.storage import ConversationStore
    store = ConversationStore(str(tmp_path / "chat.db"))
    yield store
    store.close()


@pytest.fixture
def fake_provider():
    from tests.fixtures.mock_clients import FakeProvider
    return FakeProvider()


@pytest.fixture
def mock_search_service():
    """SearchService double returning no results."""
    service = MagicMock()
    service.search = AsyncMock(return_value=[])
    return service


@pytest.fixture
def context_service(store, mock_search_service):
    from services.context_service import ContextService
    return ContextService(store, mock_search_service)


@pytest.fixture
def chat_service(fake_provider, store, context_service):
    from services.chat_service import ChatService
    return ChatService(fake_provider, store, context_service)


@pytest.fixture
def mock_http_client():
    """Mock HTTP client for search."""
    client = AsyncMock()
    client.get = AsyncMock()
    return client


@pytest.fixture
def auth_headers():
    """Authentication headers for API requests."""
    return {"X-API-Key": "test-key", "X-User-Id": "user-1"}


@pytest.fixture
def build_app(monkeypatch, store):
    """Factory for an app wired to the given chat service, with all standard mocks."""
    from fastapi import FastAPI
    from auth import APIKeyMiddleware
    from main import install_error_handlers
    from routes import chat, history
    from services.history_service import HistoryService

    monkeypatch.setattr(APIKeyMiddleware, "API_KEY", "test-key")

    def _build(chat_service):
        app = FastAPI()
        app.add_middleware(APIKeyMiddleware)
        install_error_handlers(app)
        app.include_router(chat.router)
        app.include_router(history.router)
        app.state.chat_service = chat_service
        app.state.history_service = HistoryService(store)
        return app

    return _build


@pytest.fixture
def configured_app(build_app, chat_service):
    """Pre-configured test client backed by the fake provider."""
    from fastapi.testclient import TestClient

    with TestClient(build_app(chat_service)) as client:
        yield client
