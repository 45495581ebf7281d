"""
AI Chat Backend - FastAPI application for conversational chat over pluggable LLM providers.
Persists conversations, enriches prompts with web search and streams answers as Server-Sent Events.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auth import APIKeyMiddleware
from config import Config
from routes import chat, history
from services.chat_service import ChatService
from services.context_service import ContextService
from services.history_service import HistoryService
from services.llm_provider import build_llm_provider
from services.search import SearchService
from utils.exceptions import ChatServiceError
from utils.http_client import HTTPClientManager
from utils.logger import app_logger
from utils.storage import ConversationStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    store = ConversationStore()
    provider = build_llm_provider()
    context_service = ContextService(store, SearchService())

    app.state.chat_service = ChatService(provider, store, context_service)
    app.state.history_service = HistoryService(store)
    app_logger.info(f"{Config.APP_TITLE} started with {provider.name} ({provider.chat_model})")

    yield

    await provider.aclose()
    await HTTPClientManager.close_all()
    store.close()


def install_error_handlers(app: FastAPI) -> None:
    """Render every error as {"message": ...} with the matching status code."""

    @app.exception_handler(ChatServiceError)
    async def chat_service_error_handler(request: Request, exc: ChatServiceError):
        if exc.status_code >= 500:
            app_logger.error(f"{request.method} {request.url.path} failed: {exc}")
        else:
            app_logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors with user-friendly messages"""
        errors = exc.errors()
        app_logger.error(f"Validation error for {request.url}: {errors}")

        message = "Invalid request"
        if errors:
            first_error = errors[0]
            error_type = first_error.get('type', '')
            field = first_error.get('loc', [])[-1] if first_error.get('loc') else 'field'

            if error_type == 'string_too_long':
                max_length = first_error.get('ctx', {}).get('max_length', 'unknown')
                message = f"Field '{field}' exceeds maximum length of {max_length} characters"
            else:
                message = f"{field}: {first_error.get('msg', 'Validation error')}"

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"message": message},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        app_logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": ChatServiceError.default_message},
        )


app = FastAPI(title=Config.APP_TITLE, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(APIKeyMiddleware)
install_error_handlers(app)


#root endpoint
@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {"message": f"{Config.APP_TITLE} is running"}

app.include_router(chat.router, tags=["chat"])
app.include_router(history.router, tags=["history"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
