"""
Error taxonomy for the chat completion pipeline.
Each error carries the HTTP status it surfaces as and a client-safe message.
"""


class ChatServiceError(Exception):
    """Base error for the chat pipeline."""

    status_code: int = 500
    default_message: str = "Server error during chat message processing"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(ChatServiceError):
    """No identified caller."""
    status_code = 401
    default_message = "User not authenticated"


class NotFound(ChatServiceError):
    """Conversation missing or owned by someone else."""
    status_code = 404
    default_message = "Conversation not found or not authorized"


class ValidationError(ChatServiceError):
    """Request rejected before any persistence."""
    status_code = 400
    default_message = "Message is required"


class ProviderUnavailable(ChatServiceError):
    """The selected LLM backend has no credential configured."""

    def __init__(self, provider: str, detail: str | None = None):
        self.provider = provider
        self.detail = detail or f"{provider} provider is not configured"
        super().__init__()

    def __str__(self) -> str:
        return self.detail


class ProviderError(ChatServiceError):
    """The remote LLM call failed before it produced a result."""

    def __init__(self, provider: str, cause: BaseException | None = None):
        self.provider = provider
        self.cause = cause
        super().__init__()

    def __str__(self) -> str:
        return f"{self.provider} request failed: {self.cause}"


class StreamReadError(ChatServiceError):
    """Reading a streamed completion failed after the stream had started."""
    default_message = "Stream error"
