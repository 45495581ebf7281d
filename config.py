"""
Configuration module for the chat backend.
Handles environment variables and application settings.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _float_env(name: str, default: float) -> float:
    """Read a float from the environment, falling back to default on bad values."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        print(f"   WARNING: {name}={raw!r} is not a number, using {default}")
        return default


class Config:
    """Application configuration class."""

    # API Keys
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    BRAVE_SEARCH_API_KEY: str = os.getenv("BRAVE_SEARCH_API_KEY", "")

    # Provider selection
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai")

    # Provider models
    OPENAI_CHAT_MODEL: str = os.getenv("OPENAI_CHAT_MODEL", "gpt-3.5-turbo")
    OPENAI_EMBEDDING_MODEL: str = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-ada-002")
    GEMINI_CHAT_MODEL: str = os.getenv("GEMINI_CHAT_MODEL", "gemini-2.0-flash")
    GEMINI_EMBEDDING_MODEL: str = os.getenv("GEMINI_EMBEDDING_MODEL", "text-embedding-004")
    GEMINI_MAX_OUTPUT_TOKENS: int = 2048
    OLLAMA_CHAT_MODEL: str = os.getenv("OLLAMA_CHAT_MODEL", "llama3.2:3b")
    OLLAMA_EMBEDDING_MODEL: str = os.getenv("OLLAMA_EMBEDDING_MODEL", "nomic-embed-text")

    # API Configuration
    GEMINI_API_URL: str = os.getenv("GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta")
    OLLAMA_HOST: str = os.getenv("OLLAMA_HOST", "http://localhost:11434")
    BRAVE_SEARCH_URL: str = "https://api.search.brave.com/res/v1/web/search"

    # Application Settings
    APP_TITLE: str = "AI Chat Backend"
    DATABASE_PATH: str = os.getenv("DATABASE_PATH", "data/chat.db")
    CONTEXT_WINDOW_MESSAGES: int = 10
    TITLE_MAX_CHARS: int = 50
    DEFAULT_SEARCH_RESULTS_COUNT: int = 5
    MAX_SEARCH_CONNECTIONS: int = 10

    # Timeouts (in seconds)
    SEARCH_TIMEOUT: float = 15.0
    LLM_REQUEST_TIMEOUT_SECONDS: float = _float_env("LLM_REQUEST_TIMEOUT_SECONDS", 60.0)
    # Max wait for the next streamed fragment, 0 disables the bound
    STREAM_IDLE_TIMEOUT_SECONDS: float = _float_env("STREAM_IDLE_TIMEOUT_SECONDS", 60.0)

    @classmethod
    def stream_idle_timeout(cls) -> float | None:
        """Per-fragment timeout for streamed completions, None when disabled."""
        if cls.STREAM_IDLE_TIMEOUT_SECONDS and cls.STREAM_IDLE_TIMEOUT_SECONDS > 0:
            return cls.STREAM_IDLE_TIMEOUT_SECONDS
        return None

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and print warnings for missing API keys."""
        provider = cls.LLM_PROVIDER.lower()

        if provider == "openai" and not cls.OPENAI_API_KEY:
            print("   WARNING: OPENAI_API_KEY not found in .env file")
            print("   Chat completions will fail until it is configured.")

        if provider == "gemini" and not cls.GEMINI_API_KEY:
            print("   WARNING: GEMINI_API_KEY not found in .env file")
            print("   Chat completions will fail until it is configured.")

        if not os.getenv("API_KEY"):
            print("   WARNING: API_KEY not found in .env file")
            print("   Every request will be rejected until it is configured.")

        if not cls.BRAVE_SEARCH_API_KEY:
            print("   WARNING: BRAVE_SEARCH_API_KEY not found in .env file")
            print("   Lookup questions will be answered without web search results.")

Config.validate()
