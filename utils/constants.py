"""
Constants and system prompts for the chat backend.
"""

# System prompt for every completion; history and search results are filled per request
SYSTEM_PROMPT = """You are an AI customer support assistant. Answer the user's questions based on the provided conversation history and any relevant search results.

Conversation History:
{history}
{search_results}

User Query: {user_query}
"""

SEARCH_RESULTS_HEADER = "\n\nHere are some search results that might be relevant:\n"

# Lowercase phrases that mark a message as an information lookup
SEARCH_KEYWORDS = (
    "who is",
    "what is",
    "where is",
    "location of",
    "search for",
    "get",
    "find",
)

# Gemini has no system role, system content travels as a marked user turn
GEMINI_SYSTEM_TEMPLATE = "(System message: {content})"


class StreamEvent:
    """Server-sent event names and sentinels."""
    ERROR, END = "error", "end"
    DONE_SENTINEL = "[DONE]"
    ERROR_MESSAGE = "Stream error"


class ProviderName:
    """LLM backend identifiers accepted by LLM_PROVIDER."""
    OPENAI, GEMINI, OLLAMA = "openai", "gemini", "ollama"
    DEFAULT = OPENAI
