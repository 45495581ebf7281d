"""
Shape-agnostic text extraction for LLM provider responses.

Providers answer with plain strings, OpenAI-style ``choices`` objects,
incremental ``delta`` chunks, Ollama-style ``message`` objects or raw async
streams, either as dicts or as SDK objects. These functions are total: they
never raise and always return a string.
"""
import json
from collections.abc import Mapping
from typing import Any

from utils.logger import app_logger


def _field(obj: Any, name: str) -> Any:
    """Read a field from a mapping or an attribute-bearing object."""
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    try:
        value = getattr(obj, name, None)
    except Exception:
        return None
    # Bound methods (e.g. dict-like SDK helpers) are not data
    return None if callable(value) else value


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _join_parts(parts: Any) -> str:
    """Concatenate a list of content parts (strings or objects with text), no separator."""
    pieces = []
    for part in parts:
        if isinstance(part, str):
            pieces.append(part)
            continue
        text = _field(part, "text")
        if isinstance(text, str):
            pieces.append(text)
    return "".join(pieces)


def _content_text(content: Any) -> str | None:
    """Text of a content value: a string, a list of parts, or an object holding parts."""
    if isinstance(content, str):
        return content
    if _is_sequence(content):
        return _join_parts(content)
    parts = _field(content, "parts")
    if _is_sequence(parts):
        return _join_parts(parts)
    return None


def _is_async_iterable(value: Any) -> bool:
    return hasattr(type(value), "__aiter__")


def _serialize(value: Any) -> str:
    """Last-resort rendering of an unrecognised response."""
    try:
        dump = getattr(value, "model_dump", None)
    except Exception:
        dump = None
    if callable(dump):
        try:
            value = dump()
        except Exception:
            pass
    try:
        return json.dumps(value, default=str)
    except Exception:
        pass
    try:
        return str(value)
    except Exception:
        return ""


def _complete_from_shape(response: Any) -> str | None:
    """Apply the buffered-response precedence rules. None means no rule matched."""
    choices = _field(response, "choices")
    if _is_sequence(choices) and choices:
        first = choices[0]
        content = _field(_field(first, "message"), "content")
        text = _content_text(content)
        if text is not None:
            return text
        choice_text = _field(first, "text")
        if isinstance(choice_text, str):
            return choice_text
        # Refusals, tool calls and filtered answers carry no content
        if content is None:
            return ""

    text = _field(response, "text")
    if isinstance(text, str):
        return text

    message_text = _content_text(_field(_field(response, "message"), "content"))
    if message_text is not None:
        return message_text

    return None


def extract_fragment(chunk: Any) -> str:
    """
    Extract the text carried by one streamed chunk.

    Looks at the first choice's ``delta.content`` (or ``text``) first,
    and otherwise a top-level ``text``, then ``message.content``.

    Args:
        chunk: One raw fragment produced by a streaming provider call

    Returns:
        The fragment text, empty when the chunk carries none
    """
    try:
        if chunk is None:
            return ""
        if isinstance(chunk, str):
            return chunk

        choices = _field(chunk, "choices")
        if _is_sequence(choices) and choices:
            # Only the first alternative is relayed, matching extract_complete
            first = choices[0]
            if _field(first, "index") not in (None, 0):
                return ""
            delta_text = _content_text(_field(_field(first, "delta"), "content"))
            if delta_text:
                return delta_text
            choice_text = _field(first, "text")
            return choice_text if isinstance(choice_text, str) else ""

        text = _field(chunk, "text")
        if isinstance(text, str):
            return text

        message_text = _content_text(_field(_field(chunk, "message"), "content"))
        return message_text or ""
    except Exception as e:
        app_logger.warning(f"Could not read streamed chunk ({type(chunk).__name__}): {e}")
        return ""


async def drain_fragments(stream: Any) -> str:
    """Read an async fragment sequence to the end and return the accumulated text.

    A failure while reading is logged and the text read so far is returned.
    """
    collected = []
    try:
        async for chunk in stream:
            collected.append(extract_fragment(chunk))
    except Exception as e:
        app_logger.error(f"Error reading streamed response: {e}")
    return "".join(collected)


async def extract_complete(response: Any) -> str:
    """
    Extract the full answer text from any provider response.

    Precedence: plain string, ``choices[0]`` (``message.content`` or ``text``),
    top-level ``text``, top-level ``message.content``, an async fragment
    sequence (drained), and finally a serialized rendering of the value.

    Args:
        response: Raw provider response of any shape

    Returns:
        Response text, possibly empty
    """
    if response is None:
        return ""
    if isinstance(response, str):
        return response

    try:
        text = _complete_from_shape(response)
    except Exception as e:
        app_logger.warning(f"Could not inspect provider response ({type(response).__name__}): {e}")
        text = None
    if text is not None:
        return text

    if _is_async_iterable(response):
        return await drain_fragments(response)

    return _serialize(response)
