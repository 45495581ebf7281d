from contextlib import suppress

import pytest

from models.chat_models import ChatReply
from routes.chat import EventStreamResponse
from services.stream_service import StreamService
from tests.helpers import assert_stream_terminated, collect, content_events, parse_sse
from utils.exceptions import StreamReadError


async def _pieces(items, error_after=None):
    for index, item in enumerate(items):
        if error_after is not None and index >= error_after:
            raise StreamReadError()
        yield item


def test_format_sse_unnamed_json_event():
    assert StreamService.format_sse({"content": "Hi", "conversationId": "c1"}) == \
        'data: {"content":"Hi","conversationId":"c1"}\n\n'


def test_format_sse_named_raw_sentinel():
    assert StreamService.format_sse("[DONE]", event="end") == "event: end\ndata: [DONE]\n\n"


def test_build_reply_payload_uses_wire_names():
    reply = ChatReply(conversation_id="c1", text="Paris.", message_id="m1")
    assert StreamService.build_reply_payload(reply) == {
        "conversationId": "c1",
        "response": "Paris.",
        "messageId": "m1",
    }


@pytest.mark.anyio
async def test_relay_events_emits_fragments_then_end():
    """Given a clean stream, each fragment should become a data event followed by a single end event."""
    body = "".join(await collect(StreamService.relay_events("c1", _pieces(["Hel", "lo"]))))
    events = parse_sse(body)

    assert content_events(events) == [
        {"content": "Hel", "conversationId": "c1"},
        {"content": "lo", "conversationId": "c1"},
    ]
    assert "error" not in [event for event, _ in events]
    assert_stream_terminated(events)


@pytest.mark.anyio
async def test_relay_events_emits_error_before_end():
    """Given a stream that fails after one fragment, an error event should precede the end event."""
    body = "".join(await collect(StreamService.relay_events("c1", _pieces(["Hel", "lo"], error_after=1))))
    events = parse_sse(body)

    assert content_events(events) == [{"content": "Hel", "conversationId": "c1"}]
    assert events[-2] == ("error", {"message": "Stream error"})
    assert_stream_terminated(events)


@pytest.mark.anyio
async def test_relay_events_on_empty_stream_only_ends():
    events = parse_sse("".join(await collect(StreamService.relay_events("c1", _pieces([])))))
    assert events == [("end", "[DONE]")]


@pytest.mark.anyio
async def test_closing_relay_early_closes_the_source():
    """Given a consumer that disconnects, the fragment source should be closed."""
    closed = []

    async def source():
        try:
            yield "one"
            yield "two"
        finally:
            closed.append(True)

    events = StreamService.relay_events("c1", source())
    await events.__anext__()
    await events.aclose()

    assert closed == [True]


class _TrackedPieces:
    """Fragment source that records whether it was closed."""

    def __init__(self, items):
        self.closed = False
        self._items = iter(items)

    def __aiter__(self):
        return self

    async def __anext__(self):
        try:
            return next(self._items)
        except StopIteration:
            raise StopAsyncIteration

    async def aclose(self):
        self.closed = True


@pytest.mark.anyio
async def test_event_response_closes_source_when_client_leaves_before_first_event():
    """Given a client gone before the response starts, the fragment source should still be closed."""
    pieces = _TrackedPieces(["never sent"])
    response = EventStreamResponse(StreamService.relay_events("c1", pieces))

    async def receive():
        return {"type": "http.disconnect"}

    async def send(message):
        raise OSError("client disconnected")

    with suppress(Exception):
        await response({"type": "http", "asgi": {"spec_version": "2.4"}}, receive, send)

    assert pieces.closed


@pytest.mark.anyio
async def test_event_response_closes_source_after_sending_all_events():
    pieces = _TrackedPieces(["Hi"])
    response = EventStreamResponse(StreamService.relay_events("c1", pieces))
    sent = []

    async def receive():
        return {"type": "http.disconnect"}

    async def send(message):
        sent.append(message)

    await response({"type": "http", "asgi": {"spec_version": "2.4"}}, receive, send)

    body = b"".join(message.get("body", b"") for message in sent).decode()
    assert [data["content"] for data in content_events(parse_sse(body))] == ["Hi"]
    assert pieces.closed
