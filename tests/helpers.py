import json
import re

SSE_EVENT = re.compile(r'(?:event: (?P<event>[^\n]+)\n)?data: (?P<data>[^\n]*)\n\n')


def parse_sse(body):
    """Split an SSE body into (event, data) pairs. Unnamed events get event None; JSON data is decoded."""
    events = []
    for match in SSE_EVENT.finditer(body):
        raw = match.group('data')
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            data = raw
        events.append((match.group('event'), data))
    return events


def content_events(events):
    """Data payloads of the unnamed content events, in order."""
    return [data for event, data in events if event is None]


def assert_stream_terminated(events):
    """Assert the stream closes with exactly one end event carrying the [DONE] sentinel."""
    assert events, "SSE body has no events"
    assert events[-1] == ("end", "[DONE]"), f"Last event is {events[-1]}, expected end/[DONE]"
    assert sum(1 for event, _ in events if event == "end") == 1, "Expected exactly one end event"


async def collect(async_iterable):
    return [item async for item in async_iterable]
