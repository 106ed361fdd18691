import json

import httpx
import pytest

from streamchat.config import ProviderConfig, WebSearchConfig
from streamchat.errors import SearchError
from streamchat.events import (
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    ReasoningEvent,
    StreamEvent,
    ToolCallRequestedEvent,
)


# ---------------------------------------------------------------------------
# SSE body builders (mirror the OpenAI chunk shape)
# ---------------------------------------------------------------------------

def chunk(
    content: str | None = None,
    reasoning: str | None = None,
    tool_calls: list[dict] | None = None,
    finish_reason: str | None = None,
) -> dict:
    delta: dict = {}
    if content is not None:
        delta["content"] = content
    if reasoning is not None:
        delta["reasoning_content"] = reasoning
    if tool_calls is not None:
        delta["tool_calls"] = tool_calls
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }


def tool_delta(
    index: int = 0,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> dict:
    entry: dict = {"index": index}
    if call_id is not None:
        entry["id"] = call_id
        entry["type"] = "function"
    function: dict = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    if function:
        entry["function"] = function
    return entry


def sse_line(payload: dict | str) -> str:
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {data}"


def sse_body(*items: dict | str, done: bool = True) -> bytes:
    """Encode chunks (dicts) or raw lines (str) as an event-stream body."""
    lines = [sse_line(i) if isinstance(i, dict) else i for i in items]
    if done:
        lines.append("data: [DONE]")
    return ("\n\n".join(lines) + "\n\n").encode()


def make_text_stream(*parts: str) -> bytes:
    return sse_body(
        *[chunk(content=p) for p in parts],
        chunk(finish_reason="stop"),
    )


def make_tool_call_stream(
    query: str = "x", call_id: str = "call_1", content: str | None = None,
) -> bytes:
    args = json.dumps({"query": query})
    items = []
    if content:
        items.append(chunk(content=content))
    items += [
        chunk(tool_calls=[tool_delta(0, call_id=call_id, name="web_search")]),
        chunk(tool_calls=[tool_delta(0, arguments=args[:5])]),
        chunk(tool_calls=[tool_delta(0, arguments=args[5:])]),
        chunk(finish_reason="tool_calls"),
    ]
    return sse_body(*items, done=False)


# ---------------------------------------------------------------------------
# Fake HTTP server
# ---------------------------------------------------------------------------

class FakeServer:
    """Queue of canned responses served through ``httpx.MockTransport``."""

    def __init__(self):
        self.responses: list[httpx.Response] = []
        self.requests: list[httpx.Request] = []

    def queue(self, status_code: int = 200, content: bytes | str = b"", **kwargs):
        headers = kwargs.pop("headers", {"content-type": "text/event-stream"})
        self.responses.append(
            httpx.Response(status_code, content=content, headers=headers, **kwargs)
        )

    def queue_json(self, status_code: int, body):
        self.responses.append(httpx.Response(status_code, json=body))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def request_json(self, i: int = -1) -> dict:
        return json.loads(self.requests[i].content)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


# ---------------------------------------------------------------------------
# Scripted completion client (no HTTP at all)
# ---------------------------------------------------------------------------

class ScriptedClient:
    """Replays pre-queued event lists, one list per ``stream_chat`` call."""

    def __init__(self, rounds: list[list[StreamEvent]] | None = None):
        self.rounds = list(rounds or [])
        self.call_log: list[dict] = []
        self.closed = 0

    async def stream_chat(self, config, messages, tools=None):
        self.call_log.append({"messages": list(messages), "tools": tools})
        events = self.rounds.pop(0)
        try:
            for event in events:
                yield event
        finally:
            self.closed += 1


def text_round(*parts: str) -> list[StreamEvent]:
    return [*(ContentEvent(text=p) for p in parts), DoneEvent()]


def search_round(query: str = "x", call_id: str = "call_1", content: str = "") -> list[StreamEvent]:
    events: list[StreamEvent] = []
    if content:
        events.append(ContentEvent(text=content))
    events.append(ToolCallRequestedEvent(
        id=call_id, name="web_search", arguments=json.dumps({"query": query}),
    ))
    return events


def error_round(message: str = "boom") -> list[StreamEvent]:
    return [ErrorEvent(message=message)]


def reasoning_round(thought: str, answer: str) -> list[StreamEvent]:
    return [ReasoningEvent(text=thought), ContentEvent(text=answer), DoneEvent()]


# ---------------------------------------------------------------------------
# Search adapter doubles
# ---------------------------------------------------------------------------

class RecordingSearch:
    """Search adapter that records queries and returns canned text."""

    def __init__(self, result: str = "1. Result\n   URL: https://example.com"):
        self.result = result
        self.calls: list[tuple[str, str, str]] = []

    async def search(self, query: str, api_key: str, provider_name: str) -> str:
        self.calls.append((query, api_key, provider_name))
        return self.result


class FailingSearch:
    def __init__(self, error: Exception | None = None):
        self.error = error or SearchError("Brave Search: HTTP error 500")
        self.calls = 0

    async def search(self, query: str, api_key: str, provider_name: str) -> str:
        self.calls += 1
        raise self.error


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def provider_config():
    return ProviderConfig(
        base_url="https://llm.example.com/v1/",
        api_key="sk-test",
        model="test-model",
        name="example",
    )


@pytest.fixture
def search_config():
    return WebSearchConfig(enabled=True, api_key="search-key", provider="brave")


@pytest.fixture
def fake_server():
    return FakeServer()


@pytest.fixture
def recording_search():
    return RecordingSearch()
