"""Streaming chat-completion client with a bounded web-search tool loop."""

from streamchat.channel import open_channel, stream_turn
from streamchat.config import ProviderConfig, WebSearchConfig, configure_logging
from streamchat.events import (
    ApiFailure,
    ApiResult,
    ApiSuccess,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    ReasoningEvent,
    StreamEvent,
    ToolCallRequestedEvent,
    WebSearchStartedEvent,
)
from streamchat.instrumentation import instrument, uninstrument
from streamchat.message import ChatMessage, MessageRole
from streamchat.provider import ChatCompletionsClient
from streamchat.runner import Runner, TurnResult
from streamchat.search import SearchAdapter, WebSearchClient
from streamchat.streaming import ToolCall

__all__ = [
    "ApiFailure",
    "ApiResult",
    "ApiSuccess",
    "ChatCompletionsClient",
    "ChatMessage",
    "ContentEvent",
    "DoneEvent",
    "ErrorEvent",
    "MessageRole",
    "ProviderConfig",
    "ReasoningEvent",
    "Runner",
    "SearchAdapter",
    "StreamEvent",
    "ToolCall",
    "ToolCallRequestedEvent",
    "TurnResult",
    "WebSearchClient",
    "WebSearchConfig",
    "WebSearchStartedEvent",
    "configure_logging",
    "instrument",
    "open_channel",
    "stream_turn",
    "uninstrument",
]
