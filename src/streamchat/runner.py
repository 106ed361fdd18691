import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, Protocol

from openai.types.chat import ChatCompletionToolParam

from streamchat.config import ProviderConfig, WebSearchConfig
from streamchat.errors import SearchError, describe_exception
from streamchat.events import (
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    ReasoningEvent,
    StreamEvent,
    ToolCallRequestedEvent,
    WebSearchStartedEvent,
)
from streamchat.instrumentation import (
    completion_span,
    conversation_span,
    record_error,
    tool_span,
)
from streamchat.message import ChatMessage
from streamchat.search import SearchAdapter
from streamchat.streaming import ToolCall
from streamchat.tools import (
    WEB_SEARCH_TOOL_NAME,
    extract_search_query,
    truncate_query,
    web_search_tool,
)

logger = logging.getLogger(__name__)

MAX_ROUNDS = 5


class CompletionStreamer(Protocol):
    def stream_chat(
        self,
        config: ProviderConfig,
        messages: Iterable[ChatMessage],
        tools: list[ChatCompletionToolParam] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        ...


@dataclass
class TurnState:
    """Running message list of one turn.  Never shared between turns."""

    messages: list[ChatMessage] = field(default_factory=list)
    rounds: int = 0


@dataclass
class TurnResult:
    """The result of a single Runner.run() invocation."""

    content: str
    reasoning: str
    messages: list[ChatMessage]
    error: str | None = None
    rounds: int = 0


@dataclass
class _Round:
    text: list[str] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)
    failed: bool = False


def _coerce(message: ChatMessage | Mapping[str, Any]) -> ChatMessage:
    if isinstance(message, ChatMessage):
        return message
    return ChatMessage.from_dict(dict(message))


class Runner:
    """Drives a conversation turn through as many rounds as tool calls need.

    Each round streams one completion.  Content, reasoning and error
    events are relayed as they arrive; tool calls are collected.  When a
    round ends with tool calls, the assistant message and one tool
    result per call are appended to the running message list and the
    next round starts.  Tool calls run one at a time, in the order the
    model issued them.

    Any error ends the whole turn without a trailing ``DoneEvent``.
    Otherwise the turn ends with exactly one ``DoneEvent``, including
    when ``max_rounds`` is exhausted.

    ``run()`` drains ``iter()``.  ``iter()`` is the streaming entry point.

    Args:
        client: Anything with a ``stream_chat`` coroutine generator,
            normally a :class:`~streamchat.provider.ChatCompletionsClient`.
        search: Adapter called for ``web_search`` tool calls.
        search_config: Search credentials; the tool is only offered to
            the model when this is enabled and has a key.
        max_rounds: Maximum number of provider round-trips per turn.
    """

    def __init__(
        self,
        client: CompletionStreamer,
        search: SearchAdapter | None = None,
        search_config: WebSearchConfig | None = None,
        max_rounds: int = MAX_ROUNDS,
    ):
        self.client = client
        self.search = search
        self.search_config = search_config or WebSearchConfig()
        self.max_rounds = max_rounds

    @property
    def tools(self) -> list[ChatCompletionToolParam] | None:
        if self.search is not None and self.search_config.is_active:
            return [web_search_tool()]
        return None

    async def run(
        self,
        config: ProviderConfig,
        messages: Iterable[ChatMessage | Mapping[str, Any]],
    ) -> TurnResult:
        """Run the turn to completion and collect its output."""
        state = TurnState(messages=[_coerce(m) for m in messages])
        content: list[str] = []
        reasoning: list[str] = []
        error = None
        async with aclosing(self._iter(config, state)) as events:
            async for event in events:
                if isinstance(event, ContentEvent):
                    content.append(event.text)
                elif isinstance(event, ReasoningEvent):
                    reasoning.append(event.text)
                elif isinstance(event, ErrorEvent):
                    error = event.message
        return TurnResult(
            content="".join(content),
            reasoning="".join(reasoning),
            messages=state.messages,
            error=error,
            rounds=state.rounds,
        )

    def iter(
        self,
        config: ProviderConfig,
        messages: Iterable[ChatMessage | Mapping[str, Any]],
    ) -> AsyncIterator[StreamEvent]:
        """Run the turn, yielding events as execution proceeds."""
        state = TurnState(messages=[_coerce(m) for m in messages])
        return self._iter(config, state)

    async def _iter(self, config: ProviderConfig, state: TurnState) -> AsyncIterator[StreamEvent]:
        tools = self.tools
        async with conversation_span(config.name, config.model) as turn_span:
            for round_index in range(self.max_rounds):
                state.rounds = round_index + 1
                current = _Round()
                async with completion_span(config.name, config.model, round_index) as span:
                    async with aclosing(
                        self.client.stream_chat(config, list(state.messages), tools)
                    ) as events:
                        async for event in events:
                            if isinstance(event, ContentEvent):
                                current.text.append(event.text)
                                yield event
                            elif isinstance(event, ReasoningEvent):
                                yield event
                            elif isinstance(event, ErrorEvent):
                                current.failed = True
                                record_error(span, event.message, "stream_error")
                                yield event
                            elif isinstance(event, ToolCallRequestedEvent):
                                current.tool_calls.append(
                                    ToolCall(id=event.id, name=event.name, arguments=event.arguments)
                                )
                            elif isinstance(event, (DoneEvent, WebSearchStartedEvent)):
                                pass

                if current.failed:
                    record_error(turn_span, "round failed", "stream_error")
                    logger.info(f"Round {round_index + 1} failed; ending turn")
                    return

                if not current.tool_calls:
                    logger.info(f"Turn resolved after {round_index + 1} round(s)")
                    break

                state.messages.append(
                    ChatMessage.assistant("".join(current.text), current.tool_calls)
                )
                for tc in current.tool_calls:
                    if tc.name != WEB_SEARCH_TOOL_NAME:
                        logger.warning(f"Tool not found: {tc.name}")
                        state.messages.append(
                            ChatMessage.tool_result(tc.id, f"Error: tool '{tc.name}' not found")
                        )
                        continue

                    yield WebSearchStartedEvent()
                    failure = None
                    async with tool_span(tc.name, tc.id) as span:
                        try:
                            result = await self._search(tc)
                        except Exception as e:
                            failure = f"Web search failed: {self._describe_search_failure(e)}"
                            logger.error(f"Tool {tc.name} raised: {e!r}")
                            record_error(span, failure, type(e).__qualname__)
                    if failure is not None:
                        record_error(turn_span, failure, "tool_error")
                        yield ErrorEvent(message=failure)
                        return
                    state.messages.append(ChatMessage.tool_result(tc.id, result))
            else:
                # TODO: decide whether an exhausted round budget should surface
                # its own error instead of a plain DoneEvent.
                logger.warning(
                    f"Reached {self.max_rounds} rounds without a final answer"
                )

        yield DoneEvent()

    async def _search(self, tc: ToolCall) -> str:
        if self.search is None:
            raise SearchError("web search is not configured")
        query = truncate_query(extract_search_query(tc.arguments))
        logger.info(f"Calling {tc.name} with {query!r}")
        return await self.search.search(
            query, self.search_config.api_key, self.search_config.provider,
        )

    @staticmethod
    def _describe_search_failure(exc: Exception) -> str:
        if isinstance(exc, SearchError):
            return str(exc)
        return describe_exception(exc)
