from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import aclosing
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionToolParam

from streamchat import errors
from streamchat.config import ProviderConfig
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
)
from streamchat.message import ChatMessage
from streamchat.sse import SSEDone, sse_chunks
from streamchat.streaming import TOOL_CALLS_FINISH_REASON, ToolCallAccumulator

logger = logging.getLogger(__name__)

CONNECTION_TEST_PROMPT = "Say 'Connection successful!' in exactly those words."
CONNECTION_TEST_FALLBACK = "Connection successful!"


def _timeout(config: ProviderConfig) -> httpx.Timeout:
    return httpx.Timeout(
        connect=config.connect_timeout,
        read=config.read_timeout,
        write=config.write_timeout,
        pool=config.connect_timeout,
    )


def _wire_messages(
    config: ProviderConfig,
    messages: Iterable[ChatMessage | Mapping[str, Any]],
) -> list[dict]:
    wire: list[dict] = []
    if config.system_prompt.strip():
        wire.append(ChatMessage.system(config.system_prompt).to_wire())
    for m in messages:
        wire.append(m.to_wire() if isinstance(m, ChatMessage) else dict(m))
    return wire


class ChatCompletionsClient:
    """Client for OpenAI-compatible ``/chat/completions`` endpoints.

    Streaming requests are read line by line straight off the HTTP
    response so that tool-call fragments can be reassembled as they
    arrive.  The one-shot calls (connection test, model listing) go
    through the ``openai`` SDK sharing the same connection pool.

    No call raises for an expected failure: streams end with an
    :class:`ErrorEvent` and one-shot calls return :class:`ApiFailure`.

    Args:
        http_client: Connection pool to use.  When omitted the client
            creates and owns one.
    """

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def build_payload(
        self,
        config: ProviderConfig,
        messages: Iterable[ChatMessage | Mapping[str, Any]],
        tools: list[ChatCompletionToolParam] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": config.model,
            "messages": _wire_messages(config, messages),
            "stream": True,
        }
        if config.temperature is not None:
            payload["temperature"] = config.temperature
        if config.max_tokens is not None:
            payload["max_tokens"] = config.max_tokens
        if tools:
            payload["tools"] = list(tools)
            payload["tool_choice"] = "auto"
        return payload

    async def stream_chat(
        self,
        config: ProviderConfig,
        messages: Iterable[ChatMessage | Mapping[str, Any]],
        tools: list[ChatCompletionToolParam] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream one completion as :class:`StreamEvent` objects.

        The stream ends with a :class:`DoneEvent`, an :class:`ErrorEvent`,
        or with the :class:`ToolCallRequestedEvent` batch when the model
        asks for tools.  Closing the iterator early closes the HTTP
        response.
        """
        payload = self.build_payload(config, messages, tools)
        url = f"{config.normalized_base_url()}/chat/completions"
        headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        logger.debug(
            f"Starting streamed completion via {config.model} "
            f"with {len(payload['messages'])} message(s)"
        )

        try:
            async with self._http.stream(
                "POST", url, json=payload, headers=headers, timeout=_timeout(config),
            ) as response:
                if not response.is_success:
                    body = await response.aread()
                    logger.warning(f"Completion request failed with HTTP {response.status_code}")
                    yield ErrorEvent(
                        message=errors.describe_status(response.status_code, body),
                        code=response.status_code,
                    )
                    return
                async with aclosing(self._interpret(response.aiter_lines())) as events:
                    async for event in events:
                        yield event
        except Exception as e:
            logger.warning(f"Completion stream failed: {e!r}")
            yield ErrorEvent(message=errors.describe_exception(e))

    async def _interpret(self, lines: AsyncIterator[str]) -> AsyncIterator[StreamEvent]:
        acc = ToolCallAccumulator()
        items = sse_chunks(lines)
        try:
            async for item in items:
                if isinstance(item, SSEDone):
                    yield DoneEvent()
                    return
                if item.content_delta:
                    yield ContentEvent(text=item.content_delta)
                if item.reasoning_delta:
                    yield ReasoningEvent(text=item.reasoning_delta)
                for fragment in item.tool_call_fragments:
                    acc.feed(fragment)

                if item.finish_reason is None:
                    continue
                if item.finish_reason == TOOL_CALLS_FINISH_REASON:
                    for event in self._finalize_tool_calls(acc):
                        yield event
                    return
                logger.debug(f"Stream finished: {item.finish_reason}")
                yield DoneEvent()
                return
            # Body ended without a terminator.
            yield DoneEvent()
        finally:
            acc.clear()
            await items.aclose()

    @staticmethod
    def _finalize_tool_calls(acc: ToolCallAccumulator) -> list[StreamEvent]:
        result = acc.finalize()
        if result.empty:
            logger.warning("finish_reason=tool_calls without any tool call deltas")
            return [ErrorEvent(message=errors.NO_TOOL_CALLS)]
        events: list[StreamEvent] = [
            ToolCallRequestedEvent(id=tc.id, name=tc.name, arguments=tc.arguments)
            for tc in result.calls
        ]
        if result.incomplete:
            logger.warning("Stream ended with incomplete tool call deltas")
            events.append(ErrorEvent(message=errors.INCOMPLETE_TOOL_CALLS))
        return events

    # ------------------------------------------------------------------
    # One-shot calls
    # ------------------------------------------------------------------

    def _sdk_client(self, config: ProviderConfig) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.normalized_base_url(),
            max_retries=0,
            timeout=_timeout(config),
            http_client=self._http,
        )

    async def test_connection(self, config: ProviderConfig) -> ApiResult[str]:
        """Send a tiny non-streaming completion to validate url, key and model."""
        client = self._sdk_client(config)
        try:
            completion = await client.chat.completions.create(
                model=config.model,
                messages=[{"role": "user", "content": CONNECTION_TEST_PROMPT}],
                temperature=0.1,
                max_tokens=20,
            )
        except openai.APIStatusError as e:
            logger.warning(f"Connection test failed with HTTP {e.status_code}")
            return ApiFailure(errors.describe_status(e.status_code, e.body), e.status_code)
        except Exception as e:
            return ApiFailure(errors.describe_exception(e))

        content = None
        choices = getattr(completion, "choices", None) or []
        if choices:
            message = getattr(choices[0], "message", None)
            content = getattr(message, "content", None)
        return ApiSuccess(content or CONNECTION_TEST_FALLBACK)

    async def fetch_models(self, config: ProviderConfig) -> ApiResult[list[str]]:
        """Return the sorted ids listed by ``GET {base_url}/models``."""
        client = self._sdk_client(config)
        try:
            page = await client.models.list()
        except openai.APIStatusError as e:
            logger.warning(f"Model listing failed with HTTP {e.status_code}")
            return ApiFailure(
                errors.describe_status(
                    e.status_code, e.body, not_found_message=errors.MODELS_NOT_FOUND,
                ),
                e.status_code,
            )
        except Exception as e:
            return ApiFailure(errors.describe_exception(e))

        data = getattr(page, "data", None)
        if not isinstance(data, list):
            return ApiFailure("Failed to parse models response: missing 'data' list")
        ids = [getattr(item, "id", None) for item in data]
        if not all(isinstance(model_id, str) for model_id in ids):
            return ApiFailure("Failed to parse models response: entry without an id")
        return ApiSuccess(sorted(ids))
