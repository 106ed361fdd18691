"""Streaming primitives for chat-completion responses.

Each ``data:`` payload of the event stream decodes into a
:class:`StreamChunk`.  The :class:`ToolCallAccumulator` reassembles tool
calls whose arguments arrive in fragments across multiple chunks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

TOOL_CALLS_FINISH_REASON = "tool_calls"


class ChunkDecodeError(ValueError):
    """A ``data:`` payload that is valid JSON but not a completion chunk."""


@dataclass(frozen=True)
class ToolCall:
    """A finalized tool call, ready for the transcript."""

    id: str
    name: str
    arguments: str = "{}"


@dataclass
class ToolCallFragment:
    """A fragment of a tool call from a streaming chunk."""

    index: int
    call_id: str | None = None
    name: str | None = None
    arguments_delta: str | None = None


@dataclass
class StreamChunk:
    """The parts of one chunk the pipeline cares about (first choice only)."""

    content_delta: str | None = None
    reasoning_delta: str | None = None
    tool_call_fragments: list[ToolCallFragment] = field(default_factory=list)
    finish_reason: str | None = None


def _optional_str(value: Any, what: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ChunkDecodeError(f"{what} must be a string, got {type(value).__name__}")
    return value


def _decode_fragment(entry: Any) -> ToolCallFragment:
    if not isinstance(entry, dict):
        raise ChunkDecodeError("tool_calls entries must be objects")
    index = entry.get("index")
    if index is None:
        index = 0
    elif isinstance(index, bool) or not isinstance(index, int):
        raise ChunkDecodeError("tool_calls index must be an integer")
    function = entry.get("function") or {}
    if not isinstance(function, dict):
        raise ChunkDecodeError("tool_calls function must be an object")
    return ToolCallFragment(
        index=index,
        call_id=_optional_str(entry.get("id"), "tool_calls id"),
        name=_optional_str(function.get("name"), "function name"),
        arguments_delta=_optional_str(function.get("arguments"), "function arguments"),
    )


def decode_chunk(payload: Any) -> StreamChunk:
    """Decode one parsed ``chat.completion.chunk`` object.

    Only ``choices[0]`` is consulted.  A chunk without choices decodes
    to an empty :class:`StreamChunk`.

    Raises:
        ChunkDecodeError: If the payload does not have the chunk shape.
    """
    if not isinstance(payload, dict):
        raise ChunkDecodeError("chunk must be a JSON object")
    choices = payload.get("choices")
    if not choices:
        return StreamChunk()
    if not isinstance(choices, list) or not isinstance(choices[0], dict):
        raise ChunkDecodeError("choices must be a list of objects")
    choice = choices[0]
    delta = choice.get("delta") or {}
    if not isinstance(delta, dict):
        raise ChunkDecodeError("delta must be an object")

    raw_calls = delta.get("tool_calls") or []
    if not isinstance(raw_calls, list):
        raise ChunkDecodeError("tool_calls must be a list")

    finish_reason = choice.get("finish_reason")
    # Some servers send the string "null" instead of a JSON null.
    if finish_reason == "null":
        finish_reason = None

    return StreamChunk(
        content_delta=_optional_str(delta.get("content"), "content"),
        reasoning_delta=_optional_str(delta.get("reasoning_content"), "reasoning_content"),
        tool_call_fragments=[_decode_fragment(entry) for entry in raw_calls],
        finish_reason=_optional_str(finish_reason, "finish_reason"),
    )


@dataclass
class AccumulatedToolCalls:
    """Outcome of :meth:`ToolCallAccumulator.finalize`.

    ``incomplete`` is set when at least one index never received both
    an id and a function name.
    """

    calls: list[ToolCall]
    incomplete: bool = False
    empty: bool = False


class ToolCallAccumulator:
    """Assembles complete tool calls from streaming fragments.

    State is keyed by the integer index the server assigns, never by id:
    the id of a call can arrive after its name or first arguments.
    One accumulator serves exactly one streaming request.
    """

    def __init__(self) -> None:
        self._ids: dict[int, str] = {}
        self._names: dict[int, str] = {}
        self._arguments: dict[int, list[str]] = {}

    def feed(self, fragment: ToolCallFragment) -> None:
        index = fragment.index
        if fragment.call_id:
            self._ids[index] = fragment.call_id
        if fragment.name:
            self._names[index] = fragment.name
        if fragment.arguments_delta:
            self._arguments.setdefault(index, []).append(fragment.arguments_delta)

    @property
    def indices(self) -> list[int]:
        return sorted(set(self._ids) | set(self._names) | set(self._arguments))

    def finalize(self) -> AccumulatedToolCalls:
        """Return completed tool calls in ascending index order."""
        indices = self.indices
        if not indices:
            return AccumulatedToolCalls(calls=[], empty=True)

        calls: list[ToolCall] = []
        incomplete = False
        for index in indices:
            call_id = self._ids.get(index)
            name = self._names.get(index)
            if call_id is None or name is None:
                incomplete = True
                continue
            arguments = "".join(self._arguments.get(index, [])) or "{}"
            calls.append(ToolCall(id=call_id, name=name, arguments=arguments))
        return AccumulatedToolCalls(calls=calls, incomplete=incomplete)

    def clear(self) -> None:
        self._ids.clear()
        self._names.clear()
        self._arguments.clear()
