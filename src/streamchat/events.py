"""Events emitted while streaming a completion, and one-shot call results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class StreamEvent:
    """Base for all streaming events."""


@dataclass(frozen=True)
class ContentEvent(StreamEvent):
    """Visible answer text, relayed as soon as its chunk arrives."""

    text: str = ""


@dataclass(frozen=True)
class ReasoningEvent(StreamEvent):
    """Reasoning text.  Never merged with :class:`ContentEvent` text."""

    text: str = ""


@dataclass(frozen=True)
class ErrorEvent(StreamEvent):
    """A terminal failure for the current turn.

    ``code`` carries the HTTP status when the failure came from a
    non-2xx response.
    """

    message: str = ""
    code: int | None = None


@dataclass(frozen=True)
class ToolCallRequestedEvent(StreamEvent):
    """A finalized tool call requested by the model."""

    id: str = ""
    name: str = ""
    arguments: str = "{}"


@dataclass(frozen=True)
class WebSearchStartedEvent(StreamEvent):
    """Emitted right before the search adapter is invoked."""


@dataclass(frozen=True)
class DoneEvent(StreamEvent):
    """Normal end of a stream or of a whole turn."""


@dataclass(frozen=True)
class ApiSuccess(Generic[T]):
    value: T


@dataclass(frozen=True)
class ApiFailure:
    message: str
    code: int | None = None


ApiResult = Union[ApiSuccess[T], ApiFailure]
