"""Server-Sent Events decoding for chat-completion streams."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

from streamchat.streaming import ChunkDecodeError, StreamChunk, decode_chunk

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_PAYLOAD = "[DONE]"


@dataclass(frozen=True)
class SSEDone:
    """The ``data: [DONE]`` terminator."""


def parse_data_line(line: str) -> StreamChunk | SSEDone | None:
    """Decode a single line of the event stream.

    Returns ``None`` for lines that carry nothing usable: comments,
    ``event:``/``id:`` fields, blank keep-alives and malformed payloads.
    """
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):].strip()
    if data == DONE_PAYLOAD:
        return SSEDone()
    try:
        return decode_chunk(json.loads(data))
    except (json.JSONDecodeError, ChunkDecodeError) as e:
        logger.debug(f"Skipping malformed SSE payload: {e}")
        return None


async def sse_chunks(
    lines: AsyncIterator[str],
) -> AsyncIterator[StreamChunk | SSEDone]:
    """Turn raw response lines into chunks.

    Yields :class:`SSEDone` and stops reading as soon as the terminator
    arrives; the caller is responsible for closing the response.
    """
    async for line in lines:
        item = parse_data_line(line)
        if item is None:
            continue
        yield item
        if isinstance(item, SSEDone):
            return
