"""Runs an event stream in a producer task behind an ordered queue.

The consumer sees items in exactly the order the producer emitted them.
Closing the consumer (``aclose()``, ``break`` inside ``aclosing``, or
cancelling the consuming task) cancels the producer, which in turn
closes whatever HTTP response it had open.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Iterable, Mapping
from contextlib import aclosing
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from streamchat.config import ProviderConfig
    from streamchat.events import StreamEvent
    from streamchat.message import ChatMessage
    from streamchat.runner import Runner

logger = logging.getLogger(__name__)

T = TypeVar("T")

_END = object()


@dataclass
class _Raised:
    error: Exception


async def _produce(source: AsyncGenerator[T, None], queue: asyncio.Queue) -> None:
    try:
        async with aclosing(source) as items:
            async for item in items:
                await queue.put(item)
    except Exception as e:
        await queue.put(_Raised(e))
    else:
        await queue.put(_END)


async def open_channel(
    source: AsyncGenerator[T, None], maxsize: int = 0,
) -> AsyncIterator[T]:
    """Consume *source* through a queue fed by a background task.

    Exceptions raised by the producer are re-raised to the consumer
    after every item queued before them has been delivered.
    """
    queue: asyncio.Queue = asyncio.Queue(maxsize)
    producer = asyncio.create_task(_produce(source, queue), name="streamchat-producer")
    try:
        while True:
            item = await queue.get()
            if item is _END:
                return
            if isinstance(item, _Raised):
                raise item.error
            yield item
    finally:
        if not producer.done():
            logger.debug("Consumer closed early; cancelling producer")
            producer.cancel()
        await asyncio.wait([producer])


def stream_turn(
    runner: Runner,
    config: ProviderConfig,
    messages: Iterable[ChatMessage | Mapping[str, Any]],
) -> AsyncIterator[StreamEvent]:
    """Run one orchestrated turn on a producer task.

    Example::

        async with aclosing(stream_turn(runner, config, history)) as events:
            async for event in events:
                ...
    """
    return open_channel(runner.iter(config, messages))
