"""Interactive chat with streamed answers and web search.

Demonstrates:
- Loading provider and search settings from the environment
- Offering the web_search tool only when search is configured
- Consuming a turn through stream_turn as events arrive
- Keeping the conversation history between turns

Usage:
    Add to .env:
        STREAMCHAT_API_KEY=sk-...
        STREAMCHAT_MODEL=gpt-4o-mini
        STREAMCHAT_SEARCH_ENABLED=true
        STREAMCHAT_SEARCH_API_KEY=...
    then:
    uv run --env-file=.env examples/search_chat.py
"""

import asyncio
import logging
from contextlib import aclosing

from streamchat import (
    ChatCompletionsClient,
    ChatMessage,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    ProviderConfig,
    ReasoningEvent,
    Runner,
    WebSearchClient,
    WebSearchConfig,
    WebSearchStartedEvent,
    configure_logging,
    stream_turn,
)


async def main():
    configure_logging(logging.WARNING)
    config = ProviderConfig.from_env(
        system_prompt="You are a concise assistant. Search the web for recent facts.",
    )
    if not config.is_configured:
        print("Set STREAMCHAT_API_KEY (or OPENAI_API_KEY) first.")
        return

    client = ChatCompletionsClient()
    search = WebSearchClient()
    runner = Runner(client, search, WebSearchConfig.from_env())
    history: list[ChatMessage] = []

    print(f"Chatting with {config.model}\n")

    try:
        while True:
            try:
                user_input = input("You: ")
            except (KeyboardInterrupt, EOFError):
                print("\nGoodbye!")
                break

            history.append(ChatMessage.user(user_input))
            answer = []
            print("Assistant: ", end="", flush=True)
            async with aclosing(stream_turn(runner, config, history)) as events:
                async for event in events:
                    if isinstance(event, ContentEvent):
                        answer.append(event.text)
                        print(event.text, end="", flush=True)
                    elif isinstance(event, ReasoningEvent):
                        pass
                    elif isinstance(event, WebSearchStartedEvent):
                        print("[searching the web] ", end="", flush=True)
                    elif isinstance(event, ErrorEvent):
                        print(f"\n[error] {event.message}")
                    elif isinstance(event, DoneEvent):
                        print()
            if answer:
                history.append(ChatMessage.assistant("".join(answer)))
            print()
    finally:
        await search.aclose()
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(main())
