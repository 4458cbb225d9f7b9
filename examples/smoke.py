import asyncio
import logging

from tldw_chat import ChatClient, ChatMessage, ChatOptions, ClientSettings, truncate_messages
from tldw_chat.errors import ChatClientError


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    client = ChatClient.from_settings(ClientSettings.from_env())

    history = [
        ChatMessage(role="system", content="You are terse."),
        ChatMessage(role="user", content="What is a reasoning model?"),
        ChatMessage(role="assistant", content="One that deliberates before answering."),
        ChatMessage(role="user", content="Give an example."),
    ]
    options = ChatOptions(
        model="tldw:openai/gpt-4o-mini",
        tools=[{"name": "Weather Lookup!", "input_schema": {"type": "object"}}],
        tool_choice="auto",
    )

    try:
        if not await client.is_ready():
            print("Server is not reachable")
            return
        handle = client.stream(truncate_messages(history, 2048), options)
        async for token in handle:
            print(token, end="", flush=True)
        print()
        print("Stored:", handle.persist_text)
    except ChatClientError as e:
        print("Request failed:", type(e).__name__, e)
    finally:
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(main())
