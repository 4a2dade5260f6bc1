import asyncio
import logging
import sys

import uvicorn

from core.config import load_config
from core.orchestrator import Assistant
from history import create_history


async def text_repl() -> None:
    """Text-only REPL for trying the assistant without a page or microphone."""
    config = load_config()
    assistant = Assistant(config=config, history=create_history(config))
    settings = assistant.settings
    print(f"{settings.assistant_name} (remote completion {'on' if assistant.remote else 'off'})")
    if assistant.remote:
        health = await assistant.remote.health()
        print(f"Remote: {health}")
    print(f"History records: {len(assistant.history)}")
    print()

    print(f"{settings.welcome_message} (type 'quit' to exit)")
    print("-" * 40)
    while True:
        user_input = input("\nYou: ").strip()
        if user_input.lower() in ("quit", "exit", "q"):
            break

        response = await assistant.submit(user_input)
        print(f"\n{settings.assistant_name}: {response.text}")
        if response.intent:
            print(f"  [Intent: {response.intent}]")


def server() -> None:
    """Start FastAPI server with the voice bridge."""
    config = load_config()
    print(f"Server: http://{config.server.host}:{config.server.port}")
    uvicorn.run(
        "server.app:app",
        host=config.server.host,
        port=config.server.port,
        reload=False,
    )


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.DEBUG if "--debug" in sys.argv else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if "--text" in sys.argv:
        asyncio.run(text_repl())
    else:
        server()
