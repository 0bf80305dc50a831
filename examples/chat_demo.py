"""Minimal console loop over the chat core.

Plain text streams a completion; /image, /audio and /vision route to the
other capabilities. Ctrl-C while a reply is in flight stops it.
"""

import asyncio
import signal

from chat_core import create_orchestrator
from chat_core.domain.media import decode_data_url
from chat_core.prompts import EXAMPLE_PROMPTS


async def main() -> None:
    shown = {"chars": 0}

    def on_update(messages):
        last = messages[-1] if messages else None
        if last is None or last.is_user or last.kind != "text":
            return
        print(last.content[shown["chars"]:], end="", flush=True)
        shown["chars"] = len(last.content)

    orchestrator = create_orchestrator(on_update=on_update)
    print("Try:", " | ".join(EXAMPLE_PROMPTS[:3]))
    while True:
        try:
            text = input("\n> ")
        except EOFError:
            break
        shown["chars"] = 0
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, orchestrator.cancel)
        try:
            result = await orchestrator.send(text)
        finally:
            loop.remove_signal_handler(signal.SIGINT)
        print()
        if result.error:
            print("Error:", result.error)
        elif result.notice:
            print(result.notice)
        elif result.message is not None and result.message.kind != "text":
            _, raw = decode_data_url(result.message.media_ref)
            print(f"[{result.message.kind}] {result.message.media_kind}, {len(raw)} bytes")


if __name__ == "__main__":
    asyncio.run(main())
