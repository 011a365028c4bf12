"""
Hello World — the simplest quipbot example.

Runs against a local console, no Slack credentials needed.

Run:
    python examples/hello_world.py
"""

import asyncio

from quipbot import Bot, matcher
from quipbot.logging_config import configure_logging


async def main() -> None:
    configure_logging("WARNING")

    # 1. Bot on the console
    bot = Bot.for_console()

    # 2. Rules
    bot.register_primary(
        matcher.directed_at_bot.starts_with("hello", "hi"),
        lambda msg, rest: f"hello {msg.sender_name}" + (f", {rest}" if rest else ""),
    )
    bot.register_primary(
        matcher.matches(r"(\d+)\s*\+\s*(\d+)"),
        lambda msg, m: str(int(m.group(1)) + int(m.group(2))),
    )
    bot.register_primary(
        matcher.in_channel("general").contains("ship it"),
        lambda msg: msg.emoji_reaction("rocket", "tada"),
    )
    bot.register_reaction("wave", handler=lambda msg, reaction: msg.reply("\U0001F44B"))
    bot.register_fallthrough(matcher.is_im, lambda msg: "Try 'hello', '2 + 2' or '#general ship it'.")

    # 3. Run
    await bot.start()


if __name__ == "__main__":
    asyncio.run(main())
