"""
Slack bot — production entry point.

Reads config from environment variables (.env file or system env) and
runs the rules in examples/slack_bot.py.
"""

import asyncio
import os
import sys

from dotenv import load_dotenv  # pip install python-dotenv
from loguru import logger

# Load .env from current directory or parent
load_dotenv()


def _require(key: str) -> str:
    val = os.getenv(key, "").strip()
    if not val:
        print(f"ERROR: {key} is not set. Copy .env.example to .env and fill in values.")
        sys.exit(1)
    return val


async def main() -> None:
    # ----------------------------------------------------------------
    # Config from env
    # ----------------------------------------------------------------
    _require("SLACK_BOT_TOKEN")
    _require("SLACK_APP_TOKEN")

    from quipbot import Bot, BotConfig
    from examples.slack_bot import setup

    config = BotConfig.from_env()

    # ----------------------------------------------------------------
    # Bot
    # ----------------------------------------------------------------
    bot = Bot.for_slack(config)
    setup(bot)

    logger.info("quipbot starting...")
    try:
        await bot.start()
    finally:
        await bot.stop()


if __name__ == "__main__":
    from quipbot.logging_config import configure_logging

    configure_logging(
        os.getenv("LOG_LEVEL", "INFO"),
        log_file=os.getenv("LOG_FILE", "~/.quipbot/quipbot.log"),
    )

    asyncio.run(main())
