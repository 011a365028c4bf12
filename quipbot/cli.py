"""
quipbot CLI entry point.

Usage:
    quipbot examples.slack_bot:setup              # Run rules against Slack
    quipbot examples.slack_bot:setup --console    # Same rules, local console
    quipbot --help
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import inspect
from typing import Any, Callable

from dotenv import load_dotenv
from loguru import logger

from quipbot import __version__
from quipbot.bot import Bot, BotConfig
from quipbot.errors import ConfigurationError
from quipbot.logging_config import configure_logging


def load_rules(target: str) -> Callable[[Bot], Any]:
    """Resolve ``module:function`` (function defaults to ``setup``)."""
    module_name, _, attr = target.partition(":")
    module = importlib.import_module(module_name)
    setup = getattr(module, attr or "setup", None)
    if not callable(setup):
        raise ConfigurationError(f"{target!r} does not name a callable rule set")
    return setup


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="quipbot",
        description="quipbot - rule-based Slack bot framework",
    )
    parser.add_argument(
        "rules",
        help="Rule set as module:function; the function is called with the Bot",
    )
    parser.add_argument(
        "--console",
        action="store_true",
        help="Run against a local console instead of Slack",
    )
    parser.add_argument(
        "--log-level",
        default="",
        help="Log level (default: $LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-file",
        default="",
        help="Also write DEBUG logs to this file (rotated at 10 MB)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"quipbot {__version__}",
    )

    args = parser.parse_args(argv)

    asyncio.run(_run(args))


async def _run(args: argparse.Namespace) -> None:
    load_dotenv()
    config = BotConfig.from_env()
    configure_logging(args.log_level or config.log_level, log_file=args.log_file or None)

    bot = Bot.for_console(config) if args.console else Bot.for_slack(config)

    setup = load_rules(args.rules)
    result = setup(bot)
    if inspect.isawaitable(result):
        await result

    try:
        await bot.start(on_ready=lambda: logger.info(f"[cli] Rules loaded from {args.rules}"))
    finally:
        await bot.stop()


if __name__ == "__main__":
    main()
