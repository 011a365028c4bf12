"""
Error types.

- ConfigurationError: bad setup (missing token, letter map, ...), raised at setup time
- ResolutionError: a named entity (channel, emoji letter) could not be resolved
- ActionError: an outbound action failed against the remote API
- ApiError: the remote API returned a non-ok result
"""

from __future__ import annotations

import pprint
from typing import Any


class QuipbotError(Exception):
    """Base class for errors whose message is meant to be shown to users as-is."""


class ConfigurationError(QuipbotError):
    pass


class ResolutionError(QuipbotError):
    pass


class ActionError(QuipbotError):
    pass


class ApiError(QuipbotError):
    """A request/response API call came back with ``ok: false``."""

    def __init__(self, method: str, error: str, response: dict[str, Any] | None = None) -> None:
        super().__init__(f"Error with {method}: {error}")
        self.method = method
        self.error = error
        self.response = response or {}


def format_error(error: BaseException | str) -> str:
    """Convert an error into text suitable for an ephemeral reply.

    Strings and ``QuipbotError`` messages are shown verbatim; anything else
    also gets a pretty-printed block with its type and arguments.
    """
    text = f"There was a problem with your response:\n> {error}"
    if isinstance(error, (str, QuipbotError)):
        return text

    detail = pprint.pformat({"type": type(error).__name__, "args": error.args})
    return f"{text}\n```\n{detail}\n```"
