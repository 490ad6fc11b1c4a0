"""Message router — dispatches server messages to handlers.

Routes inbound messages by type to the handler registered for it.
Handlers are async callables that receive the parsed message; anything
they need to say to the server goes through the connection's queue.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from conquestclient.models.messages import GameMessage, parse_message

log = logging.getLogger(__name__)

# Handler signature: async (message) -> None
Handler = Callable[[GameMessage], Awaitable[None]]


class Router:
    """Message dispatcher.

    Register handlers for message types, then call route() with raw dicts.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def register(self, msg_type: str, handler: Handler) -> None:
        """Register a handler for a message type.

        Args:
            msg_type: The message type string (e.g. ``"attack_plan_resolved"``).
            handler: Async callable ``(message) -> None``.
        """
        self._handlers[msg_type] = handler
        log.debug("Handler registered: %s", msg_type)

    @property
    def registered_types(self) -> list[str]:
        """List of all message types that have a handler."""
        return list(self._handlers.keys())

    async def route(self, raw: dict[str, Any]) -> bool:
        """Parse and dispatch a raw message dict.

        Raises:
            pydantic.ValidationError: if the message does not match its type.

        Returns:
            True if a handler ran.
        """
        message = parse_message(raw)
        handler = self._handlers.get(message.type)
        if handler is None:
            log.debug("No handler for message type: %s", message.type)
            return False
        await handler(message)
        return True
