"""Routing of decoded messages to the session's handler table."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

from ..errors.internal import HandlerError
from ..logs.logger import logger
from .models import Command, Message

if TYPE_CHECKING:  # pragma: no cover
    from .session import Session

MessageCallback = Callable[[Message, "Session"], Awaitable[Any] | Any]
ConnectedCallback = Callable[["Session"], Awaitable[Any] | Any]


class Category(Enum):
    WELCOME = auto()
    JOIN = auto()
    PING = auto()
    PRIVMSG = auto()
    UNKNOWN = auto()


_CATEGORIES = {
    Command.RPL_WELCOME.value: Category.WELCOME,
    Command.JOIN.value: Category.JOIN,
    Command.PING.value: Category.PING,
    Command.PRIVMSG.value: Category.PRIVMSG,
}


def categorize(message: Message) -> Category:
    return _CATEGORIES.get(message.command.upper(), Category.UNKNOWN)


@dataclass(frozen=True)
class HandlerTable:
    """Optional callbacks keyed by category, fixed for a session's lifetime.

    ``on_connected`` replaces the built-in registration sequence when set.
    Callbacks may be plain functions or coroutines; raising signals failure.
    """

    on_connected: ConnectedCallback | None = None
    welcome: MessageCallback | None = None
    join: MessageCallback | None = None
    ping: MessageCallback | None = None
    privmsg: MessageCallback | None = None
    unknown: MessageCallback | None = None

    def lookup(self, category: Category) -> MessageCallback | None:
        return {
            Category.WELCOME: self.welcome,
            Category.JOIN: self.join,
            Category.PING: self.ping,
            Category.PRIVMSG: self.privmsg,
            Category.UNKNOWN: self.unknown,
        }[category]


async def invoke(callback: Callable[..., Any], *args: Any) -> Any:
    result = callback(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class IRCDispatcher:
    def __init__(self, session: Session, handlers: HandlerTable):
        self.session = session
        self.handlers = handlers

    async def dispatch(self, message: Message) -> None:
        """Run the callback for ``message``; callback failures propagate as HandlerError."""
        category = categorize(message)
        callback = self.handlers.lookup(category)
        if callback is None:
            if category is Category.PING:
                # echo params and trailing unchanged
                await self.session.send(
                    Message(Command.PONG, message.params, trailing=message.trailing)
                )
            return

        logger.log_event(
            "irc",
            "dispatch",
            level=logging.DEBUG,
            target=self.session.name,
            category=category.name,
            command=message.command,
        )
        try:
            await invoke(callback, message, self.session)
        except HandlerError:
            raise
        except Exception as e:
            raise HandlerError(
                f"{category.name.lower()} handler failed: {e}",
                operation=f"handle_{category.name.lower()}",
                data={"command": message.command},
            ) from e
