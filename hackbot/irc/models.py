"""Shared IRC data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, StrEnum, auto


class Command(StrEnum):
    """Wire verbs used by the client (RFC 1459)."""

    PASS = "PASS"
    NICK = "NICK"
    USER = "USER"
    OPER = "OPER"
    QUIT = "QUIT"
    JOIN = "JOIN"
    PART = "PART"
    MODE = "MODE"
    TOPIC = "TOPIC"
    PRIVMSG = "PRIVMSG"
    NOTICE = "NOTICE"
    PING = "PING"
    PONG = "PONG"
    RPL_WELCOME = "001"


class SessionState(Enum):
    DISCONNECTED = auto()
    DIALING = auto()
    REGISTERING = auto()
    REGISTERED = auto()
    CLOSED = auto()
    FAILED = auto()


@dataclass(frozen=True, slots=True)
class Message:
    """One protocol message.

    ``sender`` is set on messages received from the peer and left empty on
    messages this client originates. ``trailing`` is the optional last
    parameter that may contain spaces.
    """

    command: str
    params: tuple[str, ...] = field(default_factory=tuple)
    trailing: str | None = None
    sender: str | None = None

    @property
    def nick(self) -> str | None:
        """Nickname part of ``nick!user@host``, or the whole sender for servers."""
        if self.sender is None:
            return None
        return self.sender.split("!", 1)[0]

    @property
    def target(self) -> str | None:
        return self.params[0] if self.params else None

    @property
    def text(self) -> str:
        """Free-text payload: the trailing parameter, else the last plain one."""
        if self.trailing is not None:
            return self.trailing
        return self.params[-1] if self.params else ""
