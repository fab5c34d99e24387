"""One connection to one IRC server: dial, register, read loop, send helpers."""

from __future__ import annotations

import asyncio
import logging
import ssl

from ..errors.internal import (
    ConnectionClosed,
    DialError,
    IRCError,
    ParseError,
    SessionIOError,
)
from ..logs.logger import logger
from .dispatcher import HandlerTable, IRCDispatcher, invoke
from .models import Command, Message, SessionState
from .parser import encode_message, parse_message
from .transport import Dialer, StreamPair

DEFAULT_QUIT_REASON = "Bye Bye"


def mask_secrets(line: str) -> str:
    """Hide the connection and operator secrets of an outgoing line for logging."""
    line = line.rstrip("\r\n")
    head, _, rest = line.partition(" ")
    if head.upper() == "PASS":
        return "PASS ***"
    if head.upper() == "OPER":
        return f"OPER {rest.split(' ', 1)[0]} ***"
    return line


class Session:  # pylint: disable=too-many-instance-attributes
    """Owns exactly one transport connection and its identity.

    A session is used for a single connection attempt: ``run()`` dials,
    registers and then reads until the stream fails, after which the session
    is closed and the supervisor builds a new one.
    """

    def __init__(
        self,
        name: str,
        host: str,
        port: int,
        dialer: Dialer,
        *,
        nick: str,
        username: str,
        real_name: str,
        password: str = "",
        oper_password: str = "",
        handlers: HandlerTable | None = None,
    ) -> None:
        self.name = name
        self.host = host
        self.port = port
        self.dialer = dialer
        self.nick = nick
        self.username = username
        self.real_name = real_name
        self.password = password
        self.oper_password = oper_password
        self.handlers = handlers or HandlerTable()
        self.dispatcher = IRCDispatcher(self, self.handlers)
        self.state = SessionState.DISCONNECTED
        self.welcomed = False
        self.registered = False
        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None
        self._write_lock = asyncio.Lock()

    def _set_state(self, new_state: SessionState) -> None:
        if self.state != new_state:
            logger.log_event(
                "irc",
                "state_change",
                level=logging.DEBUG,
                target=self.name,
                old_state=self.state.name,
                new_state=new_state.name,
            )
            self.state = new_state

    @property
    def connected(self) -> bool:
        return self.writer is not None and not self.writer.is_closing()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    async def run(self) -> None:
        """Dial, register and process messages until the connection ends.

        Always raises: :class:`ConnectionClosed` on a clean end of stream,
        otherwise the :class:`IRCError` that terminated the session.
        """
        try:
            await self.connect()
            await self.register()
            await self.read_loop()
        except IRCError:
            if self.state in (SessionState.DIALING, SessionState.REGISTERING):
                self._set_state(SessionState.FAILED)
            raise
        finally:
            await self.close()

    async def connect(self) -> None:
        self._set_state(SessionState.DIALING)
        logger.log_event(
            "irc", "connect_start", target=self.name, server=f"{self.host}:{self.port}"
        )
        self.reader, self.writer = await self._dial()
        logger.log_event(
            "irc", "connection_established", level=logging.DEBUG, target=self.name
        )
        self._set_state(SessionState.REGISTERING)

    async def _dial(self) -> StreamPair:
        try:
            return await self.dialer.connect(self.host, self.port)
        except DialError:
            raise
        except (OSError, ssl.SSLError, TimeoutError) as e:
            raise DialError(f"dial {self.host}:{self.port} failed: {e}", operation="dial") from e

    async def register(self) -> None:
        """Perform the handshake right after the transport is up.

        With an ``on_connected`` callback the callback is the whole handshake
        and the session stays registering until the peer's welcome arrives.
        Otherwise PASS (if set), NICK, USER and OPER (if set) are sent, each as
        its own line, and the session counts as registered once they are
        written. Every line is validated before the first byte is written.
        """
        if self.handlers.on_connected is not None:
            await invoke(self.handlers.on_connected, self)
            return
        messages = self.registration_messages()
        lines = [encode_message(m) for m in messages]
        for line in lines:
            await self._write(line)
        self._mark_registered()

    def _mark_registered(self) -> None:
        self.registered = True
        self._set_state(SessionState.REGISTERED)
        logger.log_event("irc", "registered", target=self.name, nick=self.nick)

    def registration_messages(self) -> list[Message]:
        messages: list[Message] = []
        if self.password:
            messages.append(Message(Command.PASS, (self.password,)))
        messages.append(Message(Command.NICK, (self.nick,)))
        messages.append(
            Message(Command.USER, (self.username, "*", "*"), trailing=self.real_name)
        )
        if self.oper_password:
            messages.append(Message(Command.OPER, (self.username, self.oper_password)))
        return messages

    async def read_loop(self) -> None:
        while True:
            message = await self.read_message()
            if message.command == Command.RPL_WELCOME:
                self.welcomed = True
                if not self.registered:
                    self._mark_registered()
            await self.dispatcher.dispatch(message)

    async def read_message(self) -> Message:
        """Block until one complete, non-blank line arrives and decode it."""
        if self.reader is None:
            raise SessionIOError("session is not connected", operation="read")
        while True:
            try:
                raw = await self.reader.readuntil(b"\n")
            except asyncio.IncompleteReadError as e:
                raise ConnectionClosed("connection closed by peer", operation="read") from e
            except asyncio.LimitOverrunError as e:
                raise ParseError("line exceeds read buffer limit", operation="read") from e
            except (OSError, ssl.SSLError) as e:
                raise SessionIOError(f"read failed: {e}", operation="read") from e
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if not line.strip():
                continue
            logger.log_event(
                "irc", "raw_in", level=logging.DEBUG, target=self.name, raw=line
            )
            return parse_message(line)

    async def close(self) -> None:
        """Close the transport immediately; safe to call more than once."""
        writer, self.writer, self.reader = self.writer, None, None
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except (OSError, ssl.SSLError) as e:
                logger.log_event(
                    "irc", "close_error", level=logging.DEBUG, target=self.name, error=str(e)
                )
        if self.state not in (SessionState.FAILED, SessionState.CLOSED):
            self._set_state(SessionState.CLOSED)

    async def disconnect(self, reason: str | None = None) -> None:
        """Graceful QUIT followed by close."""
        try:
            await self.quit(reason)
        finally:
            await self.close()

    # ------------------------------------------------------------------ #
    # Sending
    # ------------------------------------------------------------------ #
    async def _write(self, line: str) -> None:
        if self.writer is None:
            raise SessionIOError("session is not connected", operation="write")
        async with self._write_lock:
            try:
                self.writer.write(line.encode("utf-8"))
                await self.writer.drain()
            except (OSError, ssl.SSLError) as e:
                raise SessionIOError(f"write failed: {e}", operation="write") from e
        logger.log_event(
            "irc", "raw_out", level=logging.DEBUG, target=self.name, raw=mask_secrets(line)
        )

    async def send(self, message: Message) -> None:
        """Encode and write one message; ValidationError leaves the wire untouched."""
        await self._write(encode_message(message))

    async def send_raw(self, line: str) -> None:
        await self.send(parse_message(line))

    async def join(self, *channels: str) -> None:
        if channels:
            await self.send(Message(Command.JOIN, (",".join(channels),)))

    async def part(self, channel: str, reason: str | None = None) -> None:
        await self.send(Message(Command.PART, (channel,), trailing=reason))

    async def mode(self, target: str, *modes: str) -> None:
        await self.send(Message(Command.MODE, (target, *modes)))

    async def topic(self, channel: str, topic: str | None = None) -> None:
        await self.send(Message(Command.TOPIC, (channel,), trailing=topic))

    async def privmsg(self, target: str, text: str) -> None:
        await self.send(Message(Command.PRIVMSG, (target,), trailing=text))

    async def notice(self, target: str, text: str) -> None:
        await self.send(Message(Command.NOTICE, (target,), trailing=text))

    async def ping(self, payload: str) -> None:
        await self.send(Message(Command.PING, trailing=payload))

    async def pong(self, payload: str) -> None:
        await self.send(Message(Command.PONG, trailing=payload))

    async def quit(self, reason: str | None = None) -> None:
        await self.send(Message(Command.QUIT, trailing=reason or DEFAULT_QUIT_REASON))
