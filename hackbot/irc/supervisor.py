"""Reconnect supervisor: keeps one server's session alive for the process lifetime."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_result

from ..config.model import ServerConfig
from ..constants import MAX_RECONNECT_DELAY_SECONDS
from ..errors.handling import log_error
from ..errors.internal import ConnectionClosed, DialError, IRCError
from ..logs.logger import logger
from .dispatcher import HandlerTable
from .session import Session
from .transport import build_dialer, default_port, split_address

SessionFactory = Callable[[ServerConfig], Session]
Sleep = Callable[[float], Awaitable[None]]


class ReconnectSupervisor:
    """Repeatedly build and run a :class:`Session` for one server.

    The configured interval is slept before every attempt, the first one
    included. Every termination, graceful or not, is followed by another
    attempt; there is no retry limit. Only the stop signal ends the loop, and
    cancelling the task running :meth:`run` interrupts an active session at
    its dial or read point.

    With ``reconnect_multiplier`` > 1 the delay grows exponentially with the
    number of consecutive attempts that never received the welcome reply.
    """

    def __init__(
        self,
        server: ServerConfig,
        session_factory: SessionFactory,
        stop_event: asyncio.Event | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self.server = server
        self.session_factory = session_factory
        self.stop_event = stop_event or asyncio.Event()
        self.session: Session | None = None
        self.attempts = 0
        self.consecutive_failures = 0
        self._sleep = sleep or self._interruptible_sleep

    @property
    def name(self) -> str:
        return self.server.name

    def next_delay(self) -> float:
        interval = float(self.server.reconnect_interval_seconds)
        multiplier = self.server.reconnect_multiplier
        if multiplier <= 1 or self.consecutive_failures <= 1:
            return interval
        grown = interval * multiplier ** (self.consecutive_failures - 1)
        return min(grown, max(MAX_RECONNECT_DELAY_SECONDS, interval))

    def stop(self) -> None:
        self.stop_event.set()

    async def run(self) -> None:
        logger.log_event(
            "supervisor",
            "start",
            target=self.name,
            interval=self.server.reconnect_interval_seconds,
            multiplier=self.server.reconnect_multiplier,
        )
        await self._sleep(self.next_delay())

        retrying = AsyncRetrying(
            retry=retry_if_result(lambda stopped: not stopped),
            stop=self._should_stop,
            wait=self._wait,
            sleep=self._sleep,
            before_sleep=self._before_sleep,
        )
        try:
            await retrying(self._attempt)
        except RetryError:
            pass
        logger.log_event("supervisor", "stopped", target=self.name, attempts=self.attempts)

    async def _attempt(self) -> bool:
        """Run one session end to end; True means the stop signal was seen."""
        if self.stop_event.is_set():
            return True
        self.attempts += 1
        session: Session | None = None
        try:
            session = self.session_factory(self.server)
            self.session = session
            await session.run()
        except ConnectionClosed:
            logger.log_event(
                "supervisor", "session_closed", level=logging.WARNING, target=self.name
            )
        except IRCError as e:
            log_error(
                f"{self.name}: {e.operation or 'session'} failed",
                e,
                context={"target": self.name, "operation": e.operation, "attempt": self.attempts},
            )
        except Exception as e:  # noqa: BLE001
            log_error(
                f"{self.name}: unexpected session error",
                e,
                context={"target": self.name, "attempt": self.attempts},
            )
        else:
            logger.log_event("supervisor", "session_returned", level=logging.WARNING, target=self.name)
        finally:
            self.session = None

        # only a welcomed session proves the server accepts us
        if session is not None and session.welcomed:
            self.consecutive_failures = 0
        else:
            self.consecutive_failures += 1
        return self.stop_event.is_set()

    def _should_stop(self, _retry_state: RetryCallState) -> bool:
        return self.stop_event.is_set()

    def _wait(self, _retry_state: RetryCallState) -> float:
        return self.next_delay()

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else self.next_delay()
        logger.log_event(
            "supervisor",
            "reconnect_wait",
            target=self.name,
            delay=round(delay, 2),
            attempt=self.attempts + 1,
            failures=self.consecutive_failures,
        )

    async def _interruptible_sleep(self, seconds: float) -> None:
        if seconds <= 0:
            return
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self.stop_event.wait(), timeout=seconds)


def create_session(server: ServerConfig, handlers: HandlerTable | None = None) -> Session:
    """Build a fresh session for ``server`` with the matching dialer.

    Raises:
        DialError: If the server or proxy address cannot be split into host and port.
    """
    try:
        host, port = split_address(server.address, default_port(server.use_tls))
        dialer = build_dialer(server)
    except ValueError as e:
        raise DialError(f"bad address for {server.name}: {e}", operation="resolve") from e
    return Session(
        server.name,
        host,
        port,
        dialer,
        nick=server.nick,
        username=server.username,
        real_name=server.real_name,
        password=server.password,
        oper_password=server.oper_password,
        handlers=handlers,
    )
