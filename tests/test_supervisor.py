"""
Tests for the reconnect supervisor
"""

import asyncio
import logging

import pytest

from hackbot.config.model import ProxyConfig, ServerConfig
from hackbot.errors.internal import ConnectionClosed, DialError, HandlerError
from hackbot.irc.dispatcher import HandlerTable
from hackbot.irc.supervisor import ReconnectSupervisor, create_session
from hackbot.irc.transport import Socks5Dialer, TLSDialer


def make_server(**overrides) -> ServerConfig:
    data = {
        "name": "testnet",
        "address": "irc.example.net",
        "nick": "hackbot",
        "username": "hackbot",
        "real_name": "hackbot",
        "reconnect_interval_seconds": 5,
    }
    data.update(overrides)
    return ServerConfig.model_validate(data)


def unchecked_server(**overrides) -> ServerConfig:
    """Server record built without validation, as a hand-made record could be."""
    data = make_server().model_dump()
    data.update(overrides)
    return ServerConfig.model_construct(**data)


class ScriptedSession:
    """Session double whose run() plays back one scripted outcome."""

    def __init__(
        self,
        outcome: BaseException,
        welcomed: bool,
        events: list,
        registered: bool | None = None,
    ):
        self.outcome = outcome
        self.registered = False
        self.welcomed = False
        self._welcomes = welcomed
        self._registers = welcomed if registered is None else registered
        self.events = events

    async def run(self):
        self.events.append(("dial",))
        self.registered = self._registers
        self.welcomed = self._welcomes
        raise self.outcome


class VirtualClock:
    """Sleep replacement that records delays and stops the supervisor after N sleeps."""

    def __init__(self, events: list, stop_after: int):
        self.events = events
        self.stop_after = stop_after
        self.now = 0.0
        self.delays: list[float] = []
        self.supervisor: ReconnectSupervisor | None = None

    async def sleep(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.now += seconds
        self.events.append(("sleep", seconds))
        if len(self.delays) >= self.stop_after:
            self.supervisor.stop()
        await asyncio.sleep(0)


def build(outcomes, stop_after, **server_overrides):
    events: list = []
    clock = VirtualClock(events, stop_after)
    scripted = iter(outcomes)

    def factory(server):
        outcome, welcomed = next(scripted)
        return ScriptedSession(outcome, welcomed, events)

    supervisor = ReconnectSupervisor(make_server(**server_overrides), factory, sleep=clock.sleep)
    clock.supervisor = supervisor
    return supervisor, clock, events


@pytest.mark.asyncio
async def test_waits_interval_before_every_attempt_including_first():
    failure = (DialError("refused", operation="dial"), False)
    supervisor, clock, events = build([failure] * 10, stop_after=4)

    await supervisor.run()

    assert events == [
        ("sleep", 5.0),
        ("dial",),
        ("sleep", 5.0),
        ("dial",),
        ("sleep", 5.0),
        ("dial",),
        ("sleep", 5.0),
    ]
    assert supervisor.attempts == 3
    assert clock.now == 20.0


@pytest.mark.asyncio
async def test_no_second_dial_before_interval_elapses():
    events: list = []
    clock = VirtualClock(events, stop_after=3)
    dial_times = []

    def factory(server):
        dial_times.append(clock.now)
        return ScriptedSession(DialError("refused", operation="dial"), False, events)

    supervisor = ReconnectSupervisor(make_server(), factory, sleep=clock.sleep)
    clock.supervisor = supervisor

    await supervisor.run()

    assert dial_times == [5.0, 10.0]


@pytest.mark.asyncio
async def test_every_termination_kind_is_retried():
    outcomes = [
        (DialError("refused", operation="dial"), False),
        (ConnectionClosed("eof", operation="read"), True),
        (HandlerError("boom", operation="handle_privmsg"), True),
        (RuntimeError("unexpected"), False),
        (DialError("refused", operation="dial"), False),
    ]
    supervisor, _clock, events = build(outcomes, stop_after=5)

    await supervisor.run()

    assert [e for e in events if e == ("dial",)] == [("dial",)] * 4
    assert supervisor.session is None


@pytest.mark.asyncio
async def test_exponential_backoff_resets_after_welcome():
    refused = (DialError("refused", operation="dial"), False)
    closed = (ConnectionClosed("eof", operation="read"), True)
    supervisor, clock, _events = build(
        [refused, refused, refused, closed, refused],
        stop_after=6,
        reconnect_interval_seconds=1,
        reconnect_multiplier=2,
    )

    await supervisor.run()

    assert clock.delays == [1.0, 1.0, 2.0, 4.0, 1.0, 1.0]


@pytest.mark.asyncio
async def test_backoff_keeps_growing_when_welcome_never_arrives():
    events: list = []
    clock = VirtualClock(events, stop_after=4)

    def factory(server):
        closed = ConnectionClosed("eof", operation="read")
        return ScriptedSession(closed, False, events, registered=True)

    supervisor = ReconnectSupervisor(
        make_server(reconnect_interval_seconds=1, reconnect_multiplier=2),
        factory,
        sleep=clock.sleep,
    )
    clock.supervisor = supervisor

    await supervisor.run()

    assert clock.delays == [1.0, 1.0, 2.0, 4.0]
    assert supervisor.consecutive_failures == 3


@pytest.mark.asyncio
async def test_bad_address_is_logged_and_retried(caplog):
    events: list = []
    clock = VirtualClock(events, stop_after=3)
    server = unchecked_server(address="irc.example.net:notaport")
    supervisor = ReconnectSupervisor(server, create_session, sleep=clock.sleep)
    clock.supervisor = supervisor

    with caplog.at_level(logging.ERROR):
        await supervisor.run()

    assert supervisor.attempts == 2
    assert supervisor.consecutive_failures == 2
    assert supervisor.session is None
    assert "resolve failed" in caplog.text


def test_next_delay_is_flat_without_multiplier():
    supervisor = ReconnectSupervisor(make_server(), lambda s: None)
    supervisor.consecutive_failures = 7
    assert supervisor.next_delay() == 5.0


def test_next_delay_is_capped(monkeypatch):
    monkeypatch.setattr("hackbot.irc.supervisor.MAX_RECONNECT_DELAY_SECONDS", 60.0)
    supervisor = ReconnectSupervisor(
        make_server(reconnect_interval_seconds=10, reconnect_multiplier=3), lambda s: None
    )
    supervisor.consecutive_failures = 10
    assert supervisor.next_delay() == 60.0


@pytest.mark.asyncio
async def test_stop_signal_before_start_makes_no_attempt():
    supervisor, _clock, events = build([], stop_after=1)
    await supervisor.run()
    assert events == [("sleep", 5.0)]
    assert supervisor.attempts == 0


@pytest.mark.asyncio
async def test_interruptible_sleep_returns_when_stopped():
    supervisor = ReconnectSupervisor(make_server(), lambda s: None)
    supervisor.stop()
    await asyncio.wait_for(supervisor._interruptible_sleep(3600), timeout=1)


@pytest.mark.asyncio
async def test_cancellation_interrupts_active_session():
    started = asyncio.Event()

    class BlockingSession:
        registered = False
        welcomed = False

        async def run(self):
            started.set()
            await asyncio.Event().wait()

    async def no_sleep(_seconds):
        await asyncio.sleep(0)

    supervisor = ReconnectSupervisor(make_server(), lambda s: BlockingSession(), sleep=no_sleep)
    task = asyncio.create_task(supervisor.run())
    await asyncio.wait_for(started.wait(), timeout=1)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert task.cancelled()


def test_create_session_uses_server_identity_and_dialer():
    server = ServerConfig.model_validate(
        {
            "name": "secure",
            "address": "irc.example.net",
            "use_tls": True,
            "nick": "hb",
            "username": "hbuser",
            "real_name": "Hack Bot",
            "password": "pw",
            "oper_password": "op",
            "proxy_config": {"name": "tor", "address": "127.0.0.1:9050"},
        }
    )
    handlers = HandlerTable()
    session = create_session(server, handlers)
    assert (session.host, session.port) == ("irc.example.net", 6697)
    assert session.nick == "hb"
    assert session.username == "hbuser"
    assert session.password == "pw"
    assert session.oper_password == "op"
    assert session.handlers is handlers
    assert isinstance(session.dialer, TLSDialer)
    assert isinstance(session.dialer.inner, Socks5Dialer)


@pytest.mark.parametrize(
    "overrides",
    [
        {"address": "irc.example.net:notaport"},
        {"proxy_config": ProxyConfig.model_construct(name="tor", address="127.0.0.1:99999")},
    ],
)
def test_create_session_reports_bad_address_as_dial_error(overrides):
    with pytest.raises(DialError) as exc:
        create_session(unchecked_server(**overrides))
    assert exc.value.operation == "resolve"
    assert isinstance(exc.value.__cause__, ValueError)
