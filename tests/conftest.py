import asyncio
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Concise log lines unless a test opts into the debug format.
os.environ.setdefault("DEBUG", "false")

from hackbot.config.model import BotConfig  # noqa: E402


class FakeWriter:
    """In-memory stand-in for ``asyncio.StreamWriter``."""

    def __init__(self, fail_writes: bool = False) -> None:
        self.buffer = bytearray()
        self.closed = False
        self.fail_writes = fail_writes

    def write(self, data: bytes) -> None:
        if self.fail_writes or self.closed:
            raise ConnectionResetError("peer reset")
        self.buffer.extend(data)

    async def drain(self) -> None:
        await asyncio.sleep(0)

    def close(self) -> None:
        self.closed = True

    def is_closing(self) -> bool:
        return self.closed

    async def wait_closed(self) -> None:
        return None

    @property
    def lines(self) -> list[str]:
        text = self.buffer.decode("utf-8")
        return [line for line in text.split("\r\n") if line]


class FakeDialer:
    """Dialer returning scripted inbound lines over in-memory streams."""

    def __init__(self, incoming: list[str] | None = None, *, eof: bool = True, error=None):
        self.incoming = incoming or []
        self.eof = eof
        self.error = error
        self.calls: list[tuple[str, int]] = []
        self.writers: list[FakeWriter] = []

    async def connect(self, host: str, port: int):
        self.calls.append((host, port))
        if self.error is not None:
            raise self.error
        reader = asyncio.StreamReader()
        for line in self.incoming:
            reader.feed_data(line.encode("utf-8") + b"\r\n")
        if self.eof:
            reader.feed_eof()
        writer = FakeWriter()
        self.writers.append(writer)
        return reader, writer

    @property
    def writer(self) -> FakeWriter:
        return self.writers[-1]


@pytest.fixture
def fake_dialer_factory():
    return FakeDialer


@pytest.fixture
def sample_config_dict() -> dict:
    return {
        "globals": {
            "nick": "hackbot",
            "real_name": "Hack Bot",
            "ctcp_version": "hackbot 0.1",
            "reconnect_interval_seconds": 5,
        },
        "proxies": [
            {"name": "tor", "address": "127.0.0.1:9050"},
        ],
        "servers": [
            {
                "name": "libera",
                "address": "irc.libera.chat:6697",
                "use_tls": True,
                "channels": "#python, hackers",
                "responses": {"ping?": "pong!"},
            },
            {
                "name": "onion",
                "address": "example.onion",
                "proxy": "tor",
                "nick": "ghost",
                "reconnect_interval_seconds": 30,
            },
            {
                "name": "manual",
                "address": "irc.example.org",
                "autoconnect": False,
            },
        ],
    }


@pytest.fixture
def sample_config(sample_config_dict) -> BotConfig:
    return BotConfig.from_dict(sample_config_dict)
