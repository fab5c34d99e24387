"""Transport dialers: direct TCP, TLS and SOCKS5-proxied connections.

Every dialer exposes the same ``connect(host, port)`` coroutine returning an
``asyncio`` stream pair, so a :class:`~hackbot.irc.session.Session` never knows
which variant it was given.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import ssl
import struct
from typing import TYPE_CHECKING, Protocol

from ..constants import CONNECT_TIMEOUT_SECONDS, DEFAULT_PORT, DEFAULT_TLS_PORT, READ_LINE_LIMIT
from ..errors.internal import DialError
from ..logs.logger import logger

if TYPE_CHECKING:  # pragma: no cover
    from ..config.model import ServerConfig

StreamPair = tuple[asyncio.StreamReader, asyncio.StreamWriter]

SOCKS_VERSION = 0x05
SOCKS_AUTH_VERSION = 0x01
SOCKS_METHOD_NONE = 0x00
SOCKS_METHOD_USERPASS = 0x02
SOCKS_METHOD_UNACCEPTABLE = 0xFF
SOCKS_CMD_CONNECT = 0x01
SOCKS_ATYP_IPV4 = 0x01
SOCKS_ATYP_DOMAIN = 0x03
SOCKS_ATYP_IPV6 = 0x04

SOCKS_REPLIES = {
    0x01: "general SOCKS server failure",
    0x02: "connection not allowed by ruleset",
    0x03: "network unreachable",
    0x04: "host unreachable",
    0x05: "connection refused",
    0x06: "TTL expired",
    0x07: "command not supported",
    0x08: "address type not supported",
}


class Dialer(Protocol):
    async def connect(self, host: str, port: int) -> StreamPair: ...  # noqa: E701


def split_address(address: str, default_port: int = DEFAULT_PORT) -> tuple[str, int]:
    """Split ``host:port`` (``[v6]:port`` for IPv6) into its parts."""
    address = address.strip()
    if not address:
        raise ValueError("empty address")
    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep:
            raise ValueError(f"unterminated IPv6 literal in {address!r}")
        if not rest:
            return host, default_port
        if not rest.startswith(":"):
            raise ValueError(f"unexpected text after IPv6 literal in {address!r}")
        return host, _parse_port(rest[1:], address)
    if address.count(":") > 1:  # bare IPv6 literal without a port
        return address, default_port
    host, sep, port = address.partition(":")
    if not sep:
        return host, default_port
    return host, _parse_port(port, address)


def _parse_port(text: str, address: str) -> int:
    try:
        port = int(text)
    except ValueError as e:
        raise ValueError(f"invalid port in {address!r}") from e
    if not 0 < port < 65536:
        raise ValueError(f"port out of range in {address!r}")
    return port


async def _close_quietly(writer: asyncio.StreamWriter) -> None:
    writer.close()
    try:
        await writer.wait_closed()
    except (OSError, ssl.SSLError) as e:
        logger.log_event("transport", "close_error", level=logging.DEBUG, error=str(e))


class DirectDialer:
    """Plain TCP connection with a bounded connect timeout and no retry."""

    def __init__(self, timeout: float = CONNECT_TIMEOUT_SECONDS) -> None:
        self.timeout = timeout

    async def connect(self, host: str, port: int) -> StreamPair:
        try:
            return await asyncio.wait_for(
                asyncio.open_connection(host, port, limit=READ_LINE_LIMIT),
                timeout=self.timeout,
            )
        except TimeoutError as e:
            raise DialError(
                f"connect to {host}:{port} timed out after {self.timeout}s",
                operation="dial",
            ) from e
        except OSError as e:
            raise DialError(f"connect to {host}:{port} failed: {e}", operation="dial") from e


class Socks5Dialer:
    """Relay the connection through a SOCKS5 proxy (RFC 1928, RFC 1929 auth).

    The target host is sent to the proxy as a domain name unless it is an IP
    literal, so name resolution happens on the proxy side.
    """

    def __init__(
        self,
        proxy_host: str,
        proxy_port: int,
        username: str | None = None,
        password: str | None = None,
        timeout: float = CONNECT_TIMEOUT_SECONDS,
        upstream: Dialer | None = None,
    ) -> None:
        self.proxy_host = proxy_host
        self.proxy_port = proxy_port
        self.username = username or ""
        self.password = password or ""
        self.timeout = timeout
        self.upstream = upstream or DirectDialer(timeout)

    async def connect(self, host: str, port: int) -> StreamPair:
        reader, writer = await self.upstream.connect(self.proxy_host, self.proxy_port)
        try:
            await asyncio.wait_for(self._negotiate(reader, writer, host, port), timeout=self.timeout)
        except TimeoutError as e:
            await _close_quietly(writer)
            raise DialError(
                f"SOCKS5 negotiation with {self.proxy_host}:{self.proxy_port} timed out",
                operation="proxy",
            ) from e
        except asyncio.IncompleteReadError as e:
            await _close_quietly(writer)
            raise DialError(
                f"SOCKS5 proxy {self.proxy_host}:{self.proxy_port} closed the connection",
                operation="proxy",
            ) from e
        except OSError as e:
            await _close_quietly(writer)
            raise DialError(f"SOCKS5 negotiation failed: {e}", operation="proxy") from e
        except DialError:
            await _close_quietly(writer)
            raise
        logger.log_event(
            "transport",
            "proxy_connected",
            level=logging.DEBUG,
            proxy=f"{self.proxy_host}:{self.proxy_port}",
            destination=f"{host}:{port}",
        )
        return reader, writer

    async def _negotiate(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        host: str,
        port: int,
    ) -> None:
        use_auth = bool(self.username or self.password)
        methods = [SOCKS_METHOD_NONE]
        if use_auth:
            methods.append(SOCKS_METHOD_USERPASS)
        writer.write(bytes([SOCKS_VERSION, len(methods), *methods]))
        await writer.drain()

        version, method = await reader.readexactly(2)
        if version != SOCKS_VERSION:
            raise DialError(f"proxy answered with SOCKS version {version}", operation="proxy")
        if method == SOCKS_METHOD_UNACCEPTABLE or method not in methods:
            raise DialError("proxy rejected all authentication methods", operation="proxy")
        if method == SOCKS_METHOD_USERPASS:
            await self._authenticate(reader, writer)

        writer.write(self._connect_request(host, port))
        await writer.drain()

        version, reply, _reserved, atyp = await reader.readexactly(4)
        if version != SOCKS_VERSION:
            raise DialError(f"proxy answered with SOCKS version {version}", operation="proxy")
        if reply != 0x00:
            reason = SOCKS_REPLIES.get(reply, f"unknown reply code {reply:#04x}")
            raise DialError(f"proxy could not reach {host}:{port}: {reason}", operation="proxy")
        # Drain the bound address; the stream is positioned at the relayed data afterwards.
        if atyp == SOCKS_ATYP_IPV4:
            await reader.readexactly(4 + 2)
        elif atyp == SOCKS_ATYP_IPV6:
            await reader.readexactly(16 + 2)
        elif atyp == SOCKS_ATYP_DOMAIN:
            (length,) = await reader.readexactly(1)
            await reader.readexactly(length + 2)
        else:
            raise DialError(f"proxy sent unknown address type {atyp}", operation="proxy")

    async def _authenticate(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        user = self.username.encode("utf-8")
        password = self.password.encode("utf-8")
        if len(user) > 255 or len(password) > 255:
            raise DialError("proxy credentials longer than 255 bytes", operation="proxy")
        writer.write(
            bytes([SOCKS_AUTH_VERSION, len(user)]) + user + bytes([len(password)]) + password
        )
        await writer.drain()
        _version, status = await reader.readexactly(2)
        if status != 0x00:
            raise DialError("proxy authentication failed", operation="proxy")

    @staticmethod
    def _connect_request(host: str, port: int) -> bytes:
        header = bytes([SOCKS_VERSION, SOCKS_CMD_CONNECT, 0x00])
        try:
            ip = ipaddress.ip_address(host)
        except ValueError:
            name = host.encode("idna")
            if len(name) > 255:
                raise DialError(f"host name too long for SOCKS5: {host}", operation="proxy") from None
            address = bytes([SOCKS_ATYP_DOMAIN, len(name)]) + name
        else:
            atyp = SOCKS_ATYP_IPV4 if ip.version == 4 else SOCKS_ATYP_IPV6
            address = bytes([atyp]) + ip.packed
        return header + address + struct.pack("!H", port)


class TLSDialer:
    """Wrap the stream produced by ``inner`` in a TLS session."""

    def __init__(
        self,
        inner: Dialer | None = None,
        ssl_context: ssl.SSLContext | None = None,
        timeout: float = CONNECT_TIMEOUT_SECONDS,
    ) -> None:
        self.inner = inner or DirectDialer(timeout)
        self.ssl_context = ssl_context or ssl.create_default_context()
        self.timeout = timeout

    async def connect(self, host: str, port: int) -> StreamPair:
        reader, writer = await self.inner.connect(host, port)
        try:
            await asyncio.wait_for(
                writer.start_tls(self.ssl_context, server_hostname=host),
                timeout=self.timeout,
            )
        except TimeoutError as e:
            await _close_quietly(writer)
            raise DialError(f"TLS handshake with {host} timed out", operation="tls") from e
        except (ssl.SSLError, OSError) as e:
            await _close_quietly(writer)
            raise DialError(f"TLS handshake with {host} failed: {e}", operation="tls") from e
        return reader, writer


def build_ssl_context(verify: bool = True) -> ssl.SSLContext:
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def build_dialer(server: ServerConfig) -> Dialer:
    """Select the transport variant for a server record."""
    timeout = server.connect_timeout or CONNECT_TIMEOUT_SECONDS
    dialer: Dialer = DirectDialer(timeout)
    if server.proxy_config is not None:
        proxy = server.proxy_config
        proxy_host, proxy_port = split_address(proxy.address, default_port=1080)
        dialer = Socks5Dialer(
            proxy_host,
            proxy_port,
            username=proxy.username,
            password=proxy.password,
            timeout=proxy.timeout or timeout,
            upstream=DirectDialer(proxy.timeout or timeout),
        )
    if server.use_tls:
        dialer = TLSDialer(dialer, build_ssl_context(server.tls_verify), timeout)
    return dialer


def default_port(use_tls: bool) -> int:
    return DEFAULT_TLS_PORT if use_tls else DEFAULT_PORT
