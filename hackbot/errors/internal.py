"""Centralized internal error hierarchy.

These exceptions give the IRC core and its collaborators semantic categories
that the reconnect supervisor and the handlers can act on. Raw socket, SSL
and aiohttp errors are wrapped into one of these at the boundary where they
occur; the original exception is kept as ``__cause__``.

Classes:
  InternalError        – Base for all internal errors.
  IRCError             – Base for connection lifecycle failures.
  ParseError           – Malformed wire line received from the peer.
  ValidationError      – Outbound field contains forbidden characters.
  DialError            – Connect, TLS handshake or proxy negotiation failed.
  SessionIOError       – Read/write failure on an established connection.
  ConnectionClosed     – The peer closed the stream cleanly.
  HandlerError         – A dispatched callback raised.
  NetworkError         – Transient HTTP/network issues in collaborators.
  ParsingError         – Collaborator response parsing issues.
  RateLimitError       – Explicit rate limiting signalled by a remote API.
"""

from __future__ import annotations

from collections.abc import Mapping


class InternalError(Exception):
    """Base class for all internal application errors with metadata support.

    Attributes:
        data: Dictionary containing arbitrary structured context data.

    Args:
        message: Descriptive error message.
        data: Optional mapping of additional context data.
    """

    data: dict[str, object]

    def __init__(
        self, message: str, *, data: Mapping[str, object] | None = None
    ) -> None:
        super().__init__(message)
        # Copy into a plain dict to avoid unexpected mutations from caller.
        self.data = dict(data) if data else {}


class IRCError(InternalError):
    """Base class for failures inside one session's lifecycle.

    Args:
        message: Descriptive error message.
        operation: The operation that failed (e.g. 'dial', 'register', 'read').
        data: Optional mapping of additional context data.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        data: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(message, data=data)
        self.operation = operation


class ParseError(IRCError):
    """Raised when a wire line cannot be decoded into a message."""


class ValidationError(IRCError):
    """Raised when an outbound field would break line framing.

    Nothing is written to the transport when this is raised.
    """


class DialError(IRCError):
    """Raised when the transport cannot be established.

    Covers TCP connect failures and timeouts, TLS handshake failures and
    SOCKS5 negotiation failures.
    """


class SessionIOError(IRCError):
    """Raised when reading from or writing to an established connection fails."""


class ConnectionClosed(SessionIOError):
    """Raised when the peer ends the stream; a graceful close."""


class HandlerError(IRCError):
    """Raised when a dispatched callback fails; the original is ``__cause__``."""


class NetworkError(InternalError):
    """Exception raised for network or transport errors in HTTP collaborators."""


class ParsingError(InternalError):
    """Exception raised for response parsing or content-type mismatches."""


class RateLimitError(InternalError):
    """Exception raised when a remote API signals rate limiting."""

    def __init__(self, message: str = "Rate limited") -> None:
        super().__init__(message)


__all__ = [
    "InternalError",
    "IRCError",
    "ParseError",
    "ValidationError",
    "DialError",
    "SessionIOError",
    "ConnectionClosed",
    "HandlerError",
    "NetworkError",
    "ParsingError",
    "RateLimitError",
]
