"""Error hierarchy and error logging helpers."""

from .internal import (  # noqa: F401
    ConnectionClosed,
    DialError,
    HandlerError,
    InternalError,
    IRCError,
    NetworkError,
    ParseError,
    ParsingError,
    RateLimitError,
    SessionIOError,
    ValidationError,
)
