from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

import aiohttp

from ..logging_config import log_structured_error
from .internal import (
    ConnectionClosed,
    DialError,
    HandlerError,
    InternalError,
    NetworkError,
    ParseError,
    ParsingError,
    RateLimitError,
    SessionIOError,
    ValidationError,
)

T = TypeVar("T")


def classify_error(error: BaseException) -> str:
    """Return the aggregation category for an exception."""
    if isinstance(error, DialError):
        return "dial"
    if isinstance(error, ConnectionClosed):
        return "closed"
    if isinstance(error, SessionIOError):
        return "io"
    if isinstance(error, ParseError | ValidationError):
        return "protocol"
    if isinstance(error, HandlerError):
        return "handler"
    if isinstance(error, NetworkError | OSError | ConnectionError):
        return "network"
    if isinstance(error, RateLimitError):
        return "ratelimit"
    if isinstance(error, ParsingError):
        return "parsing"
    if isinstance(error, InternalError):
        return "internal"
    return "unknown"


def log_error(message: str, error: BaseException, context: dict | None = None) -> None:
    """Logs an error message with the associated exception details.

    Args:
        message: A descriptive message about the error context.
        error: The exception instance to be logged.
        context: Optional additional context data for debugging.
    """
    log_structured_error(
        error_type=classify_error(error),
        message=f"{message}: {str(error)}",
        exception=error,
        context=context,
    )


async def handle_api_error(operation: Callable[[], Awaitable[T]], context: str) -> T:
    """Run an HTTP operation and translate failures into internal errors.

    Args:
        operation: The async HTTP operation to execute.
        context: Descriptive context for the operation (e.g., "search query").

    Returns:
        The result of the operation if successful.

    Raises:
        NetworkError: Connectivity problems and timeouts.
        RateLimitError: HTTP 429 responses.
        ParsingError: Other 4xx responses and undecodable bodies.
        InternalError: Anything else.
    """
    try:
        return await operation()
    except InternalError:
        raise
    except (aiohttp.ClientError, ValueError, OSError, TimeoutError) as e:
        error_context: dict[str, object] = {"operation": context, "timestamp": time.time()}
        status = getattr(e, "status", None)
        if status is not None:
            error_context["http_status"] = status
        if hasattr(e, "request_info"):
            error_context["url"] = str(e.request_info.real_url)

        log_error(f"HTTP operation failed in {context}", e, context=error_context)

        if status == 429:
            raise RateLimitError(f"Rate limit exceeded in {context}") from e
        if status is not None and 400 <= status < 500:
            raise ParsingError(f"Client error in {context} (HTTP {status}): {e}") from e
        if isinstance(e, aiohttp.ContentTypeError | ValueError):
            raise ParsingError(f"Unexpected response body in {context}: {e}") from e
        if isinstance(e, aiohttp.ClientError | OSError | TimeoutError):
            raise NetworkError(f"Network issue in {context}: {e}") from e
        raise InternalError(f"Unexpected error in {context}: {e}") from e
