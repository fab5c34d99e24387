"""IRC line codec: wire text <-> :class:`Message`."""

from __future__ import annotations

import re

from ..constants import MAX_LINE_LENGTH
from ..errors.internal import ParseError, ValidationError
from .models import Message

LINE_TERMINATOR = "\r\n"
TRAILING_MARKER = ":"

_WHITESPACE = re.compile(r"[ \t]+")
_FORBIDDEN = re.compile(r"[\r\n\0]")


def _next_token(text: str) -> tuple[str, str]:
    parts = _WHITESPACE.split(text, maxsplit=1)
    return parts[0], (parts[1] if len(parts) > 1 else "")


def parse_message(line: str) -> Message:
    """Decode one line (with or without its CRLF) into a :class:`Message`.

    Raises:
        ParseError: If the line is empty or carries no command token.
    """
    rest = line.rstrip(LINE_TERMINATOR)
    if not rest.strip():
        raise ParseError("empty line", operation="parse")

    rest = rest.lstrip(" \t")
    # IRCv3 message tags are never requested; drop them if a server sends some.
    if rest.startswith("@"):
        _, rest = _next_token(rest)

    sender: str | None = None
    if rest.startswith(TRAILING_MARKER):
        token, rest = _next_token(rest)
        sender = token[1:]
        if not sender:
            raise ParseError(f"empty sender in {line!r}", operation="parse")

    command, rest = _next_token(rest)
    if not command or command.startswith(TRAILING_MARKER):
        raise ParseError(f"missing command in {line!r}", operation="parse")

    params: list[str] = []
    trailing: str | None = None
    while rest:
        if rest.startswith(TRAILING_MARKER):
            trailing = rest[1:]
            break
        token, rest = _next_token(rest)
        if token:
            params.append(token)

    return Message(command=command, params=tuple(params), trailing=trailing, sender=sender)


def validate_field(value: str, name: str = "field") -> str:
    """Reject values that would let a caller inject extra protocol lines."""
    if _FORBIDDEN.search(value):
        raise ValidationError(
            f"{name} contains a line break or NUL: {value!r}", operation="encode"
        )
    return value


def _validate_token(value: str, name: str) -> None:
    validate_field(value, name)
    if not value:
        raise ValidationError(f"{name} is empty", operation="encode")
    if _WHITESPACE.search(value):
        raise ValidationError(f"{name} contains whitespace: {value!r}", operation="encode")
    if value.startswith(TRAILING_MARKER):
        raise ValidationError(
            f"{name} starts with {TRAILING_MARKER!r}: {value!r}", operation="encode"
        )


def encode_message(message: Message) -> str:
    """Encode a :class:`Message` into one CRLF-terminated wire line.

    Raises:
        ValidationError: If any field contains CR, LF or NUL, if a plain field is
            empty or contains whitespace, or if the line is longer than the
            protocol allows.
    """
    parts: list[str] = []
    if message.sender is not None:
        _validate_token(message.sender, "sender")
        parts.append(f"{TRAILING_MARKER}{message.sender}")
    _validate_token(message.command, "command")
    parts.append(message.command)
    for index, param in enumerate(message.params):
        _validate_token(param, f"param {index}")
        parts.append(param)
    if message.trailing is not None:
        validate_field(message.trailing, "trailing")
        parts.append(f"{TRAILING_MARKER}{message.trailing}")

    line = " ".join(parts) + LINE_TERMINATOR
    if len(line.encode("utf-8")) > MAX_LINE_LENGTH:
        raise ValidationError(
            f"line exceeds {MAX_LINE_LENGTH} bytes ({message.command})",
            operation="encode",
        )
    return line
