"""IRC subsystem package.

Contains the line codec, transport dialers, the session state machine, the
message dispatcher and the reconnect supervisor.
"""

from .dispatcher import Category, HandlerTable, IRCDispatcher, categorize  # noqa: F401
from .models import Command, Message, SessionState  # noqa: F401
from .parser import encode_message, parse_message  # noqa: F401
from .session import Session  # noqa: F401
from .supervisor import ReconnectSupervisor, create_session  # noqa: F401
from .transport import (  # noqa: F401
    DirectDialer,
    Socks5Dialer,
    TLSDialer,
    build_dialer,
    split_address,
)

__all__ = [
    "Category",
    "Command",
    "DirectDialer",
    "HandlerTable",
    "IRCDispatcher",
    "Message",
    "ReconnectSupervisor",
    "Session",
    "SessionState",
    "Socks5Dialer",
    "TLSDialer",
    "build_dialer",
    "categorize",
    "create_session",
    "encode_message",
    "parse_message",
    "split_address",
]
