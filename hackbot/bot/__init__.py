"""Bot package: chat handlers and the multi-server client manager."""

from .handlers import BotHandlers  # noqa: F401
from .manager import ClientManager, run_clients  # noqa: F401
from .signal_handler import SignalHandler  # noqa: F401

__all__ = ["BotHandlers", "ClientManager", "SignalHandler", "run_clients"]
