"""Configuration package exports."""

from .loader import ConfigLoader, parse_config, print_config_summary  # noqa: F401
from .model import BotConfig, GlobalsConfig, ProxyConfig, ServerConfig  # noqa: F401
from .repository import ConfigRepository, atomic_write_json  # noqa: F401

__all__ = [
    "BotConfig",
    "ConfigLoader",
    "ConfigRepository",
    "GlobalsConfig",
    "ProxyConfig",
    "ServerConfig",
    "atomic_write_json",
    "parse_config",
    "print_config_summary",
]
