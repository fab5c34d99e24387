"""Configuration loading utilities."""

from __future__ import annotations

import logging
import sys
from typing import Any

from pydantic import ValidationError

from ..constants import DEFAULT_CONFIG_FILE
from .model import BotConfig
from .repository import ConfigRepository


def parse_config(raw: dict[str, Any]) -> BotConfig:
    """Validate a raw mapping; raises ``pydantic.ValidationError`` on bad input."""
    return BotConfig.from_dict(raw)


def describe_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "config"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


class ConfigLoader:
    """Handles loading the bot configuration from a JSON file."""

    def __init__(self, config_file: str | None = None) -> None:
        self.config_file = config_file or DEFAULT_CONFIG_FILE

    def load_raw(self) -> dict[str, Any]:
        return ConfigRepository(self.config_file).load_raw()

    def load(self) -> BotConfig | None:
        """Load and validate the configuration, or None if it is missing or invalid."""
        raw = self.load_raw()
        if not raw:
            logging.error(f"📁 No configuration found at {self.config_file}")
            return None
        try:
            return parse_config(raw)
        except ValidationError as e:
            logging.error(f"⚠️ Invalid configuration: {describe_validation_error(e)}")
            return None

    def get_configuration(self) -> BotConfig:
        """Load and validate the configuration file.

        Returns:
            The validated configuration with every server resolved.

        Raises:
            SystemExit: If the file is missing, invalid or defines no servers.
        """
        config = self.load()
        if config is None:
            sys.exit(1)
        if not config.servers:
            logging.error("⚠️ No servers configured")
            sys.exit(1)
        logging.info(
            f"✅ Configuration loaded servers={len(config.servers)} "
            f"autoconnect={len(config.autoconnect_servers)}"
        )
        return config


def print_config_summary(config: BotConfig) -> None:
    """Log one line per configured server."""
    for server in config.servers:
        via = f" via {server.proxy}" if server.proxy else ""
        tls = " tls" if server.use_tls else ""
        state = "" if server.autoconnect else " (manual)"
        logging.info(
            f"🖥️ {server.name}: {server.nick}@{server.address}{tls}{via} "
            f"channels={','.join(server.channels) or '-'}{state}"
        )
