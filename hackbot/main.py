#!/usr/bin/env python3
"""
Main entry point for hackbot
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .bot.manager import run_clients
from .config import ConfigLoader, print_config_summary
from .constants import DEFAULT_CONFIG_FILE
from .errors.handling import log_error
from .logging_config import LoggerConfigurator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hackbot", description="Multi-server IRC bot with SOCKS5 and TLS support"
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_FILE,
        help="path to the JSON configuration file (default: %(default)s, env HACKBOT_CONFIG)",
    )
    parser.add_argument(
        "--health-check",
        action="store_true",
        help="validate the configuration and exit",
    )
    parser.add_argument(
        "--no-watch",
        action="store_true",
        help="do not reload the configuration file when it changes",
    )
    return parser


def health_check(config_file: str) -> int:
    """Validate ``config_file``; returns the process exit status."""
    logging.info("🏥 Health check mode")
    config = ConfigLoader(config_file).load()
    if config is None or not config.servers:
        logging.error("❌ Health check failed")
        return 1
    logging.info(f"✅ Health check passed - {len(config.servers)} server(s) configured")
    return 0


async def main(config_file: str, watch: bool = True) -> None:
    """Load the configuration and run every autoconnect server.

    Raises:
        SystemExit: If the configuration is unusable or a fatal error occurs.
    """
    try:
        logging.info("🚀 Starting hackbot")
        config = ConfigLoader(config_file).get_configuration()
        print_config_summary(config)
        await run_clients(config, config_file if watch else None)
    except asyncio.CancelledError:
        raise
    except KeyboardInterrupt:
        pass
    except Exception as e:
        log_error("Main application error", e)
        sys.exit(1)
    finally:
        logging.info("✅ Application shutdown complete")


def run(argv: list[str] | None = None) -> None:
    """Synchronous entry point for the ``hackbot`` console script."""
    args = build_parser().parse_args(argv)
    LoggerConfigurator().configure()
    if args.health_check:
        sys.exit(health_check(args.config))
    try:
        asyncio.run(main(args.config, watch=not args.no_watch))
    except KeyboardInterrupt:
        sys.exit(0)
    except asyncio.CancelledError:
        sys.exit(0)
    except Exception as e:
        log_error("Top-level error", e)
        sys.exit(1)


if __name__ == "__main__":
    run()
