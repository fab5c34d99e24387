"""
Configuration constants for hackbot

This module contains the tunables used throughout the application.
Each constant can be overridden by setting an environment variable with the same name.
"""

import os


def _get_env_int(name: str, default: int) -> int:
    """Retrieve an integer value from an environment variable.

    Attempts to parse the environment variable as an integer. If the variable
    is not set or cannot be parsed, prints a warning and returns the default value.

    Args:
        name: The name of the environment variable to read.
        default: The default integer value to return if parsing fails.

    Returns:
        The parsed integer value from the environment, or the default if unavailable.
    """
    value = os.getenv(name)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            print(
                f"Warning: Invalid integer value for {name}='{value}', using default {default}"
            )
    return default


def _get_env_float(name: str, default: float) -> float:
    """Retrieve a float value from an environment variable.

    Attempts to parse the environment variable as a float. If the variable
    is not set or cannot be parsed, prints a warning and returns the default value.

    Args:
        name: The name of the environment variable to read.
        default: The default float value to return if parsing fails.

    Returns:
        The parsed float value from the environment, or the default if unavailable.
    """
    value = os.getenv(name)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            print(
                f"Warning: Invalid float value for {name}='{value}', using default {default}"
            )
    return default


# Configuration file location (overridden by --config)
DEFAULT_CONFIG_FILE = os.getenv("HACKBOT_CONFIG", "./config.json")

# Transport constants
CONNECT_TIMEOUT_SECONDS = _get_env_float(
    "CONNECT_TIMEOUT_SECONDS", 30.0
)  # Bound on dial + TLS/SOCKS5 handshake when the target sets no timeout
DEFAULT_PORT = _get_env_int("DEFAULT_PORT", 6667)  # Plain-text IRC port
DEFAULT_TLS_PORT = _get_env_int("DEFAULT_TLS_PORT", 6697)  # TLS IRC port
READ_LINE_LIMIT = _get_env_int(
    "READ_LINE_LIMIT", 8192
)  # StreamReader buffer limit; longer lines are a decode failure
MAX_LINE_LENGTH = 512  # RFC 1459 limit for one message including CRLF

# Reconnect constants
DEFAULT_RECONNECT_INTERVAL_SECONDS = _get_env_int(
    "DEFAULT_RECONNECT_INTERVAL_SECONDS", 10
)  # Used when neither the server nor the globals set an interval
MAX_RECONNECT_DELAY_SECONDS = _get_env_float(
    "MAX_RECONNECT_DELAY_SECONDS", 600.0
)  # Upper bound on exponential reconnect back-off

# Manager constants
MANAGER_LOOP_SLEEP_SECONDS = _get_env_float(
    "MANAGER_LOOP_SLEEP_SECONDS", 1.0
)  # Tick of the manager's shutdown/reload watch loop
SHUTDOWN_GRACE_SECONDS = _get_env_float(
    "SHUTDOWN_GRACE_SECONDS", 5.0
)  # Time allowed for supervisors to unwind after cancellation

# Network/HTTP constants
HTTP_REQUEST_TIMEOUT_SECONDS = _get_env_int(
    "HTTP_REQUEST_TIMEOUT_SECONDS", 30
)  # Default HTTP request timeout for crawler and search
HTTP_MAX_BODY_BYTES = _get_env_int(
    "HTTP_MAX_BODY_BYTES", 1024 * 1024
)  # Crawler stops reading a page after this many bytes
TITLE_MAX_LENGTH = _get_env_int(
    "TITLE_MAX_LENGTH", 300
)  # Announced page titles are truncated to this many characters

# Persistence constants
SEEN_STORE_FILE = os.getenv("SEEN_STORE_FILE", "./seen.json")
