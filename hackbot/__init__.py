"""hackbot - a long-running IRC client with pluggable transports."""

__version__ = "0.1.0"
