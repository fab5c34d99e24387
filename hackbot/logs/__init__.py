"""Structured event logging: the template catalog and ``BotLogger``."""

from .event_catalog import EVENT_TEMPLATES, reload_event_templates, render  # noqa: F401
from .logger import BotLogger, logger  # noqa: F401

__all__ = ["BotLogger", "logger", "EVENT_TEMPLATES", "reload_event_templates", "render"]
