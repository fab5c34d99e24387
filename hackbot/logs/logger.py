"""Structured event logger used by the IRC core and the bot handlers."""

from __future__ import annotations

import logging
import os

from . import event_catalog

PREFIX_WIDTH = 24
EVENT_NAME_WIDTH = 32
# Never echoed, even in debug output
SECRET_KEYS = frozenset({"password", "oper_password", "proxy_password"})


class BotLogger:
    """Emit ``domain_action`` events as ``[target#channel] text`` lines.

    With ``DEBUG`` enabled the event name and the remaining keyword context
    are appended. Records go to the ``hackbot`` stdlib logger and propagate
    to the root handler installed by
    :class:`hackbot.logging_config.LoggerConfigurator`.
    """

    def __init__(self, name: str = "hackbot") -> None:
        self.logger = logging.getLogger(name)

    def log_event(
        self,
        domain: str,
        action: str,
        level: int = logging.INFO,
        human: str | None = None,
        *,
        exc_info: bool = False,
        **context: object,
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        text = human or event_catalog.render(domain, action, context)
        if text is None:
            text = f"{domain.replace('_', ' ')}: {action.replace('_', ' ')}"
        target = context.pop("target", None)
        channel = context.pop("channel", None)
        line = f"{self._prefix(target, channel)} {text}"
        if self._is_debug_enabled():
            event_name = f"{domain}_{action}".lower()
            line = f"{event_name:<{EVENT_NAME_WIDTH}} {line}"
            details = ", ".join(
                f"{k}={'***' if k in SECRET_KEYS else v}" for k, v in context.items()
            )
            if details:
                line = f"{line} ({details})"
        self.logger.log(level, line, exc_info=exc_info)

    @staticmethod
    def _is_debug_enabled() -> bool:
        return os.environ.get("DEBUG", "false").lower() in ("true", "1", "yes")

    @staticmethod
    def _prefix(target: object, channel: object) -> str:
        label = target if isinstance(target, str) and target else "system"
        if isinstance(channel, str) and channel:
            label = f"{label}{channel}"
        return f"[{label.ljust(PREFIX_WIDTH)[:PREFIX_WIDTH]}]"


logger = BotLogger()
