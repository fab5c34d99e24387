"""Human-readable text for structured events, read from ``event_templates.json``.

The JSON file maps ``domain -> action -> template``; templates use
``str.format`` placeholders filled from the event's keyword context.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

TEMPLATES_PATH = Path(__file__).with_name("event_templates.json")

EVENT_TEMPLATES: dict[tuple[str, str], str] = {}


def load_event_templates(path: Path = TEMPLATES_PATH) -> dict[tuple[str, str], str]:
    """Flatten the nested catalog into ``(domain, action)`` keys.

    A missing or malformed file yields an empty catalog; events then fall
    back to text derived from their names.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logging.warning(f"⚠️ Event templates unavailable path={path} error={e}")
        return {}
    if not isinstance(raw, dict):
        return {}
    return {
        (domain, action): template
        for domain, actions in raw.items()
        if isinstance(actions, dict)
        for action, template in actions.items()
        if isinstance(template, str)
    }


def reload_event_templates() -> None:
    global EVENT_TEMPLATES  # noqa: PLW0603
    EVENT_TEMPLATES = load_event_templates()


def render(domain: str, action: str, context: dict[str, object]) -> str | None:
    """Fill the template for ``(domain, action)``; None when there is none.

    A template whose placeholders are not all supplied is returned unfilled.
    """
    template = EVENT_TEMPLATES.get((domain, action))
    if template is None:
        return None
    try:
        return template.format(**context)
    except (KeyError, IndexError, ValueError):
        return template


reload_event_templates()

__all__ = ["EVENT_TEMPLATES", "load_event_templates", "reload_event_templates", "render"]
