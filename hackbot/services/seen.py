"""Last-seen bookkeeping per nick, persisted as a JSON file."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from pathlib import Path

from ..config.repository import atomic_write_json


class SeenStore:
    """Maps lower-cased nicks to the time and place they last spoke.

    Entries are kept in memory and flushed to disk with an atomic write after
    every update. A missing or unreadable file starts an empty store.
    """

    def __init__(self, path: str | os.PathLike[str]):
        self.path = Path(path)
        self._entries: dict[str, dict[str, object]] = {}
        self._lock = asyncio.Lock()
        self._loaded = False

    def load(self) -> None:
        self._loaded = True
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return
        except (OSError, ValueError) as e:
            logging.warning(f"⚠️ Seen store unreadable path={self.path} error={e}")
            return
        if isinstance(data, dict):
            self._entries = {
                str(k).lower(): v for k, v in data.items() if isinstance(v, dict)
            }

    async def record(
        self, nick: str, *, channel: str = "", target: str = "", timestamp: float | None = None
    ) -> None:
        """Remember that ``nick`` spoke now (or at ``timestamp``)."""
        if not nick:
            return
        if not self._loaded:
            self.load()
        entry = {
            "nick": nick,
            "timestamp": time.time() if timestamp is None else timestamp,
            "channel": channel,
            "target": target,
        }
        async with self._lock:
            self._entries[nick.lower()] = entry
            snapshot = dict(self._entries)
            await asyncio.to_thread(self._write, snapshot)

    def get(self, nick: str) -> dict[str, object] | None:
        if not self._loaded:
            self.load()
        return self._entries.get(nick.lower())

    def _write(self, snapshot: dict[str, dict[str, object]]) -> None:
        if self.path.parent and not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_json(self.path, snapshot)
