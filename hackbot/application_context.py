"""Central application context for shared async resources."""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from .constants import SEEN_STORE_FILE
from .services.crawler import TitleCrawler
from .services.search import SearchClient
from .services.seen import SeenStore


class ApplicationContext:
    """Holds shared async resources for the application lifecycle."""

    session: aiohttp.ClientSession | None
    search: SearchClient | None
    crawler: TitleCrawler | None
    seen: SeenStore | None
    _started: bool
    _lock: asyncio.Lock

    def __init__(self) -> None:
        self.session = None
        self.search = None
        self.crawler = None
        self.seen = None
        self._started = False
        self._lock = asyncio.Lock()

    # ------------------------- Construction ------------------------- #
    @classmethod
    async def create(cls, seen_file: str | None = None) -> ApplicationContext:
        """Create a context with an HTTP session and the clients built on it.

        Args:
            seen_file: Path of the last-seen store; defaults to ``SEEN_STORE_FILE``.
        """
        ctx = cls()
        logging.debug("🧪 Creating application context")
        ctx.session = aiohttp.ClientSession()
        logging.debug("🔗 HTTP session created")
        ctx.search = SearchClient(ctx.session)
        ctx.crawler = TitleCrawler(ctx.session)
        ctx.seen = SeenStore(seen_file or SEEN_STORE_FILE)
        return ctx

    # --------------------------- Lifecycle -------------------------- #
    async def start(self) -> None:
        """Load persisted state; idempotent."""
        async with self._lock:
            if self._started:
                return
            if self.seen:
                await asyncio.to_thread(self.seen.load)
            self._started = True
            logging.debug("🚀 Application context started")

    async def shutdown(self) -> None:
        """Close the HTTP session and drop the clients that use it."""
        async with self._lock:
            logging.info("🔻 Application context shutdown initiated")
            await self._close_http_session()
            self.search = None
            self.crawler = None
            self._started = False
            logging.info("✅ Application context shutdown complete")

    async def _close_http_session(self) -> None:
        if not self.session:
            return
        try:
            await self.session.close()
        except (aiohttp.ClientError, OSError, ValueError) as e:
            logging.error(f"💥 Error closing HTTP session: {str(e)}")
        finally:
            self.session = None
