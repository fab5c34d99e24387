"""Chat behaviour of the bot, expressed as a per-target handler table."""

from __future__ import annotations

import logging
import time

from ..config.model import ServerConfig
from ..errors.handling import log_error
from ..errors.internal import InternalError
from ..irc.dispatcher import HandlerTable
from ..irc.models import Message
from ..irc.session import Session
from ..logs.logger import logger
from ..services.crawler import TitleCrawler, extract_url
from ..services.search import SearchClient
from ..services.seen import SeenStore

CTCP_DELIM = "\x01"
SEARCH_COMMAND = "!ddg"
SEEN_COMMAND = "!seen"
NO_CRAWL_PREFIX = "dontcrawl"
REPLY_MAX_BYTES = 400  # leaves room for the PRIVMSG prefix within one wire line


def one_line(text: str) -> str:
    """Collapse whitespace runs (line breaks included) and clip to one reply."""
    clipped = " ".join(text.split()).encode("utf-8")[:REPLY_MAX_BYTES]
    return clipped.decode("utf-8", errors="ignore")


def format_age(seconds: float) -> str:
    """Render a duration as its two most significant units, e.g. ``2h 5m``."""
    seconds = max(0, int(seconds))
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)
    parts = [f"{v}{u}" for v, u in ((days, "d"), (hours, "h"), (minutes, "m"), (secs, "s")) if v]
    return " ".join(parts[:2]) or "0s"


class BotHandlers:
    """Callbacks for one server: channel joins, canned replies and commands.

    Collaborator failures (search, crawl, persistence) are logged and
    swallowed so a flaky website never costs the IRC connection; failures to
    send on the session propagate and terminate it.
    """

    def __init__(
        self,
        server: ServerConfig,
        *,
        search: SearchClient | None = None,
        crawler: TitleCrawler | None = None,
        seen: SeenStore | None = None,
        clock=time.time,
    ) -> None:
        self.server = server
        self.search = search
        self.crawler = crawler
        self.seen = seen
        self._clock = clock

    def table(self) -> HandlerTable:
        return HandlerTable(
            welcome=self.on_welcome,
            join=self.on_join,
            privmsg=self.on_privmsg,
            unknown=self.on_unknown,
        )

    # ------------------------------------------------------------------ #
    # Lifecycle events
    # ------------------------------------------------------------------ #
    async def on_welcome(self, message: Message, session: Session) -> None:
        logger.log_event("bot", "welcome", target=self.server.name, text=message.text)
        if self.server.channels:
            await session.join(*self.server.channels)

    async def on_join(self, message: Message, session: Session) -> None:
        logger.log_event(
            "bot", "join", target=self.server.name, channel=message.target, nick=message.nick
        )

    async def on_unknown(self, message: Message, session: Session) -> None:
        logger.log_event(
            "bot",
            "unhandled",
            level=logging.DEBUG,
            target=self.server.name,
            command=message.command,
            text=message.text,
        )

    # ------------------------------------------------------------------ #
    # Messages
    # ------------------------------------------------------------------ #
    async def on_privmsg(self, message: Message, session: Session) -> None:
        sender = message.nick or ""
        text = message.text
        reply_to = self.reply_target(message, session)
        logger.log_event(
            "bot",
            "privmsg",
            level=logging.DEBUG,
            target=self.server.name,
            channel=message.target,
            nick=sender,
            text=text,
        )

        if text.startswith(CTCP_DELIM):
            await self._handle_ctcp(sender, text, session)
            return

        await self._record_seen(sender, message.target or "")

        response = self.server.responses.get(text)
        if response is not None:
            await session.privmsg(reply_to, one_line(response))
            return

        if text == SEEN_COMMAND or text.startswith(SEEN_COMMAND + " "):
            await self._handle_seen(sender, text[len(SEEN_COMMAND):].strip(), reply_to, session)
            return

        if text.startswith(SEARCH_COMMAND):
            await self._handle_search(sender, text[len(SEARCH_COMMAND):].strip(), reply_to, session)

        if text.startswith(NO_CRAWL_PREFIX):
            return
        url = extract_url(text)
        if url:
            await self._handle_url(url, reply_to, session)

    def reply_target(self, message: Message, session: Session) -> str:
        """Channel messages are answered in the channel, private ones to the sender."""
        target = message.target or ""
        if message.nick and target.lower() == session.nick.lower():
            return message.nick
        return target

    async def _handle_ctcp(self, sender: str, text: str, session: Session) -> None:
        request = text.strip(CTCP_DELIM).split(" ", 1)[0].upper()
        if request == "VERSION" and self.server.ctcp_version and sender:
            await session.notice(
                sender, f"{CTCP_DELIM}VERSION {one_line(self.server.ctcp_version)}{CTCP_DELIM}"
            )

    async def _handle_seen(self, sender: str, nick: str, reply_to: str, session: Session) -> None:
        if not nick:
            await session.privmsg(reply_to, f"{sender}: No Nick Specified")
            return
        entry = self.seen.get(nick) if self.seen else None
        if not entry:
            await session.privmsg(reply_to, one_line(f"{sender}: I have not seen {nick}"))
            return
        age = format_age(self._clock() - float(entry.get("timestamp", 0)))
        where = f" in {entry['channel']}" if entry.get("channel") else ""
        seen_nick = entry.get("nick", nick)
        await session.privmsg(
            reply_to, one_line(f"{sender}: {seen_nick} was last seen{where} {age} ago")
        )

    async def _handle_search(self, sender: str, query: str, reply_to: str, session: Session) -> None:
        if not query:
            await session.privmsg(reply_to, f"{sender}: No Query Specified")
            return
        answer = ""
        if self.search is not None:
            try:
                _type, answer = await self.search.feeling_lucky(query)
            except InternalError as e:
                log_error("Search failed", e, context={"target": self.server.name, "query": query})
        await session.privmsg(reply_to, one_line(f"{sender}: {answer.strip() or 'No Results'}"))

    async def _handle_url(self, url: str, reply_to: str, session: Session) -> None:
        if self.crawler is None:
            return
        try:
            title = await self.crawler.fetch_title(url)
        except InternalError as e:
            logger.log_event(
                "bot",
                "crawl_failed",
                level=logging.WARNING,
                target=self.server.name,
                url=url,
                error=str(e),
            )
            return
        if len(title) > 1:
            await session.privmsg(reply_to, one_line(f"^ {title}"))

    async def _record_seen(self, nick: str, channel: str) -> None:
        if self.seen is None or not nick:
            return
        if not channel.startswith(("#", "&")):
            channel = ""
        try:
            await self.seen.record(
                nick, channel=channel, target=self.server.name, timestamp=self._clock()
            )
        except OSError as e:
            log_error("Seen store update failed", e, context={"target": self.server.name})
