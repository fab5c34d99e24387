"""Page title lookup for links posted in channels."""

from __future__ import annotations

import logging
import re
from html.parser import HTMLParser

import aiohttp

from ..constants import HTTP_MAX_BODY_BYTES, HTTP_REQUEST_TIMEOUT_SECONDS, TITLE_MAX_LENGTH
from ..errors.handling import handle_api_error
from ..errors.internal import ParsingError

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; hackbot/0.1; +https://github.com/TheCreeper/HackBot)"

URL_PATTERN = re.compile(r"https?://[-A-Za-z0-9+&@#/%?=~_()|!:,.;]*")


def is_url(text: str) -> bool:
    return URL_PATTERN.search(text) is not None


def extract_url(text: str) -> str | None:
    match = URL_PATTERN.search(text)
    return match.group(0) if match else None


class _TitleParser(HTMLParser):
    """Collect the text of the first ``<title>`` element."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._in_title = False
        self._done = False
        self.parts: list[str] = []

    def handle_starttag(self, tag, attrs):
        if tag == "title" and not self._done:
            self._in_title = True

    def handle_endtag(self, tag):
        if tag == "title" and self._in_title:
            self._in_title = False
            self._done = True

    def handle_data(self, data):
        if self._in_title:
            self.parts.append(data)

    @property
    def title(self) -> str:
        return "".join(self.parts)


def extract_title(html: str) -> str:
    """Return the raw document title, or an empty string if there is none."""
    parser = _TitleParser()
    parser.feed(html)
    parser.close()
    return parser.title


def clean_title(raw: str, max_length: int = TITLE_MAX_LENGTH) -> str:
    """Collapse surrounding whitespace and reject multi-line titles.

    Raises:
        ParsingError: If the title contains a line break after stripping.
    """
    title = raw.strip()
    if "\n" in title or "\r" in title:
        raise ParsingError("page title contains line breaks")
    title = " ".join(title.split())
    if len(title) > max_length:
        title = title[: max_length - 3].rstrip() + "..."
    return title


class TitleCrawler:
    """Fetch a page and report its title.

    Only ``text/html`` responses are inspected and at most
    ``HTTP_MAX_BODY_BYTES`` of the body are read.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = HTTP_REQUEST_TIMEOUT_SECONDS,
    ):
        if not session:
            raise ValueError("aiohttp session required")
        self._session = session
        self.user_agent = user_agent
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def fetch_title(self, url: str) -> str:
        """Return the cleaned title of ``url`` (empty when the page has none).

        Raises:
            ParsingError: Non-HTML content or an unusable title.
            NetworkError: Connection failures and timeouts.
        """

        async def operation() -> str:
            async with self._session.get(
                url, headers={"User-Agent": self.user_agent}, timeout=self.timeout
            ) as resp:
                resp.raise_for_status()
                if resp.content_type != "text/html":
                    raise ParsingError(f"unsupported content type {resp.content_type!r}")
                body = b""
                async for chunk in resp.content.iter_chunked(8192):
                    body += chunk
                    if len(body) >= HTTP_MAX_BODY_BYTES:
                        break
                charset = resp.charset or "utf-8"
                logging.debug(
                    f"Crawled url={url} status={resp.status} bytes={len(body)} charset={charset}"
                )
                try:
                    return body.decode(charset, errors="replace")
                except LookupError:
                    return body.decode("utf-8", errors="replace")

        html = await handle_api_error(operation, f"title crawl {url}")
        return clean_title(extract_title(html))
