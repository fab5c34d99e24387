"""Thin asynchronous DuckDuckGo instant answer client.

Documentation on the API: https://duckduckgo.com/api
"""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from ..constants import HTTP_REQUEST_TIMEOUT_SECONDS
from ..errors.handling import handle_api_error
from ..errors.internal import ParsingError

# Result types reported in the ``Type`` field
ARTICLE = "A"
DISAMBIGUATION = "D"
CATEGORY = "C"
NAME = "N"
EXCLUSIVE = "E"


class SearchClient:
    """Asynchronous client for the DuckDuckGo instant answer API.

    Attributes:
        BASE_URL (str): The API endpoint.
    """

    BASE_URL = "https://api.duckduckgo.com/"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        base_url: str | None = None,
        user_agent: str | None = None,
        no_html: bool = True,
        skip_disambiguation: bool = False,
        timeout: float = HTTP_REQUEST_TIMEOUT_SECONDS,
    ):
        if not session:
            raise ValueError("aiohttp session required")
        self._session = session
        self.base_url = base_url or self.BASE_URL
        self.user_agent = user_agent
        self.no_html = no_html
        self.skip_disambiguation = skip_disambiguation
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def query(self, text: str) -> dict[str, Any]:
        """Run one query and return the decoded JSON document.

        Raises:
            NetworkError: Connectivity problems and timeouts.
            ParsingError: Error responses and bodies that are not a JSON object.
            RateLimitError: HTTP 429 responses.
        """
        params = {
            "q": text,
            "format": "json",
            "no_html": int(self.no_html),
            "skip_disambig": int(self.skip_disambiguation),
        }
        headers = {"User-Agent": self.user_agent} if self.user_agent else None

        async def operation() -> dict[str, Any]:
            async with self._session.get(
                self.base_url, params=params, headers=headers, timeout=self.timeout
            ) as resp:
                logging.debug(f"Search API response: status={resp.status} query={text!r}")
                resp.raise_for_status()
                # the API answers with application/x-javascript
                data = await resp.json(content_type=None)
                if not isinstance(data, dict):
                    raise ParsingError("search response is not a JSON object")
                return data

        return await handle_api_error(operation, "search query")

    async def feeling_lucky(self, text: str) -> tuple[str, str]:
        """Return ``(type, text)`` of the single best answer for ``text``.

        Disambiguation results yield the first related topic that has text,
        exclusive results yield the instant answer; anything else yields an
        empty text.
        """
        result = await self.query(text)
        result_type = str(result.get("Type") or "")
        if result_type == DISAMBIGUATION:
            for topic in result.get("RelatedTopics") or []:
                if isinstance(topic, dict) and topic.get("Text"):
                    return result_type, str(topic["Text"])
        if result_type == EXCLUSIVE:
            return result_type, str(result.get("Answer") or "")
        return result_type, ""
