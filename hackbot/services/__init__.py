"""HTTP and persistence services used by the bot handlers."""

from .crawler import TitleCrawler, extract_url, is_url  # noqa: F401
from .search import SearchClient  # noqa: F401
from .seen import SeenStore  # noqa: F401

__all__ = ["SearchClient", "SeenStore", "TitleCrawler", "extract_url", "is_url"]
