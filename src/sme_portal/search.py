"""Search capability consulted when the discovery model asks to search the web.

Two implementations are provided:

- :class:`AcknowledgingSearch` performs no I/O and answers every query with a
  fixed acknowledgment, letting the model complete the conversation from its
  own knowledge.
- :class:`FirecrawlSearch` runs the query through the Firecrawl search API and
  returns the top results as a compact text listing.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Optional

from firecrawl import Firecrawl

from .config import Config, ConfigError, config as default_config
from .logging_utils import get_logger

logger = get_logger(__name__)

ACKNOWLEDGMENT = "Search results retrieved."


class SearchError(Exception):
    """Raised when a search backend fails to answer a query."""

    pass


class SearchCapability(ABC):
    """Executes a search query requested by the model."""

    name: str = "search"

    @abstractmethod
    async def search(self, query: str) -> str:
        """Return the tool-result text for ``query``.

        Raises:
            SearchError: If the backend cannot answer.
        """


class AcknowledgingSearch(SearchCapability):
    """Search capability that acknowledges the request without searching."""

    name = "acknowledge"

    def __init__(self, acknowledgment: str = ACKNOWLEDGMENT):
        self.acknowledgment = acknowledgment

    async def search(self, query: str) -> str:
        logger.debug("Acknowledging search request without executing it: %s", query)
        return self.acknowledgment


def _field(item: Any, name: str) -> Optional[str]:
    if isinstance(item, dict):
        value = item.get(name)
        if value is None and isinstance(item.get("metadata"), dict):
            value = item["metadata"].get(name)
        return value
    value = getattr(item, name, None)
    if value is None:
        value = getattr(getattr(item, "metadata", None), name, None)
    return value


class FirecrawlSearch(SearchCapability):
    """Search capability backed by the Firecrawl search endpoint."""

    name = "firecrawl"

    def __init__(
        self,
        api_key: Optional[str] = None,
        limit: int = 5,
        client: Optional[Firecrawl] = None,
    ):
        if client is None:
            api_key = api_key or default_config.FIRECRAWL_API_KEY
            if not api_key:
                raise ConfigError(
                    "Firecrawl API key required. Set FIRECRAWL_API_KEY environment "
                    "variable or pass api_key parameter."
                )
            client = Firecrawl(api_key=api_key)
        self._client = client
        self.limit = limit

    @staticmethod
    def _result_items(response: Any) -> list[Any]:
        if response is None:
            return []
        if isinstance(response, dict):
            return response.get("web") or response.get("data") or []
        return getattr(response, "web", None) or getattr(response, "data", None) or []

    def format_results(self, query: str, response: Any) -> str:
        """Render search results as a numbered text list for the model."""
        items = self._result_items(response)[: self.limit]
        if not items:
            return f"No results found for: {query}"

        lines = [f"Results for: {query}"]
        for index, item in enumerate(items, start=1):
            title = _field(item, "title") or "Untitled"
            url = _field(item, "url") or _field(item, "sourceURL") or ""
            description = _field(item, "description") or ""
            lines.append(f"{index}. {title} - {url}")
            if description:
                lines.append(f"   {description}")
        return "\n".join(lines)

    async def search(self, query: str) -> str:
        logger.info("Running Firecrawl search: %s", query)
        loop = asyncio.get_running_loop()

        try:
            response = await loop.run_in_executor(
                None,
                lambda: self._client.search(query, limit=self.limit),
            )
        except Exception as e:
            logger.error("Firecrawl search failed for %r: %s", query, e)
            raise SearchError(f"Search failed for {query!r}: {e}") from e

        return self.format_results(query, response)


def create_search_capability(settings: Optional[Config] = None) -> SearchCapability:
    """Build the search capability selected by ``SEARCH_BACKEND``.

    Raises:
        ConfigError: If the backend is unknown or lacks credentials.
    """
    settings = settings or default_config
    settings.validate_for_search()

    if settings.SEARCH_BACKEND == "firecrawl":
        capability: SearchCapability = FirecrawlSearch(
            api_key=settings.FIRECRAWL_API_KEY,
            limit=settings.SEARCH_RESULT_LIMIT,
        )
    else:
        capability = AcknowledgingSearch()

    logger.info("Search capability initialized", extra={"search_backend": capability.name})
    return capability
