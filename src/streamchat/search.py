"""Web search adapters invoked for ``web_search`` tool calls.

Every adapter returns plain text: a numbered title/URL/snippet listing,
or ``"No results found"``.  Failures raise :class:`SearchError`; the
orchestration loop turns them into an error event.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx

from streamchat.errors import SearchError
from streamchat.tools import truncate_query

logger = logging.getLogger(__name__)

NO_RESULTS = "No results found"
RESULT_COUNT = 5

BRAVE_URL = "https://api.search.brave.com/res/v1/web/search"
TAVILY_URL = "https://api.tavily.com/search"
SYNTHETIC_URL = "https://api.synthetic.new/v2/search"


@runtime_checkable
class SearchAdapter(Protocol):
    async def search(self, query: str, api_key: str, provider_name: str) -> str:
        ...


@dataclass
class SearchResult:
    title: str | None = None
    url: str | None = None
    snippet: str | None = None
    published: str | None = None


def format_results(results: list[SearchResult]) -> str:
    if not results:
        return NO_RESULTS
    blocks = []
    for i, result in enumerate(results, start=1):
        lines = [
            f"{i}. {result.title or 'No title'}",
            f"   URL: {result.url or 'No URL'}",
        ]
        if result.snippet and result.snippet.strip():
            lines.append(f"   {result.snippet}")
        if result.published and result.published.strip():
            lines.append(f"   Published: {result.published}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks).strip()


def http_error_message(status_code: int) -> str:
    if status_code == 401:
        return "Invalid API key (HTTP 401)"
    if status_code == 403:
        return "Access forbidden (HTTP 403)"
    if status_code == 429:
        return "Rate limit exceeded, try again later (HTTP 429)"
    return f"HTTP error {status_code}"


class WebSearchClient:
    """Dispatches to Brave, Tavily or Synthetic by provider name.

    Unknown provider names fall back to Brave.

    Args:
        http_client: Shared ``httpx.AsyncClient``; one with 30 second
            timeouts is created (and owned) when omitted.
    """

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(30.0))

    async def search(self, query: str, api_key: str, provider_name: str) -> str:
        query = truncate_query(query)
        provider = (provider_name or "").strip().lower()
        logger.info(f"Searching {provider or 'brave'} for {query!r}")
        if provider == "tavily":
            return await self._search_tavily(query, api_key)
        if provider == "synthetic":
            return await self._search_synthetic(query, api_key)
        return await self._search_brave(query, api_key)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    async def _search_brave(self, query: str, api_key: str) -> str:
        response = await self._client.get(
            BRAVE_URL,
            params={"q": query, "count": RESULT_COUNT},
            headers={"X-Subscription-Token": api_key, "Accept": "application/json"},
        )
        data = self._read_json(response, "Brave Search")
        if data is None:
            return NO_RESULTS
        web = data.get("web") or {}
        return format_results([
            SearchResult(
                title=item.get("title"),
                url=item.get("url"),
                snippet=item.get("description"),
                published=item.get("page_age"),
            )
            for item in (web.get("results") or [])
        ])

    async def _search_tavily(self, query: str, api_key: str) -> str:
        response = await self._client.post(
            TAVILY_URL,
            json={
                "api_key": api_key,
                "query": query,
                "search_depth": "basic",
                "max_results": RESULT_COUNT,
            },
        )
        data = self._read_json(response, "Tavily")
        if data is None:
            return NO_RESULTS
        return format_results([
            SearchResult(
                title=item.get("title"),
                url=item.get("url"),
                snippet=item.get("content"),
                published=item.get("published_date"),
            )
            for item in (data.get("results") or [])
        ])

    async def _search_synthetic(self, query: str, api_key: str) -> str:
        response = await self._client.post(
            SYNTHETIC_URL,
            json={"query": query},
            headers={"Authorization": f"Bearer {api_key}"},
        )
        data = self._read_json(response, "Synthetic Search")
        if data is None:
            return NO_RESULTS
        return format_results([
            SearchResult(
                title=item.get("title"),
                url=item.get("url"),
                snippet=item.get("text"),
                published=item.get("published"),
            )
            for item in (data.get("results") or [])
        ])

    @staticmethod
    def _read_json(response: httpx.Response, label: str) -> dict[str, Any] | None:
        """Return the decoded body, or ``None`` when it is empty."""
        if not response.is_success:
            logger.warning(f"{label} returned HTTP {response.status_code}")
            raise SearchError(f"{label}: {http_error_message(response.status_code)}")
        if not response.content:
            return None
        try:
            data = response.json()
        except ValueError as e:
            raise SearchError(f"Failed to parse {label} results: {e}") from e
        if not isinstance(data, dict):
            raise SearchError(f"Failed to parse {label} results: expected an object")
        return data
