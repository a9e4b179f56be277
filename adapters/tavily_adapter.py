"""Tavily search adapter implementation."""
import asyncio
import logging
import random

from tenacity import retry, stop_after_attempt, wait_exponential

from ports.search import SearchPort
from domain.models import ImageRecord, SourceRecord, WebSearchResult
from domain.exceptions import AdapterError

logger = logging.getLogger(__name__)


def parse_key_pool(raw_keys: str) -> list[str]:
    """Split a comma-separated key list, dropping blanks."""
    return [k.strip() for k in (raw_keys or "").split(",") if k.strip()]


def preview_key(key: str) -> str:
    return f"{key[:4]}...{key[-4:]}" if len(key) > 8 else "****"


class TavilySearchAdapter(SearchPort):
    """
    Adapter for Tavily Search API.
    Tavily is optimized for AI agents, returning clean text rather than raw HTML.

    Several API keys may be configured; each search picks one at random
    to spread quota across them.
    """

    def __init__(self, api_keys: list[str] | str):
        """
        Initialize the Tavily adapter.

        Args:
            api_keys: One key, a comma-separated string, or a list of keys
        """
        try:
            from tavily import TavilyClient
        except ImportError:
            raise ImportError(
                "tavily-python is required. Install with: pip install tavily-python"
            )

        keys = parse_key_pool(api_keys) if isinstance(api_keys, str) else [k for k in api_keys if k]
        if not keys:
            raise ValueError("At least one Tavily API key is required")
        self.clients = {key: TavilyClient(api_key=key) for key in keys}

    @property
    def provider_name(self) -> str:
        return "tavily"

    def _pick_client(self):
        key = random.choice(list(self.clients))
        logger.debug("Using Tavily API key %s", preview_key(key))
        return self.clients[key]

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=2, max=10))
    async def _search_raw(self, query: str, max_results: int, include_images: bool) -> dict:
        # Tavily's client is sync; keep the event loop free.
        return await asyncio.to_thread(
            self._pick_client().search,
            query=query,
            search_depth="basic",
            max_results=max_results,
            include_images=include_images,
        )

    async def search(
        self,
        query: str,
        max_results: int = 3,
        include_images: bool = True,
    ) -> WebSearchResult:
        """Execute a search and return normalized sources and images."""
        try:
            response = await self._search_raw(query, max_results, include_images)
        except Exception as e:
            raise AdapterError("TavilySearchAdapter", "search", e)
        return self.normalize(response)

    @staticmethod
    def normalize(response: dict) -> WebSearchResult:
        """Map a Tavily payload onto SourceRecord / ImageRecord."""
        sources = [
            SourceRecord(
                title=result.get("title") or "",
                url=result.get("url") or "",
                author=result.get("author") or "",
                image=result.get("image") or "",
            )
            for result in response.get("results", [])
        ]

        images = []
        for item in response.get("images", []) or []:
            # Tavily returns bare URLs unless image descriptions are requested.
            if isinstance(item, str):
                images.append(ImageRecord(url=item, thumbnail=item))
            elif item.get("url"):
                images.append(
                    ImageRecord(
                        url=item["url"],
                        thumbnail=item["url"],
                        description=item.get("description") or "",
                    )
                )

        return WebSearchResult(sources=sources, images=images, raw=response)
