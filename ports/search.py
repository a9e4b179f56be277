"""Abstract interface for Web Search operations."""
from abc import ABC, abstractmethod

from domain.models import WebSearchResult


class SearchPort(ABC):
    """
    Port for Web Search operations.
    Abstracts away Tavily and similar providers.
    """

    @abstractmethod
    async def search(
        self,
        query: str,
        max_results: int = 3,
        include_images: bool = True,
    ) -> WebSearchResult:
        """
        Execute a search and return normalized sources and images.

        Args:
            query: Search query string
            max_results: Maximum number of results to return
            include_images: Whether to ask the provider for images

        Returns:
            WebSearchResult with sources, images and the raw provider payload
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the search provider name."""
        raise NotImplementedError
