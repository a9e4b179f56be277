"""Abstract interface for the remote query service."""
from abc import ABC, abstractmethod

from domain.models import QueryRequest, QueryResponse


class QueryServicePort(ABC):
    """
    Port for the service that answers one question.
    Abstracts away whether answers come from a remote HTTP endpoint,
    a local search + LLM pipeline, or a test double.

    Timeouts are the adapter's responsibility; the engine only reacts
    to the coroutine returning, raising, or being superseded.
    """

    @abstractmethod
    async def search(self, request: QueryRequest) -> QueryResponse:
        """
        Answer a question in the context of the running conversation.

        Args:
            request: Query text, previous conversation, concept and follow-up mode

        Returns:
            QueryResponse with prose, follow-up questions, sources and images
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the query service name."""
        raise NotImplementedError
