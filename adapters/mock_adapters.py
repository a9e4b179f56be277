"""Mock adapters for running and testing without API costs."""
import asyncio

from ports.history import HistoryStorePort
from ports.llm import LLMPort
from ports.query import QueryServicePort
from ports.search import SearchPort
from domain.exceptions import AdapterError
from domain.models import (
    ImageRecord,
    QueryRequest,
    QueryResponse,
    Session,
    SourceRecord,
    WebSearchResult,
)


def canned_follow_ups(query: str) -> list[str]:
    topic = query.rstrip("?？ ").strip() or "this topic"
    return [
        f"What evidence supports the claims about {topic}?",
        f"How would a critic challenge the premise of {topic}?",
        f"What happens to {topic} in the most extreme case?",
    ]


class MockQueryServiceAdapter(QueryServicePort):
    """
    Mock query service.
    Returns deterministic answers derived from the question text.
    """

    def __init__(
        self,
        delay: float = 0.0,
        fail_queries: set[str] | None = None,
        follow_ups_in_text: bool = False,
    ):
        """
        Initialize mock query service.

        Args:
            delay: Simulated latency in seconds
            fail_queries: Queries that raise AdapterError instead of answering
            follow_ups_in_text: Embed the questions in the answer under a
                "Follow-up Questions" heading instead of the structured field
        """
        self._delay = delay
        self._fail_queries = set(fail_queries or ())
        self._follow_ups_in_text = follow_ups_in_text
        self.requests: list[QueryRequest] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    async def search(self, request: QueryRequest) -> QueryResponse:
        self.requests.append(request)
        if self._delay:
            await asyncio.sleep(self._delay)
        if request.query in self._fail_queries:
            raise AdapterError("MockQueryServiceAdapter", "search", RuntimeError("simulated outage"))

        questions = canned_follow_ups(request.query)
        body = (
            f"#### Background and Conclusion\nA mock overview of {request.query}.\n\n"
            f"#### Everyday Example\nImagine explaining {request.query} over breakfast."
        )
        if self._follow_ups_in_text:
            listing = "\n".join(f"{i}. {q}" for i, q in enumerate(questions, start=1))
            return QueryResponse(
                response=f"{body}\n\n#### Follow-up Questions\n{listing}",
                contextual_query=request.query,
                sources=[SourceRecord(title=f"About {request.query}", url="https://example.com/mock")],
            )

        return QueryResponse(
            response=body,
            follow_up_questions=questions,
            contextual_query=request.query,
            sources=[SourceRecord(title=f"About {request.query}", url="https://example.com/mock")],
            images=[ImageRecord(url="https://example.com/mock.png", thumbnail="https://example.com/mock.png")],
        )


class MockLLMAdapter(LLMPort):
    """Mock LLM that returns a fixed answer (or a formatted one built from the prompt)."""

    def __init__(self, answer: str | None = None, model_name: str = "mock-llm"):
        self._answer = answer
        self._model_name = model_name
        self.prompts: list[tuple[str, str | None]] = []

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def provider(self) -> str:
        return "mock"

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> str:
        self.prompts.append((prompt, system_prompt))
        if self._answer is not None:
            return self._answer
        return "#### Background and Conclusion\nMock analysis.\n\n#### Follow-up Questions\n1. Is this a mock?"


class MockSearchAdapter(SearchPort):
    """Mock search returning one source and one image per query."""

    def __init__(self):
        self.queries: list[str] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    async def search(
        self,
        query: str,
        max_results: int = 3,
        include_images: bool = True,
    ) -> WebSearchResult:
        self.queries.append(query)
        source = SourceRecord(title=f"Mock result for {query}", url="https://example.com/result")
        images = [ImageRecord(url="https://example.com/result.png")] if include_images else []
        return WebSearchResult(
            sources=[source][:max_results],
            images=images,
            raw={"query": query, "results": [{"title": source.title, "url": source.url}]},
        )


class InMemoryHistoryStore(HistoryStorePort):
    """
    Mock history store.
    Stores sessions in memory.
    """

    def __init__(self):
        """Initialize in-memory storage."""
        self._sessions: dict[str, Session] = {}
        self.save_count = 0

    @property
    def storage_type(self) -> str:
        return "memory"

    async def list_sessions(self) -> list[Session]:
        sessions = [s.model_copy(deep=True) for s in self._sessions.values()]
        sessions.sort(key=lambda s: s.timestamp, reverse=True)
        return sessions

    async def save(self, session: Session) -> str:
        self._sessions[session.id] = session.model_copy(deep=True)
        self.save_count += 1
        return f"memory://history/{session.id}"

    async def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    async def rename(self, session_id: str, new_query: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        session.query = new_query
        return True
