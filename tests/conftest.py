"""Pytest configuration and shared fixtures."""
import asyncio

import pytest

from adapters.mock_adapters import InMemoryHistoryStore, MockQueryServiceAdapter
from domain.models import Node, QueryRequest, QueryResponse, SessionState
from exploration.explorer import Explorer
from exploration.graph_store import GraphStore
from ports.query import QueryServicePort


class GatedQueryService(QueryServicePort):
    """
    Query service whose answers are released by the test.

    Each call parks on a future; `answer(query, ...)` or `fail(query, ...)`
    resolves the oldest pending call for that query.
    """

    def __init__(self):
        self.requests: list[QueryRequest] = []
        self._pending: dict[str, list[asyncio.Future]] = {}
        self.called = asyncio.Event()

    @property
    def provider_name(self) -> str:
        return "gated"

    async def search(self, request: QueryRequest) -> QueryResponse:
        self.requests.append(request)
        future = asyncio.get_running_loop().create_future()
        self._pending.setdefault(request.query, []).append(future)
        self.called.set()
        return await future

    def answer(self, query: str, response: QueryResponse) -> None:
        self._pending[query].pop(0).set_result(response)

    def fail(self, query: str, error: Exception) -> None:
        self._pending[query].pop(0).set_exception(error)

    async def wait_for_call(self) -> None:
        await self.called.wait()
        self.called.clear()


def reply(text: str = "An answer.", questions=("Why?", "How?"), contextual_query: str = "") -> QueryResponse:
    return QueryResponse(
        response=text,
        follow_up_questions=list(questions),
        contextual_query=contextual_query,
    )


@pytest.fixture
def store() -> GraphStore:
    return GraphStore()


@pytest.fixture
def rooted_store(store: GraphStore) -> GraphStore:
    """main -> q1 -> q2, plus main -> q3."""
    store.add_node(Node(id="main", kind="main", label="Root", is_expanded=True, content="Root answer"))
    store.add_child("main", Node(id="q1", label="First?"))
    store.add_child("q1", Node(id="q2", label="Second?"))
    store.add_child("main", Node(id="q3", label="Third?"))
    return store


@pytest.fixture
def state() -> SessionState:
    return SessionState(query="Root")


@pytest.fixture
def gated_service() -> GatedQueryService:
    return GatedQueryService()


@pytest.fixture
def mock_service() -> MockQueryServiceAdapter:
    return MockQueryServiceAdapter()


@pytest.fixture
def history() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


@pytest.fixture
def explorer(mock_service, history) -> Explorer:
    return Explorer(mock_service, history=history, autosave_delay_seconds=0.01)
