"""Adapters layer - Concrete implementations of ports."""
from adapters.direct_query_adapter import DirectQueryServiceAdapter
from adapters.http_history_store import HttpHistoryStore
from adapters.http_query_adapter import HttpQueryServiceAdapter
from adapters.local_storage import LocalHistoryStore
from adapters.mock_adapters import (
    InMemoryHistoryStore,
    MockLLMAdapter,
    MockQueryServiceAdapter,
    MockSearchAdapter,
)
from adapters.openai_compatible_adapter import OpenAICompatibleAdapter
from adapters.tavily_adapter import TavilySearchAdapter

__all__ = [
    "DirectQueryServiceAdapter",
    "HttpHistoryStore",
    "HttpQueryServiceAdapter",
    "LocalHistoryStore",
    "InMemoryHistoryStore",
    "MockLLMAdapter",
    "MockQueryServiceAdapter",
    "MockSearchAdapter",
    "OpenAICompatibleAdapter",
    "TavilySearchAdapter",
]
