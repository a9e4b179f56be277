"""Ports layer - Abstract interfaces for external dependencies."""
from ports.history import HistoryStorePort
from ports.llm import LLMPort
from ports.query import QueryServicePort
from ports.search import SearchPort

__all__ = ["HistoryStorePort", "LLMPort", "QueryServicePort", "SearchPort"]
