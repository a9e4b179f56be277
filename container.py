"""Dependency Injection Container - Wires up the application."""
import logging

from config.settings import Settings
from ports.history import HistoryStorePort
from ports.llm import LLMPort
from ports.query import QueryServicePort
from ports.search import SearchPort
from exploration.explorer import Explorer

logger = logging.getLogger(__name__)


class Container:
    """Dependency Injection Container."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        self._llm: LLMPort | None = None
        self._searcher: SearchPort | None = None
        self._query_service: QueryServicePort | None = None
        self._history: HistoryStorePort | None = None

    @property
    def llm(self) -> LLMPort:
        if self._llm is None:
            from adapters.openai_compatible_adapter import OpenAICompatibleAdapter

            if not self.settings.llm_api_key:
                raise ValueError(
                    "Missing LLM_API_KEY. Set LLM_API_KEY (and optionally LLM_BASE_URL / LLM_MODEL), "
                    "or use QUERY_SERVICE=http / QUERY_SERVICE=mock."
                )
            logger.info("Using API LLM (%s) with model: %s", self.settings.llm_provider, self.settings.llm_model)
            self._llm = OpenAICompatibleAdapter(
                api_key=self.settings.llm_api_key,
                model_name=self.settings.llm_model,
                base_url=self.settings.llm_base_url,
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
                provider_name=self.settings.llm_provider,
                timeout=self.settings.query_timeout_seconds,
            )
        return self._llm

    @property
    def searcher(self) -> SearchPort:
        if self._searcher is None:
            if self.settings.tavily_api_key:
                from adapters.tavily_adapter import TavilySearchAdapter
                logger.info("Using Tavily search")
                self._searcher = TavilySearchAdapter(api_keys=self.settings.tavily_api_key)
            else:
                from adapters.mock_adapters import MockSearchAdapter
                logger.warning("No Tavily API key found, using mock search")
                self._searcher = MockSearchAdapter()
        return self._searcher

    @property
    def query_service(self) -> QueryServicePort:
        if self._query_service is None:
            kind = self.settings.query_service
            if kind == "mock":
                from adapters.mock_adapters import MockQueryServiceAdapter
                logger.info("Using mock query service")
                self._query_service = MockQueryServiceAdapter()
            elif kind == "direct":
                from adapters.direct_query_adapter import DirectQueryServiceAdapter
                self._query_service = DirectQueryServiceAdapter(
                    llm=self.llm,
                    searcher=self.searcher,
                    max_results=self.settings.search_max_results,
                )
            else:
                from adapters.http_query_adapter import HttpQueryServiceAdapter
                logger.info("Using query service at %s", self.settings.query_service_url)
                self._query_service = HttpQueryServiceAdapter(
                    base_url=self.settings.query_service_url,
                    timeout=self.settings.query_timeout_seconds,
                )
        return self._query_service

    @property
    def history(self) -> HistoryStorePort:
        if self._history is None:
            backend = self.settings.history_backend
            if backend == "memory":
                from adapters.mock_adapters import InMemoryHistoryStore
                self._history = InMemoryHistoryStore()
            elif backend == "http":
                from adapters.http_history_store import HttpHistoryStore
                self._history = HttpHistoryStore(
                    base_url=self.settings.history_api_url,
                    token=self.settings.history_token,
                )
            else:
                from adapters.local_storage import LocalHistoryStore
                self._history = LocalHistoryStore(base_path=self.settings.history_dir)
        return self._history

    def get_explorer(self) -> Explorer:
        return Explorer(
            query_service=self.query_service,
            history=self.history,
            layout_config=self.settings.layout_config(),
            follow_up_mode=self.settings.follow_up_mode,
            autosave_delay_seconds=self.settings.autosave_debounce_seconds,
        )
