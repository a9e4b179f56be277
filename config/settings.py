"""Application settings using Pydantic."""
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from exploration.layout import LayoutConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # === Query Service ===
    # "http" talks to a hosted /rabbitholes/search endpoint,
    # "direct" runs search + LLM in-process, "mock" needs no keys.
    query_service: Literal["http", "direct", "mock"] = "http"
    query_service_url: str = "http://localhost:3000/api"
    query_timeout_seconds: float = 180.0
    follow_up_mode: Literal["expansive", "focused"] = "expansive"

    # === LLM Configuration (OpenAI-compatible, used by "direct") ===
    llm_provider: str = "siliconflow"
    llm_api_key: str = ""
    llm_base_url: str = "https://api.siliconflow.com/v1"
    llm_model: str = "deepseek-ai/DeepSeek-V3.2"
    temperature: float = 0.7
    max_tokens: int = 4096

    # === Search Configuration (used by "direct") ===
    # Comma-separated; one key is picked at random per search.
    tavily_api_key: str = ""
    search_max_results: int = 3

    # === History Storage ===
    history_backend: Literal["local", "http", "memory"] = "local"
    history_dir: str = "data/historyData"
    history_api_url: str = "http://localhost:3000/api"
    history_token: str = ""
    autosave_debounce_seconds: float = 1.0

    # === Layout ===
    main_node_width: float = 600.0
    main_node_height: float = 500.0
    question_node_width: float = 300.0
    question_node_height: float = 100.0
    node_separation: float = 800.0
    rank_separation: float = 500.0
    layout_margin_x: float = 100.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def layout_config(self) -> LayoutConfig:
        return LayoutConfig(
            main_node_width=self.main_node_width,
            main_node_height=self.main_node_height,
            question_node_width=self.question_node_width,
            question_node_height=self.question_node_height,
            node_separation=self.node_separation,
            rank_separation=self.rank_separation,
            margin_x=self.layout_margin_x,
        )
