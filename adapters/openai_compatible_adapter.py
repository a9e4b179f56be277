"""OpenAI-compatible LLM adapter (works with SiliconFlow, OpenAI, and similar APIs)."""
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ports.llm import LLMPort
from domain.exceptions import AdapterError

DEFAULT_BASE_URL = "https://api.siliconflow.com/v1"


class OpenAICompatibleAdapter(LLMPort):
    """
    Adapter for OpenAI-compatible Chat Completions APIs.

    Only plain text generation is needed: answers are markdown and the
    follow-up questions are parsed out of the text afterwards.
    """

    def __init__(
        self,
        api_key: str,
        model_name: str,
        base_url: str = DEFAULT_BASE_URL,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        provider_name: str = "api",
        timeout: float = 180.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._model_name = model_name
        self._base_url = self._normalize_base_url(base_url)
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._provider_name = provider_name
        self._timeout = timeout
        self._transport = transport

    @staticmethod
    def _normalize_base_url(base_url: str) -> str:
        base_url = (base_url or "").strip().rstrip("/")
        if not base_url:
            return DEFAULT_BASE_URL
        if base_url.endswith("/v1"):
            return base_url
        return f"{base_url}/v1"

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def provider(self) -> str:
        return self._provider_name

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=20),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _chat_completion(
        self,
        *,
        messages: list[dict[str, str]],
        temperature: float,
    ) -> str:
        url = f"{self._base_url}/chat/completions"
        payload: dict[str, Any] = {
            "model": self._model_name,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": self._max_tokens,
            "stream": False,
        }

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(url, headers=self._headers(), json=payload)
            response.raise_for_status()
            data = response.json()

        choice0 = (data.get("choices") or [{}])[0]
        message = choice0.get("message") or {}
        content = message.get("content")
        if content is None:
            content = choice0.get("text", "")
        return (content or "").strip()

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> str:
        try:
            messages: list[dict[str, str]] = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": prompt})

            temp = temperature if temperature is not None else self._temperature
            return await self._chat_completion(messages=messages, temperature=temp)
        except Exception as e:
            raise AdapterError("OpenAICompatibleAdapter", "generate", e)
