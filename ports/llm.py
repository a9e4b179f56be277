"""Abstract interface for Language Model interactions."""
from abc import ABC, abstractmethod


class LLMPort(ABC):
    """
    Port for Language Model interactions.
    Abstracts away provider-specific APIs (OpenAI, SiliconFlow, etc).
    """

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> str:
        """
        Generate a plain text response.

        Args:
            prompt: The user prompt
            system_prompt: Optional system instructions
            temperature: Sampling temperature, None for the adapter default

        Returns:
            Generated text response
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier."""
        raise NotImplementedError

    @property
    @abstractmethod
    def provider(self) -> str:
        """Return the provider name (e.g., 'openai', 'siliconflow')."""
        raise NotImplementedError
