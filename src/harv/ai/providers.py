"""AI providers.

A provider takes a prompt and returns the model's raw text. Two providers
exist, selected by name from the ``ai.provider`` setting. SDK clients are
obtained through an :class:`LLMClientProvider` so tests can inject fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

import anthropic
import openai
import structlog

from harv.config import AIConfig
from harv.errors import AIProviderError, ConfigurationError

logger = structlog.get_logger()

MAX_TOKENS = 4096


class ProviderName(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"

    @classmethod
    def parse(cls, name: str) -> ProviderName:
        normalized = name.strip().lower()
        if normalized == "claude":
            return cls.ANTHROPIC
        try:
            return cls(normalized)
        except ValueError:
            raise ConfigurationError(
                f"Unsupported AI provider: {name}. Supported: openai, anthropic"
            )


DEFAULT_MODELS = {
    ProviderName.OPENAI: "gpt-4o",
    ProviderName.ANTHROPIC: "claude-3-5-sonnet-20241022",
}


class LLMClientProvider(ABC):
    """Source of SDK client instances."""

    @abstractmethod
    def get_openai_client(self, api_key: str) -> Any:
        pass

    @abstractmethod
    def get_anthropic_client(self, api_key: str) -> Any:
        pass


class DefaultLLMClientProvider(LLMClientProvider):
    """Official SDK clients."""

    def get_openai_client(self, api_key: str) -> Any:
        return openai.OpenAI(api_key=api_key)

    def get_anthropic_client(self, api_key: str) -> Any:
        return anthropic.Anthropic(api_key=api_key)


class AIProvider(ABC):
    """Submit a prompt, get raw text back. No retries."""

    name: ProviderName

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        client_provider: LLMClientProvider | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError(f"{self.name.value} API key is required")
        self.api_key = api_key
        self.model = model or DEFAULT_MODELS[self.name]
        self._client_provider = client_provider or DefaultLLMClientProvider()
        self._client: Any = None

    @abstractmethod
    def complete(self, prompt: str) -> str:
        """Return the model's raw response to ``prompt``.

        Raises:
            AIProviderError: with the provider's own error message.
        """


class OpenAIProvider(AIProvider):
    name = ProviderName.OPENAI

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = self._client_provider.get_openai_client(self.api_key)
        return self._client

    def complete(self, prompt: str) -> str:
        logger.debug("OpenAI request", model=self.model)
        try:
            response = self._get_client().chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            raise AIProviderError(f"OpenAI API error: {e}") from e

        if not response.choices:
            raise AIProviderError("OpenAI returned no choices")
        content = response.choices[0].message.content or ""
        logger.debug("OpenAI response", content=content)
        return content


class AnthropicProvider(AIProvider):
    name = ProviderName.ANTHROPIC

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = self._client_provider.get_anthropic_client(self.api_key)
        return self._client

    def complete(self, prompt: str) -> str:
        logger.debug("Anthropic request", model=self.model)
        try:
            response = self._get_client().messages.create(
                model=self.model,
                max_tokens=MAX_TOKENS,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.AnthropicError as e:
            raise AIProviderError(f"Anthropic API error: {e}") from e

        if not response.content:
            raise AIProviderError("Anthropic returned no content")
        content = response.content[0].text
        logger.debug("Anthropic response", content=content)
        return content


_PROVIDERS: dict[ProviderName, type[AIProvider]] = {
    ProviderName.OPENAI: OpenAIProvider,
    ProviderName.ANTHROPIC: AnthropicProvider,
}


def create_provider(
    config: AIConfig,
    name: str | None = None,
    client_provider: LLMClientProvider | None = None,
) -> AIProvider:
    """Build the provider named by ``name`` or ``config.provider``."""
    provider_name = ProviderName.parse(name or config.provider)
    # A configured model belongs to the configured provider only.
    model = config.model if ProviderName.parse(config.provider) is provider_name else None
    return _PROVIDERS[provider_name](config.api_key, model=model, client_provider=client_provider)
