"""Factory for creating inference providers based on app Config."""

from __future__ import annotations

from ..config import Config
from .base import InferenceProvider, ProviderConfig
from .openai_provider import OpenAIProvider


class ProviderFactory:
    @staticmethod
    def from_config(config: Config) -> InferenceProvider:
        """Create and initialize the provider for a Config."""
        provider_config = ProviderConfig(
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )

        provider: InferenceProvider = OpenAIProvider(provider_config)
        provider.init()
        return provider
