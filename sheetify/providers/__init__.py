"""Provider interfaces and implementations for inference backends.

This module exposes a common interface for page upload and structured
generation, and the OpenAI implementation of it.
"""

from .base import Generation, InferenceProvider, ProviderConfig
from .factory import ProviderFactory
from .openai_provider import OpenAIProvider

__all__ = [
    "Generation",
    "InferenceProvider",
    "ProviderConfig",
    "ProviderFactory",
    "OpenAIProvider",
]
