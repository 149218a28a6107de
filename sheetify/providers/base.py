"""Base interface for inference providers."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..memory import Turn
from ..renderers.base import ImageRef


@dataclass
class ProviderConfig:
    """Normalized provider configuration.

    This mirrors a subset of sheetify.config.Config relevant to
    providers, so providers don't depend on the app-level Config directly.
    """

    model: str
    temperature: float = 0.1
    max_tokens: Optional[int] = None


@dataclass
class Generation:
    """Structured reply: the raw JSON text and its decoded value."""

    text: str
    data: Any = None


class InferenceProvider(abc.ABC):
    """Abstract interface every provider must implement."""

    def __init__(self, config: ProviderConfig) -> None:
        self.config = config

    @abc.abstractmethod
    def init(self) -> None:
        """Initialize the underlying client/session. Called once."""

    @abc.abstractmethod
    async def upload(self, data: bytes, mime_type: str = "image/png") -> ImageRef:
        """Make a page image available to the model and return its reference."""

    @abc.abstractmethod
    async def generate(
        self, schema: Dict[str, Any], instructions: str, turns: List[Turn]
    ) -> Generation:
        """Run a structured generation over the conversation.

        Implementations raise RemoteCallError on any failure.
        """

    @abc.abstractmethod
    async def complete(self, instructions: str, turns: List[Turn]) -> str:
        """Run a free-text generation and return the reply text."""

    def close(self) -> None:
        """Optional cleanup hook."""
        return None
