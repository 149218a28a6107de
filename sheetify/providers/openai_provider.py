"""OpenAI provider implementation using langchain-openai."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from ..exceptions import RemoteCallError
from ..memory import USER, Turn
from ..renderers.base import ImageRef
from .base import Generation, InferenceProvider, ProviderConfig

logger = logging.getLogger(__name__)

SCHEMA_NAME = "page_rows"


def _image_url(image: ImageRef) -> str:
    if image.uri:
        return image.uri
    assert image.data is not None
    encoded = base64.b64encode(image.data).decode("utf-8")
    return f"data:{image.mime_type};base64,{encoded}"


def to_message(turn: Turn) -> BaseMessage:
    """Convert a conversation turn into a chat message."""
    if turn.role != USER:
        return AIMessage(content=turn.text)

    content: List[Dict[str, Any]] = []
    for part in turn.parts:
        if isinstance(part, ImageRef):
            content.append({"type": "image_url", "image_url": {"url": _image_url(part)}})
        else:
            content.append({"type": "text", "text": part})
    return HumanMessage(content=content)


class OpenAIProvider(InferenceProvider):
    def __init__(self, config: ProviderConfig) -> None:
        super().__init__(config)
        self._client: Optional[ChatOpenAI] = None

    def init(self) -> None:
        # Create ChatOpenAI instance
        if self.config.max_tokens is not None:
            self._client = ChatOpenAI(  # type: ignore
                model=self.config.model,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,  # type: ignore
            )
        else:
            self._client = ChatOpenAI(  # type: ignore
                model=self.config.model, temperature=self.config.temperature
            )

    async def upload(self, data: bytes, mime_type: str = "image/png") -> ImageRef:
        # Chat completions take images inline, so the "upload" is a data URI
        if not data:
            raise RemoteCallError("Cannot upload an empty image")
        encoded = base64.b64encode(data).decode("utf-8")
        return ImageRef(uri=f"data:{mime_type};base64,{encoded}", mime_type=mime_type)

    def _messages(self, instructions: str, turns: List[Turn]) -> List[BaseMessage]:
        if not self._client:
            raise RuntimeError("OpenAIProvider not initialized")

        messages: List[BaseMessage] = [SystemMessage(content=instructions)]
        messages.extend(to_message(turn) for turn in turns)
        return messages

    async def generate(
        self, schema: Dict[str, Any], instructions: str, turns: List[Turn]
    ) -> Generation:
        messages = self._messages(instructions, turns)

        llm = self._client.bind(
            response_format={
                "type": "json_schema",
                "json_schema": {"name": SCHEMA_NAME, "schema": schema, "strict": True},
            }
        )

        try:
            response = await llm.ainvoke(messages)
        except Exception as e:
            raise RemoteCallError(f"Structured generation failed: {e}")

        text = str(response.content) if response.content else ""
        if not text.strip():
            return Generation(text="", data=None)

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise RemoteCallError(f"Model returned invalid JSON: {e}")

        logger.debug("Generation returned %s characters", len(text))
        return Generation(text=text, data=data)

    async def complete(self, instructions: str, turns: List[Turn]) -> str:
        messages = self._messages(instructions, turns)

        try:
            response = await self._client.ainvoke(messages)
        except Exception as e:
            raise RemoteCallError(f"Generation failed: {e}")

        return str(response.content) if response.content else ""
