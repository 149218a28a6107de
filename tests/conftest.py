"""Shared fakes for the inference provider, renderer and session store."""

import asyncio
import json
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

from sheetify.config import Config
from sheetify.exceptions import RenderError
from sheetify.memory import Turn
from sheetify.providers.base import Generation, InferenceProvider, ProviderConfig
from sheetify.renderers.base import ImageRef
from sheetify.store import MemoryStore


def line(character: str, text: str) -> Dict[str, str]:
    return {
        "character": character,
        "line": text,
        "tone": "calm",
        "place": "street",
        "background_sound": "",
    }


class FakeRenderer:
    """Renders page ``n`` as the bytes ``b"page-n"``."""

    def __init__(self, page_count: int = 3, fail_pages: Optional[Set[int]] = None):
        self._page_count = page_count
        self.fail_pages = fail_pages or set()
        self.rendered: List[int] = []

    @property
    def page_count(self) -> int:
        return self._page_count

    async def render(self, page_number: int) -> bytes:
        self.rendered.append(page_number)
        if page_number in self.fail_pages:
            raise RenderError(f"cannot render page {page_number}", page_number)
        return f"page-{page_number}".encode()


class FakeProvider(InferenceProvider):
    """Replies per page, keyed by the page of the newest image in the turns.

    A reply is a list of row dicts, ``""`` for an empty response, or an
    exception instance to raise. ``transcripts`` holds free-text replies the
    same way and defaults to ``"# Page n"``.
    """

    def __init__(
        self,
        replies: Optional[Dict[int, Any]] = None,
        delays: Optional[Dict[int, float]] = None,
        fail_uploads: bool = False,
        transcripts: Optional[Dict[int, Any]] = None,
    ) -> None:
        super().__init__(ProviderConfig(model="fake"))
        self.replies = replies or {}
        self.delays = delays or {}
        self.fail_uploads = fail_uploads
        self.transcripts = transcripts or {}
        self.completions: List[Tuple[int, str]] = []
        self.uploads: List[bytes] = []
        self.calls: List[Tuple[int, List[Turn]]] = []

    def init(self) -> None:  # pragma: no cover - not used
        pass

    async def upload(self, data: bytes, mime_type: str = "image/png") -> ImageRef:
        self.uploads.append(data)
        if self.fail_uploads:
            raise ConnectionError("upload refused")
        return ImageRef(uri=f"fake://{data.decode()}", mime_type=mime_type)

    @staticmethod
    def page_of(turns: List[Turn]) -> int:
        uri = turns[-1].images[0].uri or ""
        return int(uri.rsplit("-", 1)[1])

    async def generate(self, schema, instructions, turns) -> Generation:
        page = self.page_of(turns)
        self.calls.append((page, list(turns)))
        if page in self.delays:
            await asyncio.sleep(self.delays[page])

        reply = self.replies.get(page, [])
        if isinstance(reply, Exception):
            raise reply
        if reply == "":
            return Generation(text="")
        payload = {"rows": reply}
        return Generation(text=json.dumps(payload, ensure_ascii=False), data=payload)

    async def complete(self, instructions, turns) -> str:
        page = self.page_of(turns)
        self.completions.append((page, instructions))
        reply = self.transcripts.get(page, f"# Page {page}")
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def pages_called(self) -> List[int]:
        return [page for page, _ in self.calls]


class RecordingStore(MemoryStore):
    """Memory store that also remembers the TTL of every write."""

    def __init__(self) -> None:
        super().__init__()
        self.ttls: Dict[str, Optional[int]] = {}
        self.writes: List[str] = []

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        self.ttls[key] = ttl
        self.writes.append(key)
        await super().set(key, value, ttl)


@pytest.fixture()
def config() -> Config:
    return Config(retry_delay=0.0, redis_url=None)


@pytest.fixture()
def store() -> RecordingStore:
    return RecordingStore()
