"""Session progress records kept in the session store."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .store import SessionStore


class Stage(str, Enum):
    IDLE = "IDLE"
    READY = "READY"
    SCANNING = "SCANNING"
    EXTRACTING = "EXTRACTING"


@dataclass
class ProgressRecord:
    """Where a session's job stands; polled by clients."""

    stage: Stage = Stage.IDLE
    cursor: int = 0
    progress: int = 0
    details: Any = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "cursor": self.cursor,
            "progress": self.progress,
            "details": self.details,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressRecord":
        return cls(
            stage=Stage(data.get("stage", Stage.IDLE.value)),
            cursor=int(data.get("cursor", 0)),
            progress=int(data.get("progress", 0)),
            details=data.get("details", []),
        )

    @classmethod
    def from_json(cls, text: str) -> "ProgressRecord":
        return cls.from_dict(json.loads(text))


def progress_key(session_id: str) -> str:
    return f"{session_id}/progress"


class ProgressPublisher:
    def __init__(self, store: SessionStore, ttl: Optional[int] = None) -> None:
        self.store = store
        self.ttl = ttl

    async def start_session(self, session_id: str) -> ProgressRecord:
        record = ProgressRecord(stage=Stage.IDLE, cursor=0)
        await self.set_progress(session_id, record)
        return record

    async def set_progress(self, session_id: str, record: ProgressRecord) -> None:
        await self.store.set(progress_key(session_id), record.to_json(), self.ttl)

    async def get_progress(self, session_id: str) -> Optional[ProgressRecord]:
        raw = await self.store.get(progress_key(session_id))
        if raw is None:
            return None
        return ProgressRecord.from_json(raw)
