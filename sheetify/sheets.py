"""Sheet files: the persisted result of one document's extraction."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .modes import Row
from .store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class SheetFile:
    """Rows extracted from one document plus its source filename."""

    filename: str
    mode: str
    sheet: List[Row] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "mode": self.mode,
            "sheet": [row.to_dict() for row in self.sheet],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SheetFile":
        rows = data.get("sheet") or []
        if isinstance(rows, dict):
            rows = [rows]
        return cls(
            filename=str(data.get("filename", "")),
            mode=str(data.get("mode", "")),
            sheet=[Row.from_dict(r) for r in rows],
        )

    @classmethod
    def from_json(cls, text: str) -> "SheetFile":
        return cls.from_dict(json.loads(text))


def sort_rows(rows: Iterable[Row]) -> List[Row]:
    """Order rows by page, then by position on the page."""
    return sorted(rows, key=lambda r: (r.page, r.index))


def session_key(session_id: str) -> str:
    return f"{session_id}/sheet"


def batch_key(sheet_id: str) -> str:
    return f"sheetify/{sheet_id}"


class SheetAssembler:
    """Package rows into a SheetFile and persist it with an expiry."""

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    async def finalize(
        self,
        key: str,
        filename: str,
        mode: str,
        rows: Iterable[Row],
        ttl: Optional[int],
        sort: bool = True,
    ) -> SheetFile:
        ordered = sort_rows(rows) if sort else list(rows)
        sheet_file = SheetFile(filename=filename, mode=mode, sheet=ordered)
        await self.store.set(key, sheet_file.to_json(), ttl)
        logger.info("Saved %s rows for %s under %s", len(ordered), filename, key)
        return sheet_file

    async def load(self, key: str) -> Optional[SheetFile]:
        raw = await self.store.get(key)
        if raw is None:
            return None
        return SheetFile.from_json(raw)
