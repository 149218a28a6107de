"""Extraction modes and the rows they produce.

A mode bundles everything that differs between dialogue extraction and
foreign-name extraction: the row fields, the response schema built from
them, the system instructions, and which conversation limit applies.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from .exceptions import ConfigurationError
from .prompts import LINE_EXTRACTION_PROMPT, NAME_EXTRACTION_PROMPT

PAGE_LABEL = "رقم الصفحة"
INDEX_LABEL = "رقم النص"


@dataclass(frozen=True)
class Field:
    """A row field: schema key and exported column label."""

    key: str
    label: str


@dataclass
class Row:
    """One extracted record tagged with its page and in-page index."""

    page: int
    index: int
    values: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"page": self.page, "index": self.index, "values": dict(self.values)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Row":
        return cls(
            page=int(data["page"]),
            index=int(data["index"]),
            values={str(k): str(v) for k, v in (data.get("values") or {}).items()},
        )


@dataclass(frozen=True)
class Mode:
    """Schema, instructions and row shape for one kind of extraction."""

    name: str
    fields: Tuple[Field, ...]
    instructions: str
    memory_limit_key: str

    @property
    def keys(self) -> List[str]:
        return [f.key for f in self.fields]

    def response_schema(self) -> Dict[str, Any]:
        """JSON schema of the structured reply for one page."""
        item = {
            "type": "object",
            "properties": {
                f.key: {"type": "string", "description": f.label} for f in self.fields
            },
            "required": self.keys,
            "additionalProperties": False,
        }
        return {
            "type": "object",
            "properties": {"rows": {"type": "array", "items": item}},
            "required": ["rows"],
            "additionalProperties": False,
        }

    def parse(self, payload: Any) -> List[Dict[str, str]]:
        """Normalize a decoded reply into row value dicts.

        Accepts ``{"rows": [...]}`` or a bare list. Items that are not
        objects are dropped; unknown keys are ignored and missing keys become
        empty strings.
        """
        if isinstance(payload, dict):
            payload = payload.get("rows")
        if not isinstance(payload, list):
            return []

        items: List[Dict[str, str]] = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            items.append(
                {
                    key: "" if item.get(key) is None else str(item.get(key))
                    for key in self.keys
                }
            )
        return items

    def headers(self) -> List[str]:
        return [f.label for f in self.fields] + [PAGE_LABEL, INDEX_LABEL]

    def record(self, row: Row) -> "OrderedDict[str, Any]":
        """Render a row as ordered ``{column label: value}``."""
        out: "OrderedDict[str, Any]" = OrderedDict()
        for f in self.fields:
            out[f.label] = row.values.get(f.key, "")
        out[PAGE_LABEL] = row.page
        out[INDEX_LABEL] = row.index
        return out


LINES = Mode(
    name="lines",
    fields=(
        Field("character", "الشخصية"),
        Field("line", "النص"),
        Field("tone", "النبرة"),
        Field("place", "المكان"),
        Field("background_sound", "الخلفية الصوتية"),
    ),
    instructions=LINE_EXTRACTION_PROMPT,
    memory_limit_key="line_memory_limit",
)

FOREIGN_NAMES = Mode(
    name="names",
    fields=(
        Field("arabic_name", "الإسم بالعربي"),
        Field("foreign_name", "الإسم باللغة الأجنبية"),
        Field("first_link", "الرابط الأول"),
        Field("second_link", "الرابط الثاني"),
        Field("third_link", "الرابط الثالث"),
    ),
    instructions=NAME_EXTRACTION_PROMPT,
    memory_limit_key="name_memory_limit",
)

MODES: Dict[str, Mode] = {LINES.name: LINES, FOREIGN_NAMES.name: FOREIGN_NAMES}


def get_mode(name: str) -> Mode:
    """Resolve a mode by name (``lines`` or ``names``)."""
    try:
        return MODES[name.strip().lower()]
    except (KeyError, AttributeError):
        raise ConfigurationError(
            f"Unknown extraction mode: {name!r}. Expected one of: "
            + ", ".join(sorted(MODES))
        )
