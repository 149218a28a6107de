"""Bounded conversation memory fed to the extraction model.

The conversation is a FIFO sliding window of user/model turns. Turns are
evicted from the head two at a time so a user turn and the model reply that
followed it always leave together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Union

from .renderers.base import ImageRef

USER = "user"
MODEL = "model"

Part = Union[str, ImageRef]


@dataclass(frozen=True)
class Turn:
    """One role-tagged message made of text and image parts."""

    role: str
    parts: List[Part] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.role not in (USER, MODEL):
            raise ValueError(f"Unknown turn role: {self.role}")

    @classmethod
    def user(cls, *parts: Part) -> "Turn":
        return cls(USER, list(parts))

    @classmethod
    def model(cls, text: str) -> "Turn":
        return cls(MODEL, [text])

    @property
    def text(self) -> str:
        return "".join(p for p in self.parts if isinstance(p, str))

    @property
    def images(self) -> List[ImageRef]:
        return [p for p in self.parts if isinstance(p, ImageRef)]


class BoundedConversation:
    """Append-only window holding at most ``2 * limit`` turns."""

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self._turns: List[Turn] = []

    def push(self, turn: Turn) -> None:
        self._turns.append(turn)
        while len(self._turns) > 2 * self.limit:
            del self._turns[:2]

    def to_messages(self) -> List[Turn]:
        return list(self._turns)

    def outbound(self) -> List[Turn]:
        """Turns to send to the model; never ends with a model turn."""
        turns = self.to_messages()
        if turns and turns[-1].role == MODEL:
            return turns[:-1]
        return turns

    def clear(self) -> None:
        self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self.to_messages())
