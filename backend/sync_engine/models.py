from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any

CARD_ID_RE = re.compile(r"^card_(\d+)$")


def now_ms() -> int:
    return int(time.time() * 1000)


def card_id(n: int) -> str:
    return f"card_{n:03d}"


def next_card_id(cards: list["Card"]) -> str:
    top = 0
    for c in cards:
        m = CARD_ID_RE.match(c.id)
        if m:
            top = max(top, int(m.group(1)))
    return card_id(top + 1)


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return default
    return default


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


@dataclass
class CardMeta:
    version: int = 1
    updatedAt: int = field(default_factory=now_ms)

    @classmethod
    def from_dict(cls, data: Any) -> "CardMeta":
        if not isinstance(data, dict):
            return cls()
        return cls(version=_as_int(data.get("version"), 1), updatedAt=_as_int(data.get("updatedAt"), now_ms()))

    def to_dict(self) -> dict[str, int]:
        return {"version": self.version, "updatedAt": self.updatedAt}


@dataclass
class Card:
    """One unit of narrative structure.

    ``has_meta`` records whether the source payload carried a ``meta`` object;
    it is not serialized.
    """

    id: str
    type: str = ""
    title: str = ""
    content: str = ""
    tags: list[str] = field(default_factory=list)
    meta: CardMeta = field(default_factory=CardMeta)
    has_meta: bool = field(default=True, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Card":
        tags = data.get("tags")
        raw_meta = data.get("meta")
        return cls(
            id=_as_str(data.get("id")),
            type=_as_str(data.get("type")),
            title=_as_str(data.get("title")),
            content=_as_str(data.get("content")),
            tags=[_as_str(t) for t in tags] if isinstance(tags, list) else [],
            meta=CardMeta.from_dict(raw_meta),
            has_meta=isinstance(raw_meta, dict),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "meta": self.meta.to_dict(),
        }

    def copy(self) -> "Card":
        return Card(
            id=self.id,
            type=self.type,
            title=self.title,
            content=self.content,
            tags=list(self.tags),
            meta=CardMeta(self.meta.version, self.meta.updatedAt),
            has_meta=self.has_meta,
        )

    def same_text(self, other: "Card") -> bool:
        return (self.type, self.title, self.content) == (other.type, other.title, other.content)


def cards_from_json(data: Any) -> list[Card]:
    if not isinstance(data, list):
        return []
    return [Card.from_dict(item) for item in data if isinstance(item, dict)]


def cards_to_json(cards: list[Card]) -> list[dict[str, Any]]:
    return [c.to_dict() for c in cards]
