"""Optimistic concurrency for card batches written through the API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sync_engine.models import Card, CardMeta


class WriteRejected(Exception):
    """Base for rejected API writes; nothing has been written."""


class InvalidPayload(WriteRejected):
    pass


class CardLimitError(WriteRejected):
    def __init__(self, limit: int) -> None:
        super().__init__(f"Card limit exceeded ({limit}).")
        self.limit = limit


@dataclass
class Conflict:
    id: str
    server: Card
    incoming: Card

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "server": self.server.to_dict(), "incoming": self.incoming.to_dict()}


class ConflictError(WriteRejected):
    def __init__(self, conflicts: list[Conflict]) -> None:
        super().__init__(f"{len(conflicts)} conflicting card(s): {', '.join(c.id for c in conflicts)}")
        self.conflicts = conflicts


def detect_conflicts(incoming: list[Card], current: list[Card], tolerance_ms: int) -> list[Conflict]:
    by_id = {c.id: c for c in current}
    out = []
    for inc in incoming:
        cur = by_id.get(inc.id)
        if cur is None or not inc.has_meta:
            continue
        if cur.meta.updatedAt > inc.meta.updatedAt + tolerance_ms:
            out.append(Conflict(id=inc.id, server=cur, incoming=inc))
    return out


def prepare_batch(payload: Any, current: list[Card], *, card_limit: int, tolerance_ms: int, now: int) -> list[Card]:
    """Validate an incoming batch and return it stamped for writing.

    Raises ``InvalidPayload``, ``CardLimitError`` or ``ConflictError``; the
    limit is enforced before conflicts are looked at. The returned cards
    share one ``updatedAt`` and have their version bumped by one (a card sent
    without meta counts as version 0).
    """
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise InvalidPayload("Invalid payload")
    if len(payload) > card_limit:
        raise CardLimitError(card_limit)
    incoming = [Card.from_dict(item) for item in payload]
    if any(not c.id for c in incoming):
        raise InvalidPayload("Every card needs an id")
    if len({c.id for c in incoming}) != len(incoming):
        raise InvalidPayload("Duplicate card ids")
    conflicts = detect_conflicts(incoming, current, tolerance_ms)
    if conflicts:
        raise ConflictError(conflicts)
    out = []
    for c in incoming:
        base = c.meta.version if c.has_meta else 0
        stamped = c.copy()
        stamped.meta = CardMeta(version=base + 1, updatedAt=now)
        stamped.has_meta = True
        out.append(stamped)
    return out
