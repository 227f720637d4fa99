"""Id-keyed merges between the JSON index and the text stores.

The index is authoritative for ``tags`` and ``meta``. The text stores are
edit surfaces: they may update type/title/content but can never delete a
card or erase its metadata.
"""

from __future__ import annotations

from sync_engine.models import Card, CardMeta


def merge_from_secondary(primary: list[Card], json_index: list[Card]) -> list[Card]:
    by_id: dict[str, Card] = {}
    for j in json_index:
        by_id.setdefault(j.id, j)
    consumed: set[str] = set()
    out: list[Card] = []
    for s in primary:
        if s.id in consumed:
            continue
        consumed.add(s.id)
        j = by_id.get(s.id)
        if j is not None:
            out.append(Card(
                id=s.id,
                type=s.type or j.type,
                title=s.title or j.title,
                content=s.content or j.content,
                tags=list(j.tags),
                meta=CardMeta(j.meta.version, j.meta.updatedAt),
            ))
        else:
            out.append(Card(
                id=s.id,
                type=s.type or "unknown",
                title=s.title,
                content=s.content,
                tags=[],
                meta=CardMeta(),
            ))
    for j in json_index:
        if j.id not in consumed:
            consumed.add(j.id)
            out.append(j.copy())
    return out


def merge_from_json(json_index: list[Card], secondary: list[Card]) -> list[Card]:
    by_id: dict[str, Card] = {}
    for s in secondary:
        by_id.setdefault(s.id, s)
    consumed: set[str] = set()
    out: list[Card] = []
    for j in json_index:
        if j.id in consumed:
            continue
        consumed.add(j.id)
        s = by_id.get(j.id)
        if s is None:
            out.append(j.copy())
            continue
        out.append(Card(
            id=j.id,
            type=j.type or s.type,
            title=j.title or s.title,
            content=j.content or s.content,
            tags=list(j.tags),
            meta=CardMeta(j.meta.version, j.meta.updatedAt),
        ))
    for s in secondary:
        if s.id in consumed:
            continue
        consumed.add(s.id)
        extra = s.copy()
        extra.type = extra.type or "unknown"
        out.append(extra)
    return out


def stamp_changes(merged: list[Card], previous: list[Card], now: int) -> list[Card]:
    """Bump version/updatedAt of cards whose text differs from ``previous``.

    Cards absent from ``previous`` are new and keep the meta they were
    created with.
    """
    before = {c.id: c for c in previous}
    for c in merged:
        old = before.get(c.id)
        if old is not None and not c.same_text(old):
            c.meta = CardMeta(version=old.meta.version + 1, updatedAt=now)
    return merged
