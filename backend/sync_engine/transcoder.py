"""Text grammars for the outline and narrative stores.

Outline blocks look like::

    --CARD_START id:card_001
    Type: scene
    Title: Example Opening
    Content:
    This is a sample paragraph.
    --CARD_END

The narrative store is plain prose: card contents separated by blank lines.
It carries no ids, so parsing it either synthesizes ids (``split_narrative``)
or lines paragraphs up with an existing card list, by content first and
then by position (``align_narrative``).
"""

from __future__ import annotations

import re

from sync_engine.models import Card, CardMeta, card_id, next_card_id

CARD_START = re.compile(r"^--CARD_START id:(.+)$")
CARD_END = re.compile(r"^--CARD_END$")
META_TYPE = re.compile(r"^Type:\s*(.*)$", re.I)
META_TITLE = re.compile(r"^Title:\s*(.*)$", re.I)
META_CONTENT = re.compile(r"^Content:\s*$", re.I)
PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def parse_outline(text: str) -> list[Card]:
    lines = text.replace("\r\n", "\n").split("\n")
    cards: list[Card] = []
    i = 0
    while i < len(lines):
        start = CARD_START.match(lines[i])
        if not start:
            i += 1
            continue
        cid = start.group(1).strip()
        i += 1
        ctype: str | None = None
        title: str | None = None
        while i < len(lines) and not META_CONTENT.match(lines[i]) and not CARD_END.match(lines[i]):
            m_type = META_TYPE.match(lines[i])
            m_title = META_TITLE.match(lines[i])
            if m_type and ctype is None:
                ctype = m_type.group(1).strip()
            elif m_title and title is None:
                title = m_title.group(1).strip()
            i += 1
        if i < len(lines) and META_CONTENT.match(lines[i]):
            i += 1
        body: list[str] = []
        while i < len(lines) and not CARD_END.match(lines[i]):
            body.append(lines[i])
            i += 1
        if i < len(lines):
            i += 1
        cards.append(Card(id=cid, type=ctype or "", title=title or "", content="\n".join(body).strip(), tags=[], meta=CardMeta(), has_meta=False))
    return cards


def render_outline(cards: list[Card]) -> str:
    blocks = []
    for c in cards:
        blocks.append("\n".join([
            f"--CARD_START id:{c.id}",
            f"Type: {c.type}",
            f"Title: {c.title}",
            "Content:",
            c.content,
            "--CARD_END",
            "",
        ]))
    return "\n".join(blocks)


def _paragraphs(text: str) -> list[str]:
    return [p.strip() for p in PARAGRAPH_BREAK.split(text.replace("\r\n", "\n")) if p.strip()]


def split_narrative(text: str, start: int = 1) -> list[Card]:
    return [
        Card(id=card_id(start + n), type="scene", title=f"Paragraph {n + 1}", content=p, tags=[], meta=CardMeta(), has_meta=False)
        for n, p in enumerate(_paragraphs(text))
    ]


def align_narrative(text: str, cards: list[Card]) -> list[Card]:
    """Parse narrative text against ``cards``.

    A paragraph whose text equals an unclaimed card's content keeps that
    card's identity. Remaining paragraphs take the id, type and title of the
    card at the same position when it is still unclaimed; the rest become
    new scene cards with fresh ids. Cards that claim no paragraph are left
    out, so a merge keeps them unchanged.
    """
    paragraphs = _paragraphs(text)
    free: dict[str, list[int]] = {}
    for i, c in enumerate(cards):
        free.setdefault(c.content.strip(), []).append(i)
    slots: list[int | None] = []
    for p in paragraphs:
        matches = free.get(p)
        slots.append(matches.pop(0) if matches else None)
    claimed = {i for i in slots if i is not None}
    for n, slot in enumerate(slots):
        if slot is None and n < len(cards) and n not in claimed:
            slots[n] = n
            claimed.add(n)

    out: list[Card] = []
    known = list(cards)
    for n, (p, slot) in enumerate(zip(paragraphs, slots)):
        if slot is not None:
            ref = cards[slot]
            out.append(Card(id=ref.id, type=ref.type, title=ref.title, content=p, tags=[], meta=CardMeta(), has_meta=False))
            continue
        new = Card(id=next_card_id(known), type="scene", title=f"Paragraph {n + 1}", content=p, tags=[], meta=CardMeta(), has_meta=False)
        known.append(new)
        out.append(new)
    return out


def render_narrative(cards: list[Card]) -> str:
    return "\n\n".join(c.content for c in cards)
