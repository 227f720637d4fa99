from __future__ import annotations

import hashlib
import json
import logging
import math
import re
import threading
import time
import uuid
from collections import Counter
from pathlib import Path
from typing import Any

from filelock import FileLock

logger = logging.getLogger(__name__)

EMBED_DIM = 256


def _tokenize(text: str) -> list[str]:
    raw = re.findall(r"[一-龥A-Za-z0-9]{2,}", text.lower())
    out: list[str] = []
    for tok in raw:
        if re.fullmatch(r"[一-龥]+", tok):
            out.extend([tok[i:i+2] for i in range(max(1, len(tok)-1))])
        else:
            out.append(tok)
    return out


def embed_text(text: str, dim: int = EMBED_DIM) -> list[float]:
    """Hashed bag-of-words vector, L2-normalised."""
    vec = [0.0] * dim
    for tok, n in Counter(_tokenize(text)).items():
        h = int(hashlib.md5(tok.encode("utf-8")).hexdigest(), 16)
        vec[h % dim] += n if (h >> 8) & 1 else -n
    norm = math.sqrt(sum(v * v for v in vec)) or 1.0
    return [round(v / norm, 6) for v in vec]


def cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    return dot / (na * nb + 1e-12)


class MemoryService:
    """File-backed embedding store fed with card contents after each sync."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> list[dict[str, Any]]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError):
            return []
        return [r for r in data if isinstance(r, dict)] if isinstance(data, list) else []

    def save(self, records: list[dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(str(self.path) + ".lock"):
            self.path.write_text(json.dumps(records, ensure_ascii=False, indent=2), encoding="utf-8")

    def _record(self, text: str, source: str, tags: list[str]) -> dict[str, Any]:
        return {
            "id": str(uuid.uuid4()),
            "text": text,
            "source": source or "auto",
            "tags": list(tags or []),
            "embedding": embed_text(text),
            "created": int(time.time() * 1000),
        }

    def add_text(self, text: str, source: str = "auto", tags: list[str] | None = None) -> dict[str, Any]:
        with self._lock:
            records = self.load()
            item = self._record(text, source, tags or [])
            records.append(item)
            self.save(records)
        return item

    def add_texts(self, entries: list[dict[str, Any]]) -> bool:
        with self._lock:
            records = self.load()
            seen = {r.get("text") for r in records}
            added = 0
            for e in entries:
                text = str(e.get("text") or "")
                if not text.strip() or text in seen:
                    continue
                seen.add(text)
                records.append(self._record(text, str(e.get("source") or "auto"), e.get("tags") or []))
                added += 1
            if added:
                self.save(records)
        logger.debug("memory: %d new of %d entries", added, len(entries))
        return True

    def search(self, query: str, top_k: int = 5) -> list[dict[str, Any]]:
        if not query:
            return []
        records = self.load()
        if not records:
            return []
        qvec = embed_text(query)
        scored = [(cosine(qvec, r.get("embedding") or []), r) for r in records]
        scored.sort(key=lambda x: x[0], reverse=True)
        return [{"id": r["id"], "text": r["text"], "score": round(s, 6), "tags": r.get("tags", [])} for s, r in scored[:max(0, top_k)]]
