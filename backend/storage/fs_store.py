from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from filelock import FileLock

from sync_engine.models import Card, cards_from_json, cards_to_json

logger = logging.getLogger(__name__)


def text_digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass
class FSStore:
    """The three on-disk representations of the card list.

    Reads never raise: a missing, unreadable or malformed file reads as empty.
    Writes return the digest of the text written so the caller can recognise
    its own changes when the watcher reports them.
    """

    data_dir: Path
    outline_file: str = "story_outline.txt"
    index_file: str = "index.json"
    narrative_file: str = "story.txt"

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def outline_path(self) -> Path:
        return self.data_dir / self.outline_file

    @property
    def index_path(self) -> Path:
        return self.data_dir / self.index_file

    @property
    def narrative_path(self) -> Path:
        return self.data_dir / self.narrative_file

    def paths(self) -> list[Path]:
        return [self.outline_path, self.index_path, self.narrative_path]

    def ensure_files(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        for path in self.paths():
            if not path.exists():
                path.write_text("", encoding="utf-8")

    def _read_text(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("read %s failed: %s", path.name, e)
            return ""

    def _write_text(self, path: Path, text: str) -> str:
        path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(str(path) + ".lock"):
            path.write_text(text, encoding="utf-8")
        return text_digest(text)

    def read_outline(self) -> str:
        return self._read_text(self.outline_path)

    def read_narrative(self) -> str:
        return self._read_text(self.narrative_path)

    def read_index(self) -> list[Card]:
        raw = self._read_text(self.index_path)
        if not raw.strip():
            return []
        try:
            return cards_from_json(json.loads(raw))
        except json.JSONDecodeError as e:
            logger.warning("index %s is not valid JSON, treating as empty: %s", self.index_path.name, e)
            return []

    def write_outline(self, text: str) -> str:
        return self._write_text(self.outline_path, text)

    def write_narrative(self, text: str) -> str:
        return self._write_text(self.narrative_path, text)

    def write_index(self, cards: list[Card]) -> str:
        return self._write_text(self.index_path, json.dumps(cards_to_json(cards), ensure_ascii=False, indent=2))

    def digest(self, path: Path) -> str | None:
        try:
            return text_digest(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError):
            return None
