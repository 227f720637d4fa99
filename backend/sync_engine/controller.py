"""Change propagation between the outline, index and narrative stores.

One ``SyncController`` owns the debounce timer and the re-entrancy hold.
File events restart the single shared debounce timer; when it fires, the
store that changed last decides the merge direction and the other two
stores are rewritten. While a hold is active, debounced events are dropped,
not queued: the pass holding it reads the latest state it needs itself.
Holds are released ``lock_release_s`` after a pass so that the watcher's
reports of our own writes land while the hold is still up.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from pathlib import Path
from typing import Any, Optional

from services.config_service import SyncSettings
from services.memory_service import MemoryService
from storage.fs_store import FSStore
from sync_engine.conflicts import prepare_batch
from sync_engine.models import Card, CardMeta, now_ms
from sync_engine.reconciler import merge_from_json, merge_from_secondary, stamp_changes
from sync_engine.transcoder import align_narrative, parse_outline, render_narrative, render_outline, split_narrative
from sync_engine.watcher import FileWatcher

logger = logging.getLogger(__name__)

SEED_CARD = {
    "id": "card_001",
    "type": "scene",
    "title": "Example Opening",
    "content": "This is a sample paragraph. Replace me.",
}


class SyncState(enum.Enum):
    IDLE = "idle"
    PENDING_DEBOUNCE = "pending_debounce"
    PROPAGATING = "propagating"


class Origin(enum.Enum):
    OUTLINE = "outline"
    INDEX = "index"
    NARRATIVE = "narrative"


class SyncController:
    def __init__(self, store: FSStore, memory: Optional[MemoryService] = None, settings: Optional[SyncSettings] = None):
        self.store = store
        self.memory = memory
        self.settings = settings or SyncSettings(data_dir=store.data_dir)
        self._mutex = threading.Lock()
        self._holds = 0
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[Path] = None
        self._release_timers: set[threading.Timer] = set()
        self._own: dict[Path, str] = {}
        self.passes = 0
        self.dropped = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        with self._mutex:
            if self._holds:
                return SyncState.PROPAGATING
            if self._timer is not None:
                return SyncState.PENDING_DEBOUNCE
            return SyncState.IDLE

    def wait_idle(self, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.state is SyncState.IDLE:
                return True
            time.sleep(0.01)
        return self.state is SyncState.IDLE

    def origin_of(self, path: Path) -> Optional[Origin]:
        path = Path(path)
        if path == self.store.outline_path:
            return Origin.OUTLINE
        if path == self.store.index_path:
            return Origin.INDEX
        if path == self.store.narrative_path:
            return Origin.NARRATIVE
        return None

    def _acquire(self, gated: bool) -> bool:
        with self._mutex:
            if gated and self._holds:
                self.dropped += 1
                return False
            self._holds += 1
            return True

    def _release(self, timer: Optional[threading.Timer] = None) -> None:
        with self._mutex:
            self._holds = max(0, self._holds - 1)
            if timer is not None:
                self._release_timers.discard(timer)

    def _release_later(self) -> None:
        delay = self.settings.lock_release_s
        if delay <= 0:
            self._release()
            return
        timer = threading.Timer(delay, lambda: self._release(timer))
        timer.daemon = True
        with self._mutex:
            self._release_timers.add(timer)
        timer.start()

    def _remember(self, path: Path, digest: str) -> None:
        with self._mutex:
            self._own[path] = digest

    # ------------------------------------------------------------------
    # File events
    # ------------------------------------------------------------------

    def make_watcher(self) -> FileWatcher:
        return FileWatcher(self.store.paths(), self.on_file_event, self.settings.poll_interval_s)

    def on_file_event(self, path: Path) -> None:
        path = Path(path)
        if self.origin_of(path) is None:
            return
        digest = self.store.digest(path)
        with self._mutex:
            # each remembered write excuses one event, later edits always count
            own = self._own.pop(path, None)
            if digest is not None and own == digest:
                logger.debug("ignoring own write to %s", path.name)
                return
            if self._timer is not None:
                self._timer.cancel()
            self._pending = path
            self._timer = threading.Timer(self.settings.debounce_s, self._debounce_fired)
            self._timer.daemon = True
            self._timer.start()

    def _debounce_fired(self) -> None:
        with self._mutex:
            path = self._pending
            self._pending = None
            self._timer = None
            if path is None:
                return
            if self._holds:
                self.dropped += 1
                logger.debug("pass for %s dropped, sync in progress", path.name)
                return
            self._holds += 1
        self._run_watch_pass(self.origin_of(path))

    def propagate(self, path: Path) -> bool:
        """Run one watch-triggered pass for ``path`` now; never raises."""
        origin = self.origin_of(path)
        if origin is None:
            return False
        if not self._acquire(gated=True):
            logger.debug("pass for %s dropped, sync in progress", Path(path).name)
            return False
        return self._run_watch_pass(origin)

    def _run_watch_pass(self, origin: Origin) -> bool:
        try:
            self._dispatch(origin)
            return True
        except Exception:
            logger.exception("propagation from %s failed", origin.value)
            return False
        finally:
            self._release_later()

    def _dispatch(self, origin: Origin) -> list[Card]:
        self.passes += 1
        if origin is Origin.OUTLINE:
            return self._from_outline()
        if origin is Origin.INDEX:
            return self._from_index()
        return self._from_narrative()

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def _write_index(self, cards: list[Card]) -> None:
        self._remember(self.store.index_path, self.store.write_index(cards))

    def _write_outline(self, cards: list[Card]) -> None:
        self._remember(self.store.outline_path, self.store.write_outline(render_outline(cards)))

    def _write_narrative(self, cards: list[Card]) -> None:
        self._remember(self.store.narrative_path, self.store.write_narrative(render_narrative(cards)))

    def _notify_memory(self, cards: list[Card], source: str) -> None:
        if self.memory is None:
            return
        try:
            self.memory.add_texts([{"text": c.content, "source": source, "tags": list(c.tags)} for c in cards])
        except Exception:
            logger.exception("memory store update failed (%s)", source)

    def _from_outline(self) -> list[Card]:
        index = self.store.read_index()
        outline = parse_outline(self.store.read_outline())
        merged = stamp_changes(merge_from_secondary(outline, index), index, now_ms())
        self._write_index(merged)
        self._write_narrative(merged)
        self._notify_memory(merged, "outline_change")
        logger.info("outline -> index/story updated (%d cards)", len(merged))
        return merged

    def _from_index(self) -> list[Card]:
        index = self.store.read_index()
        outline = parse_outline(self.store.read_outline())
        merged = merge_from_json(index, outline)
        self._write_outline(merged)
        self._write_narrative(merged)
        self._notify_memory(merged, "json_change")
        logger.info("index -> outline/story updated (%d cards)", len(merged))
        return merged

    def _from_narrative(self) -> list[Card]:
        index = self.store.read_index()
        paragraphs = align_narrative(self.store.read_narrative(), index)
        merged = stamp_changes(merge_from_secondary(paragraphs, index), index, now_ms())
        self._write_index(merged)
        self._write_outline(merged)
        self._notify_memory(merged, "story_txt_change")
        logger.info("story -> index/outline updated (%d cards)", len(merged))
        return merged

    def _full_pass(self) -> list[Card]:
        index = self.store.read_index()
        outline = parse_outline(self.store.read_outline())
        merged = stamp_changes(merge_from_secondary(outline, index), index, now_ms())
        self._write_index(merged)
        self._write_outline(merged)
        self._write_narrative(merged)
        return merged

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def bootstrap(self) -> list[Card]:
        self.store.ensure_files()
        outline = parse_outline(self.store.read_outline())
        index = self.store.read_index()
        story = self.store.read_narrative()
        self._acquire(gated=False)
        try:
            if not outline and not index and not story.strip():
                cards = [Card(**SEED_CARD, tags=[], meta=CardMeta(1, now_ms()))]
                source = "init"
                logger.info("initialized sample data")
            elif not outline and not index:
                cards = split_narrative(story)
                source = "story_txt"
                logger.info("converted %s -> structured cards", self.store.narrative_file)
            else:
                cards = self._full_pass()
                self._notify_memory(cards, "init")
                logger.info("initial sync complete (%d cards)", len(cards))
                return cards
            self._write_index(cards)
            self._write_outline(cards)
            self._write_narrative(cards)
            self._notify_memory(cards, source)
            return cards
        finally:
            self._release_later()

    def sync_now(self) -> list[Card]:
        self._acquire(gated=False)
        try:
            cards = self._full_pass()
        finally:
            self._release_later()
        self._notify_memory(cards, "manual_sync")
        logger.info("manual sync complete (%d cards)", len(cards))
        return cards

    def write_cards(self, payload: Any) -> list[Card]:
        """Accept a total card batch from the API.

        Raises a ``WriteRejected`` subclass without touching any store when
        the batch is invalid, too large or conflicts with the index.
        """
        current = self.store.read_index()
        batch = prepare_batch(
            payload,
            current,
            card_limit=self.settings.card_limit,
            tolerance_ms=self.settings.conflict_tolerance_ms,
            now=now_ms(),
        )
        self._acquire(gated=False)
        try:
            self._write_index(batch)
            self._write_outline(batch)
            self._write_narrative(batch)
        finally:
            self._release_later()
        self._notify_memory(batch, "ui_save")
        logger.info("api save: %d cards written", len(batch))
        return batch

    def write_story(self, text: str) -> list[Card]:
        self._acquire(gated=False)
        try:
            self._remember(self.store.narrative_path, self.store.write_narrative(text))
            self.passes += 1
            return self._from_narrative()
        finally:
            self._release_later()

    def read_cards(self) -> list[Card]:
        return self.store.read_index()

    def read_story(self) -> str:
        return self.store.read_narrative()

    def close(self) -> None:
        with self._mutex:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = None
            timers = list(self._release_timers)
            self._release_timers.clear()
            self._holds = 0
        for t in timers:
            t.cancel()
