"""Polling watcher for the three story files.

Compares ``(mtime_ns, size)`` of each path between scans and reports any
difference, including creation and deletion, to a callback.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Signature = Optional[tuple[int, int]]


def _signature(path: Path) -> Signature:
    try:
        st = path.stat()
    except OSError:
        return None
    return (st.st_mtime_ns, st.st_size)


class FileWatcher:
    def __init__(self, paths: list[Path], callback: Callable[[Path], None], poll_interval: float = 0.05):
        self.paths = [Path(p) for p in paths]
        self.callback = callback
        self.poll_interval = poll_interval
        self._seen: dict[Path, Signature] = {p: _signature(p) for p in self.paths}
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._running = False

    def start(self) -> None:
        if self._running:
            return
        self._seen = {p: _signature(p) for p in self.paths}
        self._stop_event.clear()
        self._running = True
        self._thread = threading.Thread(target=self._run, name="story-watcher", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        if not self._running:
            return
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def poll_once(self) -> list[Path]:
        """Scan once and fire the callback for each changed path."""
        changed = []
        for p in self.paths:
            sig = _signature(p)
            if sig != self._seen.get(p):
                self._seen[p] = sig
                changed.append(p)
        for p in changed:
            try:
                self.callback(p)
            except Exception:
                logger.exception("watch callback failed for %s", p.name)
        return changed

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(self.poll_interval)
