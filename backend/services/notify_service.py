from __future__ import annotations

import logging
import time

import httpx

logger = logging.getLogger(__name__)


class EditorNotifier:
    """Fire-and-forget client for the ``/__vscode_notify`` hook.

    Editor integrations call ``notify`` when a story file changes; delivery
    failures are logged and reported as ``False`` only.
    """

    def __init__(self, url: str, timeout: float = 2.0, transport: httpx.BaseTransport | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self.transport = transport

    def notify(self, path: str, ts: int | None = None) -> bool:
        if not self.url:
            return False
        body = {"path": path, "ts": ts if ts is not None else int(time.time() * 1000)}
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(self.url, json=body)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.debug("editor notify to %s failed: %s", self.url, e)
            return False
        return True
