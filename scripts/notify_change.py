"""Tell a running backend that a story file changed.

Meant to be wired into an editor's on-save hook:

    python scripts/notify_change.py data/story_outline.txt
    python scripts/notify_change.py --sync      # force a full sync pass
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "backend"))

from services.config_service import load_settings  # noqa: E402
from services.notify_service import EditorNotifier  # noqa: E402

DEFAULT_URL = "http://127.0.0.1:3456/__vscode_notify"


def main() -> int:
    parser = argparse.ArgumentParser(description="Notify the Story Sync backend of a file change")
    parser.add_argument("path", nargs="?", default="__manual_ping")
    parser.add_argument("--sync", action="store_true", help="Request a full sync pass")
    parser.add_argument("--url", help=f"Notify endpoint (default: STORYSYNC_NOTIFY_URL or {DEFAULT_URL})")
    args = parser.parse_args()

    settings = load_settings()
    notifier = EditorNotifier(args.url or settings.notify_url or DEFAULT_URL, timeout=settings.notify_timeout_s)
    ok = notifier.notify("__manual_sync" if args.sync else args.path)
    print("[notify] delivered" if ok else "[notify] backend not reachable")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
