#!/usr/bin/env python3
"""Launcher for the Story Sync backend."""

from __future__ import annotations

import argparse
import os
import signal
import socket
import subprocess
import sys
import time
import urllib.error
import urllib.request
import webbrowser
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent
BACKEND_DIR = ROOT_DIR / "backend"


def find_available_port(start_port: int) -> int:
    port = start_port
    while True:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if sock.connect_ex(("127.0.0.1", port)) != 0:
                return port
        port += 1


def poll_backend_ready(base_url: str, timeout_seconds: int = 60) -> bool:
    deadline = time.time() + timeout_seconds
    health_url = f"{base_url}/api/health"
    while time.time() < deadline:
        try:
            with urllib.request.urlopen(health_url, timeout=2) as response:
                if response.status == 200:
                    return True
        except (urllib.error.URLError, TimeoutError):
            time.sleep(0.5)
    return False


def terminate_process(process: subprocess.Popen) -> None:
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=8)
    except subprocess.TimeoutExpired:
        process.kill()


def main() -> int:
    parser = argparse.ArgumentParser(description="Launch the Story Sync backend")
    parser.add_argument("--port", type=int, default=3456, help="First port to try")
    parser.add_argument("--data-dir", help="Directory holding story_outline.txt, index.json and story.txt")
    parser.add_argument("--no-watch", action="store_true", help="Do not watch the story files for edits")
    parser.add_argument("--no-browser", action="store_true", help="Do not auto-open browser")
    args = parser.parse_args()

    backend_port = find_available_port(args.port)
    backend_url = f"http://127.0.0.1:{backend_port}"

    env = os.environ.copy()
    if args.data_dir:
        env["STORYSYNC_DATA_DIR"] = str(Path(args.data_dir).resolve())
    if args.no_watch:
        env["STORYSYNC_WATCH"] = "0"

    backend_cmd = [
        sys.executable,
        "-m",
        "uvicorn",
        "main:app",
        "--host",
        "127.0.0.1",
        "--port",
        str(backend_port),
    ]
    backend_proc = subprocess.Popen(backend_cmd, cwd=BACKEND_DIR, env=env)

    try:
        if not poll_backend_ready(backend_url):
            print("[ERROR] backend did not become ready in time", file=sys.stderr)
            return 1

        print(f"[launcher] backend ready: {backend_url}")
        if not args.no_browser:
            webbrowser.open(f"{backend_url}/docs")

        def handle_signal(_signum: int, _frame: object) -> None:
            raise KeyboardInterrupt

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

        while True:
            if backend_proc.poll() is not None:
                return backend_proc.returncode or 0
            time.sleep(0.5)
    except KeyboardInterrupt:
        return 0
    finally:
        terminate_process(backend_proc)


if __name__ == "__main__":
    raise SystemExit(main())
