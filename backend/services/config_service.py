from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

BACKEND_DIR = Path(__file__).resolve().parents[1]
DEFAULT_DATA_DIR = BACKEND_DIR.parent / "data"
CONFIG_NAME = "storysync.yaml"

ENV_KEYS = {
    "data_dir": "STORYSYNC_DATA_DIR",
    "outline_file": "STORYSYNC_OUTLINE_FILE",
    "index_file": "STORYSYNC_INDEX_FILE",
    "narrative_file": "STORYSYNC_NARRATIVE_FILE",
    "memory_file": "STORYSYNC_MEMORY_FILE",
    "card_limit": "STORYSYNC_CARD_LIMIT",
    "conflict_tolerance_ms": "STORYSYNC_CONFLICT_TOLERANCE_MS",
    "debounce_s": "STORYSYNC_DEBOUNCE_S",
    "lock_release_s": "STORYSYNC_LOCK_RELEASE_S",
    "poll_interval_s": "STORYSYNC_POLL_INTERVAL_S",
    "watch": "STORYSYNC_WATCH",
    "notify_url": "STORYSYNC_NOTIFY_URL",
    "notify_timeout_s": "STORYSYNC_NOTIFY_TIMEOUT_S",
    "log_level": "LOG_LEVEL",
}


@dataclass(frozen=True)
class SyncSettings:
    data_dir: Path = field(default=DEFAULT_DATA_DIR)
    outline_file: str = "story_outline.txt"
    index_file: str = "index.json"
    narrative_file: str = "story.txt"
    memory_file: str = "mem0.json"
    card_limit: int = 100
    conflict_tolerance_ms: int = 5
    debounce_s: float = 0.08
    lock_release_s: float = 0.08
    poll_interval_s: float = 0.05
    watch: bool = True
    notify_url: str = ""
    notify_timeout_s: float = 2.0
    log_level: str = "INFO"

    @property
    def memory_path(self) -> Path:
        return self.data_dir / self.memory_file


def _coerce(name: str, kind: type, value: Any) -> Any:
    try:
        if kind is bool:
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in {"1", "true", "yes", "on"}:
                return True
            if text in {"0", "false", "no", "off", ""}:
                return False
            raise ValueError(value)
        if kind is Path:
            return Path(str(value)).expanduser()
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"invalid value for {name}: {value!r}") from e


_KINDS = {"data_dir": Path, "card_limit": int, "conflict_tolerance_ms": int, "debounce_s": float, "lock_release_s": float,
          "poll_interval_s": float, "watch": bool, "notify_timeout_s": float}


def _apply(settings: SyncSettings, values: dict[str, Any]) -> SyncSettings:
    known = {f.name for f in fields(SyncSettings)}
    changes = {k: _coerce(k, _KINDS.get(k, str), v) for k, v in values.items() if k in known and v is not None}
    return replace(settings, **changes)


def read_yaml_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    return data if isinstance(data, dict) else {}


def load_settings(path: Path | None = None, environ: dict[str, str] | None = None) -> SyncSettings:
    """Defaults, then the YAML file, then environment variables."""
    env = os.environ if environ is None else environ
    settings = SyncSettings()
    if env.get("STORYSYNC_DATA_DIR"):
        settings = _apply(settings, {"data_dir": env["STORYSYNC_DATA_DIR"]})
    cfg_path = path or (Path(env["STORYSYNC_CONFIG"]) if env.get("STORYSYNC_CONFIG") else settings.data_dir / CONFIG_NAME)
    settings = _apply(settings, read_yaml_config(cfg_path))
    return _apply(settings, {k: env[v] for k, v in ENV_KEYS.items() if v in env})
