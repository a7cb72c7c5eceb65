import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict

log = logging.getLogger(__name__)

MEMORY_HEADER = "\n---\n## Learned Information\n"


class MemoryStoreError(Exception):
    """Raised when a user's memory file cannot be decoded."""


class MemoryStore:
    """Per-user key/value facts, one JSON file per user.

    Every call takes the same lock, so reads and read-modify-write cycles
    for all users are serialized.
    """

    def __init__(self, data_dir: Path) -> None:
        self.root = Path(data_dir) / "memory"
        self._lock = threading.Lock()

    def path(self, user_id: str) -> Path:
        return self.root / f"{user_id}.json"

    def _load(self, user_id: str) -> Dict[str, str]:
        path = self.path(user_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MemoryStoreError(f"malformed memory file {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise MemoryStoreError(f"memory file {path} is not a JSON object")
        for key, value in payload.items():
            if not isinstance(value, str):
                raise MemoryStoreError(f"memory file {path} has a non-string value for {key!r}")
        return payload

    def _save(self, user_id: str, data: Dict[str, str]) -> None:
        self.root.mkdir(mode=0o700, parents=True, exist_ok=True)
        path = self.path(user_id)
        path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.chmod(path, 0o600)

    def set(self, user_id: str, key: str, value: str) -> None:
        with self._lock:
            data = self._load(user_id)
            data[key] = value
            self._save(user_id, data)
        log.info("memory set for %s: %s", user_id, key)

    def get(self, user_id: str, key: str) -> str:
        with self._lock:
            return self._load(user_id).get(key, "")

    def delete(self, user_id: str, key: str) -> None:
        with self._lock:
            data = self._load(user_id)
            data.pop(key, None)
            self._save(user_id, data)
        log.info("memory deleted for %s: %s", user_id, key)

    def list(self, user_id: str) -> Dict[str, str]:
        with self._lock:
            return self._load(user_id)

    def render(self, user_id: str) -> str:
        """Markdown block for the system context, or "" when nothing is stored."""
        try:
            data = self.list(user_id)
        except (MemoryStoreError, OSError) as exc:
            log.warning("failed to load memory for %s: %s", user_id, exc)
            return ""
        if not data:
            return ""
        lines = [MEMORY_HEADER]
        for key, value in data.items():
            lines.append(f"- {key}: {value}\n")
        return "".join(lines)
