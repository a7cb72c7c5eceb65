import asyncio
import hashlib
import json
import logging
import os
import tempfile
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List

log = logging.getLogger(__name__)

MAX_SESSION_MESSAGES = 100
SESSION_EXPIRY_SECONDS = 30 * 60
SWEEP_INTERVAL_SECONDS = 5 * 60


class SessionStoreError(Exception):
    """Raised when a persisted session cannot be decoded."""


def truncate_messages(messages: List[dict], limit: int) -> List[dict]:
    """Keep the newest ``limit`` messages, starting on a user turn."""

    if len(messages) <= limit:
        return messages
    trimmed = messages[len(messages) - limit :]
    while trimmed and trimmed[0].get("role") != "user":
        trimmed = trimmed[1:]
    return trimmed


def session_file_name(user_id: str) -> str:
    digest = hashlib.sha256(user_id.encode("utf-8")).digest()
    return f"{digest[:16].hex()}.json"


class SessionPersistence:
    """Reads and writes one conversation file per user under ``sessions/``."""

    def __init__(self, data_dir: Path, *, max_messages: int = MAX_SESSION_MESSAGES) -> None:
        self.root = Path(data_dir) / "sessions"
        self.max_messages = max_messages

    def path(self, user_id: str) -> Path:
        return self.root / session_file_name(user_id)

    def save(self, user_id: str, messages: List[dict]) -> None:
        filtered = [m for m in messages if m.get("role") != "system"]
        if not filtered:
            return
        filtered = truncate_messages(filtered, self.max_messages)
        payload = {
            "user_id": user_id,
            "updated_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "messages": filtered,
        }
        self.root.mkdir(mode=0o700, parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".session-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path(user_id))
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def load(self, user_id: str) -> List[dict]:
        path = self.path(user_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SessionStoreError(f"malformed session file {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise SessionStoreError(f"session file {path} is not a JSON object")
        messages = payload.get("messages")
        if messages is None:
            return []
        if not isinstance(messages, list):
            raise SessionStoreError(f"session file {path} has no message list")
        return messages


@dataclass
class Session:
    user_id: str
    messages: List[dict] = field(default_factory=list)
    last_used: float = 0.0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class SessionCache:
    """In-memory sessions, loaded lazily from disk and evicted when idle."""

    def __init__(
        self,
        persistence: SessionPersistence,
        *,
        expiry: float = SESSION_EXPIRY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.persistence = persistence
        self.expiry = expiry
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._sessions

    def get(self, user_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(user_id)
            if session is None:
                session = Session(user_id=user_id)
                try:
                    session.messages = self.persistence.load(user_id)
                except (SessionStoreError, OSError) as exc:
                    log.warning("failed to load session for %s: %s", user_id, exc)
                self._sessions[user_id] = session
            session.last_used = self._clock()
            return session

    def save(self, session: Session) -> None:
        self.persistence.save(session.user_id, session.messages)

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [
                user_id
                for user_id, session in self._sessions.items()
                if now - session.last_used > self.expiry and not session.lock.locked()
            ]
            for user_id in expired:
                del self._sessions[user_id]
        if expired:
            log.info("evicted %d idle session(s)", len(expired))
        return len(expired)

    async def run_sweeper(self, interval: float = SWEEP_INTERVAL_SECONDS) -> None:
        """Sweep on a fixed period until the task is cancelled."""

        while True:
            await asyncio.sleep(interval)
            self.sweep()
