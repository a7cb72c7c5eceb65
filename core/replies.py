import logging
from pathlib import Path
from typing import Dict, List

import yaml

log = logging.getLogger(__name__)

DISCORD_MESSAGE_LIMIT = 2000
DEFAULT_LANGUAGE = "ja"
MESSAGES_PATH = Path(__file__).with_name("messages.yaml")


def split_message(content: str, limit: int = DISCORD_MESSAGE_LIMIT) -> List[str]:
    """Split ``content`` into parts of at most ``limit`` characters.

    Each cut lands just after the last newline inside the window; a window
    without one is cut hard at ``limit``.
    """

    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")
    if len(content) <= limit:
        return [content]
    parts: List[str] = []
    while content:
        if len(content) <= limit:
            parts.append(content)
            break
        cut = limit
        newline = content.rfind("\n", 0, limit)
        if newline > 0:
            cut = newline + 1
        parts.append(content[:cut])
        content = content[cut:]
    return parts


class Notices:
    """Localized notices shown to chat users."""

    def __init__(self, language: str = DEFAULT_LANGUAGE, path: Path = MESSAGES_PATH) -> None:
        catalog: Dict[str, Dict[str, str]] = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if language not in catalog:
            log.warning("no notices for language %r, falling back to %s", language, DEFAULT_LANGUAGE)
            language = DEFAULT_LANGUAGE
        self.language = language
        self._messages = catalog.get(language, {})

    @property
    def engine_error(self) -> str:
        return self._messages.get("engine_error", "error")

    @property
    def empty_reply(self) -> str:
        return self._messages.get("empty_reply", "(no response)")
