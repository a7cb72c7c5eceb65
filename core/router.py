import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from .engine import Engine
from .memory_store import MemoryStore
from .replies import DISCORD_MESSAGE_LIMIT, Notices, split_message
from .sessions import SessionCache

log = logging.getLogger(__name__)


@dataclass
class InboundMessage:
    author_id: str
    channel_id: str
    content: str
    mention_ids: Sequence[str] = field(default_factory=list)
    reference: Any = None


def strip_mentions(content: str, bot_id: str) -> str:
    for token in (f"<@{bot_id}>", f"<@!{bot_id}>"):
        content = content.replace(token, "")
    return content.strip()


def detect_trigger(message: InboundMessage, *, bot_id: str, prefix: str, is_dm: bool) -> Optional[str]:
    """Return the text the bot should answer, or None to stay silent."""

    content = message.content
    if is_dm:
        return content
    if bot_id in message.mention_ids:
        return strip_mentions(content, bot_id)
    if content.startswith(prefix):
        return content[len(prefix) :].strip()
    return None


class MessageRouter:
    """Turns inbound chat messages into engine turns and sends the replies."""

    def __init__(
        self,
        *,
        engine: Engine,
        sessions: SessionCache,
        memory: MemoryStore,
        transport,
        system_prompt: str = "",
        prefix: str = "!",
        notices: Optional[Notices] = None,
        message_limit: int = DISCORD_MESSAGE_LIMIT,
    ) -> None:
        self.engine = engine
        self.sessions = sessions
        self.memory = memory
        self.transport = transport
        self.system_prompt = system_prompt
        self.prefix = prefix
        self.notices = notices or Notices()
        self.message_limit = message_limit

    async def handle(self, message: InboundMessage, *, bot_id: str) -> None:
        if message.author_id == bot_id:
            return
        try:
            is_dm = await self.transport.is_direct_message(message.channel_id)
        except Exception as exc:
            log.debug("could not resolve channel %s: %s", message.channel_id, exc)
            return
        content = detect_trigger(message, bot_id=bot_id, prefix=self.prefix, is_dm=is_dm)
        if not content:
            return

        try:
            await self.transport.trigger_typing(message.channel_id)
        except Exception as exc:
            log.debug("typing indicator failed in %s: %s", message.channel_id, exc)

        session = self.sessions.get(message.author_id)
        async with session.lock:
            session.messages.append({"role": "user", "content": content})
            chat_messages = self._assemble_context(message.author_id, session.messages)
            try:
                reply, updated = await self.engine.chat(chat_messages, user_id=message.author_id)
            except Exception as exc:
                log.exception("engine error for %s: %s", message.author_id, exc)
                await self._send_error(message.channel_id)
                return
            if updated and updated[0].get("role") == "system":
                updated = updated[1:]
            session.messages = list(updated)
            try:
                self.sessions.save(session)
            except Exception as exc:
                log.warning("failed to save session for %s: %s", message.author_id, exc)

        await self._deliver(message, reply)

    def _assemble_context(self, user_id: str, messages: List[dict]) -> List[dict]:
        memory_block = self.memory.render(user_id)
        if not memory_block:
            return list(messages)
        system = {"role": "system", "content": self.system_prompt + memory_block}
        return [system, *messages]

    async def _send_error(self, channel_id: str) -> None:
        try:
            await self.transport.send(channel_id, self.notices.engine_error)
        except Exception as exc:
            log.warning("failed to send error notice to %s: %s", channel_id, exc)

    async def _deliver(self, message: InboundMessage, reply: str) -> None:
        if not reply:
            reply = self.notices.empty_reply
        for part in split_message(reply, self.message_limit):
            try:
                await self.transport.send_reply(message, part)
            except Exception as exc:
                log.warning("send error in %s: %s", message.channel_id, exc)
