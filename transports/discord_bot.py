import logging
from typing import Optional

import discord

from core.router import InboundMessage, MessageRouter

log = logging.getLogger(__name__)


def to_inbound(message: discord.Message) -> InboundMessage:
    return InboundMessage(
        author_id=str(message.author.id),
        channel_id=str(message.channel.id),
        content=message.content or "",
        mention_ids=[str(user.id) for user in message.mentions],
        reference=message,
    )


class DiscordTransport(discord.Client):
    """Gateway client that feeds messages to the router and delivers replies."""

    def __init__(self):
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(intents=intents)
        self.router: Optional[MessageRouter] = None

    @property
    def bot_id(self) -> str:
        return str(self.user.id) if self.user else ""

    async def on_ready(self):
        log.info("Discord bot ready as %s", self.user)

    async def on_message(self, message: discord.Message):
        if self.router is None or not self.user:
            return
        if message.author.id == self.user.id:
            return
        await self.router.handle(to_inbound(message), bot_id=self.bot_id)

    async def _channel(self, channel_id: str):
        channel = self.get_channel(int(channel_id))
        if channel is None:
            channel = await self.fetch_channel(int(channel_id))
        return channel

    async def is_direct_message(self, channel_id: str) -> bool:
        channel = await self._channel(channel_id)
        return getattr(channel, "type", None) == discord.ChannelType.private

    async def trigger_typing(self, channel_id: str) -> None:
        channel = await self._channel(channel_id)
        await channel.typing()

    async def send(self, channel_id: str, text: str) -> None:
        channel = await self._channel(channel_id)
        await channel.send(text)

    async def send_reply(self, message: InboundMessage, text: str) -> None:
        original: discord.Message = message.reference
        await original.channel.send(text, reference=original, mention_author=False)


async def run_discord_bot(client: DiscordTransport, token: str) -> None:
    try:
        await client.start(token)
    finally:
        await client.close()
