"""Stand-ins for the OpenAI client and the chat transport."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock


def completion(content="", tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def tool_call(call_id, name, arguments):
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


def fake_client(*responses):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=list(responses))
    client.close = AsyncMock()
    return client


class FakeTransport:
    def __init__(self, direct_channels=()):
        self.direct_channels = set(direct_channels)
        self.sent = []
        self.replies = []
        self.typing = []
        self.send_reply_error = None

    async def is_direct_message(self, channel_id):
        return channel_id in self.direct_channels

    async def trigger_typing(self, channel_id):
        self.typing.append(channel_id)

    async def send(self, channel_id, text):
        self.sent.append((channel_id, text))

    async def send_reply(self, message, text):
        if self.send_reply_error is not None:
            raise self.send_reply_error
        self.replies.append((message.channel_id, text))
