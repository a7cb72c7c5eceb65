import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from openai import AsyncOpenAI, OpenAIError

log = logging.getLogger(__name__)

MAX_TOOL_ROUNDS = 8

ToolResult = Union[str, Awaitable[str]]
ToolHandler = Callable[[str, Dict[str, Any]], ToolResult]


class EngineError(Exception):
    """Raised when a chat turn cannot produce a reply."""


@dataclass
class Tool:
    name: str
    description: str
    parameters: Dict[str, Any]
    handler: ToolHandler

    def to_openai(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class Engine:
    """Chat-completions loop with tool calling.

    ``chat`` takes an ordered list of OpenAI-style message dicts and returns
    the final reply plus the conversation extended with every assistant and
    tool message produced during the turn.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        *,
        system_prompt: str = "",
        max_tool_rounds: int = MAX_TOOL_ROUNDS,
    ) -> None:
        self.client = client
        self.model = model
        self.system_prompt = system_prompt
        self.max_tool_rounds = max_tool_rounds
        self._tools: Dict[str, Tool] = {}

    @property
    def tools(self) -> Dict[str, Tool]:
        return dict(self._tools)

    def register_tool(
        self,
        name: str,
        description: str,
        parameters: Dict[str, Any],
        handler: ToolHandler,
    ) -> None:
        if name in self._tools:
            raise ValueError(f"tool already registered: {name}")
        self._tools[name] = Tool(name, description, parameters, handler)

    async def close(self) -> None:
        await self.client.close()

    async def chat(self, messages: List[dict], *, user_id: str) -> Tuple[str, List[dict]]:
        conversation = list(messages)
        if self.system_prompt and not (conversation and conversation[0].get("role") == "system"):
            conversation.insert(0, {"role": "system", "content": self.system_prompt})

        for _ in range(self.max_tool_rounds):
            message = await self._complete(conversation)
            tool_calls = list(getattr(message, "tool_calls", None) or [])
            entry: Dict[str, Any] = {"role": "assistant", "content": message.content or ""}
            if not tool_calls:
                conversation.append(entry)
                return entry["content"], conversation
            entry["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.function.name,
                        "arguments": call.function.arguments,
                    },
                }
                for call in tool_calls
            ]
            conversation.append(entry)
            for call in tool_calls:
                result = await self._run_tool(user_id, call.function.name, call.function.arguments)
                conversation.append(
                    {
                        "role": "tool",
                        "tool_call_id": call.id,
                        "name": call.function.name,
                        "content": result,
                    }
                )
        raise EngineError(f"no reply after {self.max_tool_rounds} tool rounds")

    async def _complete(self, conversation: List[dict]):
        kwargs: Dict[str, Any] = {"model": self.model, "messages": conversation}
        if self._tools:
            kwargs["tools"] = [tool.to_openai() for tool in self._tools.values()]
        try:
            response = await self.client.chat.completions.create(**kwargs)
        except OpenAIError as exc:
            raise EngineError(str(exc)) from exc
        if not response.choices:
            raise EngineError("empty completion")
        return response.choices[0].message

    async def _run_tool(self, user_id: str, name: str, raw_arguments: Optional[str]) -> str:
        tool = self._tools.get(name)
        if tool is None:
            log.warning("model requested unknown tool %s", name)
            return f"error: unknown tool {name}"
        try:
            arguments = json.loads(raw_arguments or "{}")
        except json.JSONDecodeError as exc:
            return f"error: invalid arguments: {exc}"
        if not isinstance(arguments, dict):
            return "error: arguments must be a JSON object"
        try:
            result = tool.handler(user_id, arguments)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            log.warning("tool %s failed for %s: %s", name, user_id, exc)
            return f"error: {exc}"
        return str(result)
