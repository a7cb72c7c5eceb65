import json
from typing import Any, Dict

from .engine import Engine
from .memory_store import MemoryStore

KEY_SCHEMA = {
    "type": "string",
    "description": "A short identifier for what to remember (e.g., 'user_name', 'favorite_language')",
}


def _require(arguments: Dict[str, Any], name: str) -> str:
    value = arguments.get(name)
    if not isinstance(value, str):
        raise ValueError(f"missing string argument: {name}")
    return value


def register_memory_tools(engine: Engine, memory: MemoryStore) -> None:
    """Expose the memory store to the model as four tools."""

    def save_entry(user_id: str, arguments: Dict[str, Any]) -> str:
        memory.set(user_id, _require(arguments, "key"), _require(arguments, "value"))
        return "Saved"

    def get_entry(user_id: str, arguments: Dict[str, Any]) -> str:
        return memory.get(user_id, _require(arguments, "key"))

    def delete_entry(user_id: str, arguments: Dict[str, Any]) -> str:
        memory.delete(user_id, _require(arguments, "key"))
        return "Deleted"

    def list_entries(user_id: str, arguments: Dict[str, Any]) -> str:
        entries = memory.list(user_id)
        if not entries:
            return "{}"
        return json.dumps(entries, ensure_ascii=False, separators=(",", ":"))

    engine.register_tool(
        "saveMemoryEntry",
        "Save information to memory. Use this when user wants to remember something.",
        {
            "type": "object",
            "properties": {
                "key": KEY_SCHEMA,
                "value": {"type": "string", "description": "The information to remember"},
            },
            "required": ["key", "value"],
        },
        save_entry,
    )
    engine.register_tool(
        "getMemoryEntry",
        "Retrieve information from memory.",
        {
            "type": "object",
            "properties": {
                "key": {"type": "string", "description": "The identifier of the information to recall"},
            },
            "required": ["key"],
        },
        get_entry,
    )
    engine.register_tool(
        "deleteMemoryEntry",
        "Delete information from memory.",
        {
            "type": "object",
            "properties": {
                "key": {"type": "string", "description": "The identifier of the information to forget"},
            },
            "required": ["key"],
        },
        delete_entry,
    )
    engine.register_tool(
        "listMemoryEntries",
        "List all saved information.",
        {"type": "object", "properties": {}},
        list_entries,
    )
