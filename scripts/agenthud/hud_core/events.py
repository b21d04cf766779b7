"""Typed records for one line of an assistant session log.

A session log is newline-delimited JSON. ``parse_record`` turns one line into a
``UserRecord``, ``AssistantRecord``, ``SystemRecord`` or ``OtherRecord``, and
returns ``None`` for anything that is not a JSON object; callers skip those.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from hud_core.formatting import parse_iso_timestamp
from hud_core.models import TodoItem

USAGE_FIELDS = ("input_tokens", "cache_read_input_tokens", "output_tokens")


@dataclass
class ContentBlock:
    type: str
    text: str = ""
    name: str = ""
    input: dict[str, Any] = field(default_factory=dict)


@dataclass
class EventRecord:
    kind: str
    timestamp: datetime | None = None


@dataclass
class UserRecord(EventRecord):
    text: str = ""
    todos: list[TodoItem] | None = None


@dataclass
class AssistantRecord(EventRecord):
    blocks: list[ContentBlock] = field(default_factory=list)
    tokens: int = 0
    model: str | None = None


@dataclass
class SystemRecord(EventRecord):
    subtype: str = ""
    duration_ms: int | None = None


@dataclass
class OtherRecord(EventRecord):
    pass


def _as_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(0, int(value))


def usage_tokens(usage: Any) -> int:
    if not isinstance(usage, dict):
        return 0
    return sum(_as_int(usage.get(name)) for name in USAGE_FIELDS)


def _blocks(content: Any) -> list[ContentBlock]:
    if not isinstance(content, list):
        return []
    blocks: list[ContentBlock] = []
    for raw in content:
        if not isinstance(raw, dict):
            continue
        block_input = raw.get("input")
        blocks.append(
            ContentBlock(
                type=str(raw.get("type") or ""),
                text=raw.get("text") if isinstance(raw.get("text"), str) else "",
                name=raw.get("name") if isinstance(raw.get("name"), str) else "",
                input=block_input if isinstance(block_input, dict) else {},
            )
        )
    return blocks


def _user_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    for block in _blocks(content):
        if block.type == "text":
            return block.text
    return ""


def _todos(payload: Any) -> list[TodoItem] | None:
    if not isinstance(payload, dict):
        return None
    raw = payload.get("newTodos")
    if not isinstance(raw, list):
        return None
    todos = []
    for row in raw:
        if not isinstance(row, dict):
            continue
        todos.append(
            TodoItem(
                content=str(row.get("content", "")),
                status=str(row.get("status", "pending")),
                active_form=str(row.get("activeForm", "")),
            )
        )
    return todos


def parse_record(line: str) -> EventRecord | None:
    line = line.strip()
    if not line:
        return None
    try:
        payload = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None

    timestamp = parse_iso_timestamp(payload.get("timestamp"))
    record_type = payload.get("type")
    message = payload.get("message") if isinstance(payload.get("message"), dict) else {}

    if record_type == "user":
        return UserRecord(
            kind="user",
            timestamp=timestamp,
            text=_user_text(message.get("content")),
            todos=_todos(payload.get("toolUseResult")),
        )
    if record_type == "assistant":
        model = message.get("model")
        return AssistantRecord(
            kind="assistant",
            timestamp=timestamp,
            blocks=_blocks(message.get("content")),
            tokens=usage_tokens(message.get("usage")),
            model=model if isinstance(model, str) and model else None,
        )
    if record_type == "system":
        duration = payload.get("durationMs")
        return SystemRecord(
            kind="system",
            timestamp=timestamp,
            subtype=str(payload.get("subtype") or ""),
            duration_ms=_as_int(duration) if duration is not None else None,
        )
    return OtherRecord(kind="other", timestamp=timestamp)


def iter_records(lines: list[str]):
    for line in lines:
        record = parse_record(line)
        if record is not None:
            yield record
