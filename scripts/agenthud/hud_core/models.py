"""Shared model contracts for panel data flow and session state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

ICONS = {
    "User": ">",
    "Response": "<",
    "Edit": "~",
    "Write": "~",
    "Read": "○",
    "Bash": "$",
    "Glob": "*",
    "Grep": "*",
    "WebFetch": "@",
    "WebSearch": "@",
    "Task": "»",
    "TodoWrite": "~",
    "AskUserQuestion": "?",
    "Default": "$",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def icon_for(label: str) -> str:
    return ICONS.get(label, ICONS["Default"])


@dataclass
class PanelData:
    key: str
    title: str
    status: str = "ok"
    items: list[dict[str, Any]] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: utc_now().isoformat())

    @property
    def error(self) -> str | None:
        return self.errors[0] if self.errors else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "title": self.title,
            "status": self.status,
            "items": self.items,
            "meta": self.meta,
            "errors": self.errors,
            "timestamp": self.timestamp,
        }


@dataclass
class TodoItem:
    content: str
    status: str = "pending"
    active_form: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content, "status": self.status, "active_form": self.active_form}


@dataclass
class ActivityEntry:
    """One line of the live activity feed.

    ``count`` is only set when consecutive identical tool calls were collapsed,
    and ``sub_activities`` only on a delegation entry matched to a sub-log.
    """

    timestamp: datetime
    kind: str
    icon: str
    label: str
    detail: str = ""
    count: int | None = None
    sub_activities: list[ActivityEntry] | None = None
    sub_activity_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind,
            "icon": self.icon,
            "label": self.label,
            "detail": self.detail,
        }
        if self.count is not None:
            payload["count"] = self.count
        if self.sub_activities is not None:
            payload["sub_activities"] = [entry.to_dict() for entry in self.sub_activities]
            payload["sub_activity_count"] = self.sub_activity_count
        return payload


@dataclass
class SessionState:
    status: str = "none"
    activities: list[ActivityEntry] = field(default_factory=list)
    token_count: int = 0
    session_start_time: datetime | None = None
    todos: list[TodoItem] | None = None
    model_name: str | None = None
    last_turn_duration_ms: int | None = None
    error: str | None = None

    @classmethod
    def empty(cls, error: str | None = None) -> SessionState:
        return cls(error=error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "activities": [entry.to_dict() for entry in self.activities],
            "token_count": self.token_count,
            "session_start_time": self.session_start_time.isoformat() if self.session_start_time else None,
            "todos": [todo.to_dict() for todo in self.todos] if self.todos is not None else None,
            "model_name": self.model_name,
            "last_turn_duration_ms": self.last_turn_duration_ms,
            "error": self.error,
        }


@dataclass
class PanelConfig:
    name: str
    kind: str
    enabled: bool = True
    interval_ms: int | None = None
    params: dict[str, Any] = field(default_factory=dict)
    label: str = ""

    @property
    def is_manual(self) -> bool:
        return self.interval_ms is None

    @property
    def interval_seconds(self) -> int | None:
        if self.interval_ms is None:
            return None
        return max(1, self.interval_ms // 1000)


@dataclass
class VisualFeedback:
    is_running: bool = False
    just_refreshed: bool = False
    just_completed: bool = False


@dataclass
class PanelRuntimeState:
    config: PanelConfig
    last_snapshot: PanelData
    countdown: int | None = None
    visual: VisualFeedback = field(default_factory=VisualFeedback)
    request_seq: int = 0
    applied_seq: int = 0
