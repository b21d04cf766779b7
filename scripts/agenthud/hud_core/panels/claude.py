"""Claude session panel renderer."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from rich.console import Group
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from hud_core.formatting import (
    clock_time,
    format_duration_ms,
    format_elapsed,
    format_tokens,
    parse_iso_timestamp,
    truncate,
)
from hud_core.models import PanelData, utc_now
from hud_core.panels import content_width, is_placeholder, make_panel

STATUS_LABEL = {
    "running": "running",
    "completed": "done",
    "idle": "idle",
    "none": "",
}

EMPTY_MESSAGE = {
    "none": "No active session",
    "idle": "No recent activity (session idle)",
}

TODO_ICONS = {
    "completed": ("✓", "green"),
    "in_progress": ("◐", "yellow"),
    "pending": ("○", None),
}

TIME_COLUMN = 10


def activity_style(item: dict[str, Any]) -> str:
    kind = item.get("kind")
    if kind == "user":
        return "white"
    if kind == "response":
        return "green"
    if item.get("label") == "Bash":
        return "grey62"
    return "dim"


def activity_text(item: dict[str, Any], max_width: int) -> str:
    label = item.get("label", "")
    detail = item.get("detail") or ""
    count = item.get("count")
    suffix = f" (x{count})" if count else ""
    if not detail:
        return f"{label}{suffix}"
    prefix = f"{label}: "
    return prefix + truncate(detail, max(0, max_width - len(prefix) - len(suffix))) + suffix


def _time(value: str | None) -> str:
    parsed = parse_iso_timestamp(value)
    return clock_time(parsed) if parsed else ""


def activity_table(items: list[dict[str, Any]], width: int) -> Table:
    table = Table(box=None, show_header=False, expand=True, pad_edge=False)
    table.add_column("time", style="dim", no_wrap=True, width=TIME_COLUMN)
    table.add_column("icon", no_wrap=True, width=1)
    table.add_column("activity", no_wrap=True, overflow="ellipsis")

    text_width = width - TIME_COLUMN - 4
    for item in items:
        style = activity_style(item)
        table.add_row(
            f"[{_time(item.get('timestamp'))}]",
            item.get("icon", ""),
            Text(activity_text(item, text_width), style=style),
        )
        for sub in item.get("sub_activities") or []:
            table.add_row("", "", Text(f"└ {sub.get('icon', '')} {activity_text(sub, text_width - 4)}", style="dim"))
        remaining = (item.get("sub_activity_count") or 0) - len(item.get("sub_activities") or [])
        if remaining > 0:
            table.add_row("", "", Text(f"  … {remaining} more", style="dim"))
    return table


def todo_section(todos: list[dict[str, Any]], width: int):
    done = sum(1 for todo in todos if todo.get("status") == "completed")
    rows = [Rule(f"Todo ({done}/{len(todos)})", style="dim", align="left")]
    for todo in todos:
        status = todo.get("status", "pending")
        icon, color = TODO_ICONS.get(status, TODO_ICONS["pending"])
        text = todo.get("active_form") if status == "in_progress" and todo.get("active_form") else todo.get("content", "")
        line = Text()
        line.append(icon, style=color or "")
        line.append(" ")
        line.append(truncate(text, width - 2), style="dim" if status == "completed" else "")
        rows.append(line)
    return Group(*rows)


def title_extra(meta: dict[str, Any], now: datetime | None = None) -> str:
    parts = []
    status = STATUS_LABEL.get(meta.get("session_status") or "none", "")
    if status:
        parts.append(status)
    elapsed = format_elapsed(parse_iso_timestamp(meta.get("session_start_time")), now or utc_now())
    if elapsed:
        parts.append(elapsed)
    return " · ".join(parts)


def footer(meta: dict[str, Any]) -> Text:
    parts = [format_tokens(int(meta.get("token_count") or 0))]
    if meta.get("model_name"):
        parts.append(str(meta["model_name"]))
    if meta.get("last_turn_duration_ms") is not None:
        parts.append(f"last turn {format_duration_ms(meta['last_turn_duration_ms'])}")
    return Text(" · ".join(parts), style="dim")


def render(data: PanelData, runtime=None, width: int | None = None, now: datetime | None = None):
    meta = data.meta
    inner = content_width(width)

    if is_placeholder(data):
        return make_panel(Text("Loading...", style="dim"), data.title, data.status, runtime, width)
    if data.errors:
        return make_panel(Text(data.errors[0], style="red"), data.title, "error", runtime, width)

    extra = title_extra(meta, now)
    status = meta.get("session_status") or "none"
    if not data.items:
        message = EMPTY_MESSAGE.get(status, "No activity yet")
        return make_panel(Group(Text(message, style="dim"), footer(meta)), data.title, data.status, runtime, width, extra)

    parts = [activity_table(data.items, inner)]
    todos = meta.get("todos")
    if todos:
        parts.append(todo_section(todos, inner))
    parts.append(footer(meta))
    return make_panel(Group(*parts), data.title, data.status, runtime, width, extra)
