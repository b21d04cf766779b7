"""Renderer for custom panels: list, progress or status."""

from __future__ import annotations

from typing import Any

from rich.console import Group
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from hud_core.formatting import truncate
from hud_core.models import PanelData
from hud_core.panels import content_width, is_placeholder, kv_table, make_panel

STATUS_ICONS = {
    "done": ("✓", "green"),
    "completed": ("✓", "green"),
    "ok": ("✓", "green"),
    "error": ("✗", "red"),
    "failed": ("✗", "red"),
    "warning": ("!", "yellow"),
    "running": ("●", "yellow"),
    "in_progress": ("●", "yellow"),
    "pending": ("○", "dim"),
}
MAX_ITEMS = 10


def item_line(item: dict[str, Any], width: int) -> Text:
    text = str(item.get("text") or item.get("name") or "")
    status = item.get("status")
    line = Text()
    if status in STATUS_ICONS:
        icon, color = STATUS_ICONS[status]
        line.append(f"{icon} ", style=color)
    else:
        line.append("• ", style="dim")
    line.append(truncate(text, width - 2))
    return line


def progress_block(progress: Any, width: int):
    if not isinstance(progress, dict):
        return None
    try:
        done = float(progress.get("done", 0))
        total = float(progress.get("total", 0))
    except (TypeError, ValueError):
        return None
    if total <= 0:
        return None
    label = Text(f"{int(done)}/{int(total)} ({done / total:.0%})", style="dim")
    table = Table.grid(expand=True)
    table.add_column(ratio=1)
    table.add_column(no_wrap=True)
    table.add_row(ProgressBar(total=total, completed=min(done, total), width=max(10, width - 16)), label)
    return table


def render(data: PanelData, runtime=None, width: int | None = None):
    if is_placeholder(data):
        return make_panel(Text("Loading...", style="dim"), data.title, data.status, runtime, width)
    if data.errors:
        return make_panel(Text(data.errors[0], style="red"), data.title, data.status, runtime, width)

    inner = content_width(width)
    renderer = data.meta.get("renderer", "list")
    parts = []

    if data.meta.get("summary"):
        parts.append(Text(truncate(str(data.meta["summary"]), inner)))

    if renderer == "progress":
        bar = progress_block(data.meta.get("progress"), inner)
        if bar is not None:
            parts.append(bar)

    if renderer == "status" and isinstance(data.meta.get("stats"), dict):
        parts.append(kv_table([(str(key), str(value)) for key, value in data.meta["stats"].items()]))

    for item in data.items[:MAX_ITEMS]:
        parts.append(item_line(item, inner))
    if len(data.items) > MAX_ITEMS:
        parts.append(Text(f"… {len(data.items) - MAX_ITEMS} more", style="dim"))

    if not parts:
        parts.append(Text("No data", style="dim"))
    return make_panel(Group(*parts), data.title, data.status, runtime, width)
