"""Git panel renderer."""

from __future__ import annotations

from rich.console import Group
from rich.table import Table
from rich.text import Text

from hud_core.formatting import truncate
from hud_core.models import PanelData
from hud_core.panels import content_width, is_placeholder, make_panel

MAX_COMMITS = 5


def summary_line(meta: dict) -> Text:
    line = Text()
    line.append(str(meta.get("branch") or "-"), style="bold green")
    commits = int(meta.get("commits") or 0)
    line.append(f" · {commits} commit{'s' if commits != 1 else ''} today")
    line.append(" · ")
    line.append(f"+{meta.get('added', 0)}", style="green")
    line.append(" ")
    line.append(f"-{meta.get('deleted', 0)}", style="red")
    line.append(f" · {meta.get('files', 0)} files")
    uncommitted = int(meta.get("uncommitted") or 0)
    if uncommitted:
        line.append(f" · {uncommitted} uncommitted", style="yellow")
    return line


def render(data: PanelData, runtime=None, width: int | None = None):
    if is_placeholder(data):
        return make_panel(Text("Loading...", style="dim"), data.title, data.status, runtime, width)
    if not data.meta.get("branch") and data.errors:
        return make_panel(Text(data.errors[0], style="yellow"), data.title, data.status, runtime, width)

    table = Table(box=None, show_header=False, expand=True, pad_edge=False)
    table.add_column("hash", style="dim", no_wrap=True)
    table.add_column("message", no_wrap=True, overflow="ellipsis")

    inner = content_width(width)
    if not data.items:
        table.add_row("-", "No commits today")
    for item in data.items[:MAX_COMMITS]:
        table.add_row(str(item.get("hash", "")), truncate(str(item.get("message", "")), inner - 9))

    parts = [summary_line(data.meta), table]
    if data.errors:
        parts.append(Text(data.errors[0], style="yellow"))
    return make_panel(Group(*parts), data.title, data.status, runtime, width)
