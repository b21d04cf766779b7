"""Other sessions panel renderer."""

from __future__ import annotations

from rich.console import Group
from rich.text import Text

from hud_core.formatting import truncate
from hud_core.models import PanelData
from hud_core.panels import content_width, is_placeholder, make_panel

MAX_NAMES = 5


def render(data: PanelData, runtime=None, width: int | None = None):
    if is_placeholder(data):
        return make_panel(Text("Loading...", style="dim"), data.title, data.status, runtime, width)

    inner = content_width(width)
    meta = data.meta
    names = [item["name"] for item in data.items]
    if not names:
        return make_panel(Text("No other sessions", style="dim"), data.title, data.status, runtime, width)

    shown = ", ".join(names[:MAX_NAMES])
    if len(names) > MAX_NAMES:
        shown += f" +{len(names) - MAX_NAMES}"
    parts = [
        Text(truncate(f"{len(names)} projects: {shown}", inner)),
    ]
    active = int(meta.get("active_count") or 0)
    parts.append(Text(f"{active} active", style="green" if active else "dim"))

    recent = meta.get("recent_session")
    if recent:
        marker = "●" if recent.get("is_active") else "○"
        header = Text()
        header.append(f"{marker} ", style="green" if recent.get("is_active") else "dim")
        header.append(str(recent.get("project_name", "")), style="bold")
        header.append(f" · {recent.get('relative_time', '')}", style="dim")
        parts.append(header)
        if recent.get("last_message"):
            parts.append(Text(truncate(f'  "{recent["last_message"]}"', inner), style="dim"))

    return make_panel(Group(*parts), data.title, data.status, runtime, width)
