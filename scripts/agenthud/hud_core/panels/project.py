"""Project panel renderer."""

from __future__ import annotations

from rich.text import Text

from hud_core.models import PanelData
from hud_core.panels import is_placeholder, kv_table, make_panel


def render(data: PanelData, runtime=None, width: int | None = None):
    if is_placeholder(data):
        return make_panel(Text("Loading...", style="dim"), data.title, data.status, runtime, width)

    meta = data.meta
    rows = [("Name", str(meta.get("name") or "-"))]
    language = meta.get("language")
    if language:
        rows.append(("Language", str(language)))
    if meta.get("license"):
        rows.append(("License", str(meta["license"])))
    if meta.get("stack"):
        rows.append(("Stack", ", ".join(meta["stack"])))
    if meta.get("file_count"):
        rows.append(("Files", f"{meta['file_count']} .{meta.get('file_extension', '')} · {meta.get('line_count', 0):,} lines"))
    rows.append(("Deps", f"{meta.get('prod_deps', 0)} prod · {meta.get('dev_deps', 0)} dev"))
    if data.errors:
        rows.append(("Error", data.errors[0]))

    return make_panel(kv_table(rows), data.title, data.status, runtime, width)
