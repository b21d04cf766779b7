"""Test results panel renderer."""

from __future__ import annotations

from rich.console import Group
from rich.text import Text

from hud_core.formatting import compact_relative_age, parse_iso_timestamp, truncate
from hud_core.models import PanelData, utc_now
from hud_core.panels import content_width, is_placeholder, make_panel

MAX_FAILURES = 5


def counts_line(meta: dict) -> Text:
    line = Text()
    line.append(f"✓ {meta.get('passed', 0)} passed", style="green")
    failed = int(meta.get("failed") or 0)
    if failed:
        line.append(f"  ✗ {failed} failed", style="red")
    skipped = int(meta.get("skipped") or 0)
    if skipped:
        line.append(f"  ○ {skipped} skipped", style="dim")
    return line


def provenance(meta: dict) -> str:
    parts = []
    if meta.get("hash"):
        parts.append(str(meta["hash"]))
    ran_at = parse_iso_timestamp(meta.get("timestamp"))
    if ran_at is not None:
        parts.append(compact_relative_age((utc_now() - ran_at).total_seconds()))
    return " · ".join(parts)


def render(data: PanelData, runtime=None, width: int | None = None):
    if is_placeholder(data):
        return make_panel(Text("Loading...", style="dim"), data.title, data.status, runtime, width)
    if "passed" not in data.meta:
        message = data.errors[0] if data.errors else "No test results"
        return make_panel(Text(message, style="yellow"), data.title, data.status, runtime, width)

    inner = content_width(width)
    parts = [counts_line(data.meta)]
    if data.meta.get("is_outdated"):
        behind = int(data.meta.get("commits_behind") or 0)
        parts.append(Text(f"⚠ outdated ({behind} commit{'s' if behind != 1 else ''} behind)", style="yellow"))
    for failure in data.items[:MAX_FAILURES]:
        parts.append(Text(truncate(f"✗ {failure.get('file', '')}", inner), style="red"))
        parts.append(Text(truncate(f"  • {failure.get('name', '')}", inner), style="dim"))
    if len(data.items) > MAX_FAILURES:
        parts.append(Text(f"  … {len(data.items) - MAX_FAILURES} more", style="dim"))

    return make_panel(Group(*parts), data.title, data.status, runtime, width, provenance(data.meta))
