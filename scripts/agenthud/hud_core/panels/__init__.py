"""Panel rendering helpers."""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table

from hud_core.formatting import format_countdown
from hud_core.models import PanelData, PanelRuntimeState

STATUS_BORDER = {
    "ok": "cyan",
    "warn": "yellow",
    "error": "red",
    "loading": "dim",
}

RUNNING_BORDER = "yellow"
FLASH_BORDER = "green"


def border_for(status: str, runtime: PanelRuntimeState | None = None) -> str:
    if runtime is not None:
        if runtime.visual.is_running:
            return RUNNING_BORDER
        if runtime.visual.just_refreshed or runtime.visual.just_completed:
            return FLASH_BORDER
    return STATUS_BORDER.get(status, "cyan")


def title_suffix(runtime: PanelRuntimeState | None) -> str:
    """Right-hand side of a panel title: run state, flash or countdown."""
    if runtime is None:
        return ""
    if runtime.visual.is_running:
        return "running..."
    if runtime.visual.just_completed:
        return "done"
    if runtime.visual.just_refreshed:
        return "refreshed"
    return format_countdown(runtime.countdown)


def panel_title(title: str, extra: str = "") -> str:
    if extra:
        return f"[bold]{title}[/bold] [dim]{extra}[/dim]"
    return f"[bold]{title}[/bold]"


def make_panel(
    body,
    title: str,
    status: str,
    runtime: PanelRuntimeState | None = None,
    width: int | None = None,
    extra: str = "",
) -> Panel:
    suffix = title_suffix(runtime)
    return Panel(
        body,
        title=panel_title(title, extra),
        title_align="left",
        subtitle=f"[dim]{suffix}[/dim]" if suffix else None,
        subtitle_align="right",
        border_style=border_for(status, runtime),
        width=width,
    )


def kv_table(rows: list[tuple[str, str]]) -> Table:
    table = Table(box=None, show_header=False, expand=True, pad_edge=False)
    table.add_column("key", style="bold")
    table.add_column("value", style="default")
    for key, value in rows:
        table.add_row(key, value)
    return table


def content_width(width: int | None) -> int:
    # borders plus one column of padding either side
    return max(10, (width or 80) - 4)


def is_placeholder(data: PanelData) -> bool:
    return bool(data.meta.get("placeholder"))
