"""Bottom status line: hotkeys and config warnings."""

from __future__ import annotations

from rich.console import Group
from rich.text import Text


def render(hotkeys, warnings: list[str] | None = None):
    line = Text(no_wrap=True, overflow="ellipsis")
    for index, hotkey in enumerate(hotkeys):
        if index:
            line.append("  ")
        line.append(hotkey.key, style="bold cyan")
        line.append(f": {hotkey.label}", style="dim")
    if not warnings:
        return line
    rows = [line]
    for warning in warnings[:3]:
        rows.append(Text(f"⚠ {warning}", style="yellow", no_wrap=True, overflow="ellipsis"))
    return Group(*rows)
