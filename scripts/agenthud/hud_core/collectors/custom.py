"""User-defined panels fed by a shell command or a JSON file."""

from __future__ import annotations

import json
from typing import Any

from hud_core.collectors import resolve_path
from hud_core.errors import ProviderError
from hud_core.fsio import CommandRunner, LocalFileSystem
from hud_core.models import PanelData

GENERIC_FIELDS = ("summary", "progress", "stats")


def _title(name: str) -> str:
    return name[:1].upper() + name[1:]


def _items(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    items = []
    for row in raw:
        if isinstance(row, dict):
            items.append(row)
        elif row is not None:
            items.append({"text": str(row)})
    return items


def from_json(name: str, payload: Any, renderer: str) -> PanelData:
    if not isinstance(payload, dict):
        payload = {"items": payload}
    meta = {"renderer": renderer}
    for key in GENERIC_FIELDS:
        if payload.get(key) is not None:
            meta[key] = payload[key]
    return PanelData(
        key=name,
        title=str(payload.get("title") or _title(name)),
        items=_items(payload.get("items")),
        meta=meta,
    )


def _failed(name: str, renderer: str, message: str) -> PanelData:
    return PanelData(key=name, title=_title(name), status="error", meta={"renderer": renderer}, errors=[message])


async def collect(name: str, params: dict[str, Any], runner: CommandRunner | None = None, fs=None) -> PanelData:
    runner = runner or CommandRunner(cwd=params.get("project_dir"))
    fs = fs or LocalFileSystem()
    renderer = params.get("renderer") or "list"

    command = params.get("command")
    if command:
        try:
            result = await runner.run(command)
        except ProviderError as exc:
            return _failed(name, renderer, str(exc))
        output = result.stdout.strip()
        try:
            return from_json(name, json.loads(output), renderer)
        except json.JSONDecodeError:
            lines = [line for line in output.splitlines() if line.strip()]
            return PanelData(
                key=name,
                title=_title(name),
                items=[{"text": line} for line in lines],
                meta={"renderer": renderer},
            )

    source = params.get("source")
    if source:
        path = resolve_path(params, source)
        if not fs.exists(path):
            return _failed(name, renderer, "File not found")
        try:
            return from_json(name, json.loads(fs.read_text(path)), renderer)
        except OSError as exc:
            return _failed(name, renderer, str(exc))
        except json.JSONDecodeError:
            return _failed(name, renderer, "Invalid JSON")

    return _failed(name, renderer, "No command or source configured")
