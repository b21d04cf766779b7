"""Sessions running in other projects on this machine."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from hud_core.collectors import project_dir_from
from hud_core.formatting import compact_relative_age, fold_newlines
from hud_core.fsio import LocalFileSystem
from hud_core.models import PanelData, utc_now
from hud_core.session import LOG_SUFFIX, list_projects, projects_root

ACTIVE_THRESHOLD_MS = 5 * 60 * 1000
LAST_MESSAGE_SCAN_LINES = 100


def newest_log(directory: Path, fs) -> tuple[Path, float] | None:
    try:
        names = [name for name in fs.list_dir(directory) if name.endswith(LOG_SUFFIX)]
    except OSError:
        return None
    newest = None
    for name in names:
        try:
            mtime = fs.stat(directory / name).mtime
        except OSError:
            continue
        if newest is None or mtime > newest[1]:
            newest = (directory / name, mtime)
    return newest


def last_assistant_message(path: Path, fs) -> str | None:
    try:
        lines = [line for line in fs.read_text(path).splitlines() if line.strip()]
    except OSError:
        return None
    for line in reversed(lines[-LAST_MESSAGE_SCAN_LINES:]):
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(entry, dict) or entry.get("type") != "assistant":
            continue
        message = entry.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, list):
            continue
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text" and block.get("text"):
                return fold_newlines(block["text"])
    return None


def collect(params: dict[str, Any], fs=None, now: datetime | None = None) -> PanelData:
    fs = fs or LocalFileSystem()
    now = now or utc_now()
    home = Path(params["home"]) if params.get("home") else None
    threshold = (params.get("active_threshold_ms") or ACTIVE_THRESHOLD_MS) / 1000
    current = str(project_dir_from(params)).rstrip("/\\")

    projects = list_projects(home, fs)
    root = projects_root(home)

    sessions = []
    for project in projects:
        if project.decoded == current:
            continue
        found = newest_log(root / project.encoded, fs)
        if found is None:
            continue
        path, mtime = found
        sessions.append({"name": project.name, "path": project.decoded, "file": path, "mtime": mtime})

    sessions.sort(key=lambda row: row["mtime"], reverse=True)
    stamp = now.timestamp()
    active_count = sum(1 for row in sessions if stamp - row["mtime"] < threshold)

    names: list[str] = []
    for row in sessions:
        if row["name"] not in names:
            names.append(row["name"])

    recent = None
    if sessions:
        top = sessions[0]
        recent = {
            "project_name": top["name"],
            "project_path": top["path"],
            "last_modified": datetime.fromtimestamp(top["mtime"], tz=now.tzinfo).isoformat(),
            "last_message": last_assistant_message(top["file"], fs),
            "is_active": stamp - top["mtime"] < threshold,
            "relative_time": compact_relative_age(stamp - top["mtime"]),
        }

    return PanelData(
        key="other_sessions",
        title="Other Sessions",
        status="ok" if sessions else "warn",
        items=[{"name": name} for name in names],
        meta={
            "total_projects": len(projects),
            "active_count": active_count,
            "recent_session": recent,
        },
    )
