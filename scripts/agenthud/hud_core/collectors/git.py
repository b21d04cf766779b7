"""Git activity collector (fail-soft)."""

from __future__ import annotations

import logging
from typing import Any

from hud_core.collectors import clean_output
from hud_core.errors import ProviderError
from hud_core.fsio import CommandRunner
from hud_core.formatting import parse_iso_timestamp
from hud_core.models import PanelData

logger = logging.getLogger(__name__)

DEFAULT_COMMANDS = {
    "branch": "git branch --show-current",
    "commits": 'git log --since=midnight --format="%h|%aI|%s"',
    "stats": 'git log --since=midnight --numstat --format=""',
    "uncommitted": "git status --porcelain",
}


def parse_commits(output: str) -> list[dict[str, Any]]:
    commits = []
    for line in clean_output(output).splitlines():
        line = clean_output(line)
        if not line:
            continue
        commit_hash, _, rest = line.partition("|")
        timestamp, _, message = rest.partition("|")
        parsed = parse_iso_timestamp(timestamp)
        commits.append(
            {
                "hash": commit_hash,
                "message": message,
                "timestamp": parsed.isoformat() if parsed else None,
            }
        )
    return commits


def parse_numstat(output: str) -> dict[str, int]:
    added = 0
    deleted = 0
    files: set[str] = set()
    for line in output.strip().splitlines():
        parts = line.split("\t")
        if len(parts) < 2:
            continue
        filename = parts[2] if len(parts) > 2 else ""
        if filename:
            files.add(filename)
        # binary files show "-" for both counts
        if parts[0] == "-" or parts[1] == "-":
            continue
        added += _to_int(parts[0])
        deleted += _to_int(parts[1])
    return {"added": added, "deleted": deleted, "files": len(files)}


def _to_int(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        return 0


def count_lines(output: str) -> int:
    return len([line for line in output.strip().splitlines() if line.strip()])


async def _run(runner: CommandRunner, command: str, errors: list[str]) -> str | None:
    try:
        result = await runner.run(command)
    except ProviderError as exc:
        logger.debug("git command failed: %s", exc)
        if str(exc) not in errors:
            errors.append(str(exc))
        return None
    return result.stdout


async def collect(params: dict[str, Any], runner: CommandRunner | None = None) -> PanelData:
    runner = runner or CommandRunner(cwd=params.get("project_dir"))
    commands = {**DEFAULT_COMMANDS, **(params.get("commands") or {})}
    errors: list[str] = []

    branch_output = await _run(runner, commands["branch"], errors)
    if branch_output is None:
        # not a repository (or git missing): nothing else will work either
        return PanelData(
            key="git",
            title="Git",
            status="warn",
            meta={"branch": None, "commits": 0, "added": 0, "deleted": 0, "files": 0, "uncommitted": 0},
            errors=errors,
        )

    commits_output = await _run(runner, commands["commits"], errors)
    stats_output = await _run(runner, commands["stats"], errors)
    uncommitted_output = await _run(runner, commands["uncommitted"], errors)

    commits = parse_commits(commits_output or "")
    stats = parse_numstat(stats_output or "")

    return PanelData(
        key="git",
        title="Git",
        status="warn" if errors else "ok",
        items=commits,
        meta={
            "branch": clean_output(branch_output) or None,
            "commits": len(commits),
            **stats,
            "uncommitted": count_lines(uncommitted_output or ""),
        },
        errors=errors,
    )
