"""Session activity engine.

Finds the live assistant session log for a project and replays a bounded
trailing window of it into a ``SessionState``: status, activity feed, token
usage and todo list. Every call recomputes the state from the files on disk;
nothing is carried over between calls.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PureWindowsPath

from hud_core.events import AssistantRecord, EventRecord, SystemRecord, UserRecord, iter_records
from hud_core.formatting import fold_newlines, strip_ansi
from hud_core.fsio import LocalFileSystem
from hud_core.models import ICONS, ActivityEntry, SessionState, TodoItem, icon_for, utc_now

logger = logging.getLogger(__name__)

LOG_SUFFIX = ".jsonl"
MAX_LINES_TO_SCAN = 200
START_TIME_SCAN_LINES = 50
DEFAULT_MAX_ACTIVITIES = 10
DEFAULT_SESSION_TIMEOUT_MS = 60 * 60 * 1000
RUNNING_WINDOW_SECONDS = 30
MIN_RESPONSE_LENGTH = 10
MAX_SUB_ACTIVITIES = 3

TODO_TOOL = "TodoWrite"
DELEGATION_TOOL = "Task"
STOP_SUBTYPE = "stop_hook_summary"
TURN_DURATION_SUBTYPE = "turn_duration"

DETAIL_KEYS = ("pattern", "query", "description")
SEPARATOR_RE = re.compile(r"[/\\]")


def projects_root(home: Path | None = None) -> Path:
    return Path(home or Path.home()) / ".claude" / "projects"


def encode_project_path(project_path: str | Path) -> str:
    """/Users/me/app -> -Users-me-app (the assistant's own directory naming)."""
    return SEPARATOR_RE.sub("-", str(project_path))


def session_dir_for(project_path: str | Path, home: Path | None = None) -> Path:
    return projects_root(home) / encode_project_path(project_path)


def _log_names(fs, directory: Path) -> list[str]:
    return [name for name in fs.list_dir(directory) if name.endswith(LOG_SUFFIX)]


def locate_active_session(
    session_dir: str | Path,
    timeout_ms: int,
    fs=None,
    now: datetime | None = None,
) -> Path | None:
    """Return the live log in ``session_dir``, or None when there is none.

    The newest file by mtime wins; on a tie the larger file wins since it is
    more likely the live continuation. The winner must have been modified within
    ``timeout_ms`` of ``now``.
    """
    fs = fs or LocalFileSystem()
    session_dir = Path(session_dir)
    if not fs.exists(session_dir):
        return None

    latest: Path | None = None
    latest_key: tuple[float, int] | None = None
    for name in _log_names(fs, session_dir):
        path = session_dir / name
        stat = fs.stat(path)
        key = (stat.mtime, stat.size)
        if latest_key is None or key > latest_key:
            latest, latest_key = path, key

    if latest is None or latest_key is None:
        return None

    cutoff = (now or utc_now()).timestamp() - timeout_ms / 1000
    if latest_key[0] > cutoff:
        return latest
    return None


def tool_detail(tool_input: dict) -> str:
    command = tool_input.get("command")
    if isinstance(command, str) and command:
        return strip_ansi(fold_newlines(command))
    file_path = tool_input.get("file_path")
    if isinstance(file_path, str) and file_path:
        return PureWindowsPath(file_path).name
    for key in DETAIL_KEYS:
        value = tool_input.get(key)
        if isinstance(value, str) and value:
            return strip_ansi(value)
    return ""


def classify_status(last_timestamp: datetime | None, last_kind: str | None, now: datetime) -> str:
    if last_timestamp is None:
        return "none"
    elapsed = (now - last_timestamp).total_seconds()
    if elapsed < RUNNING_WINDOW_SECONDS:
        if last_kind in ("stop", "response"):
            return "completed"
        return "running"
    return "completed"


@dataclass
class _Replay:
    now: datetime
    activities: list[ActivityEntry] = field(default_factory=list)
    tokens: int = 0
    last_timestamp: datetime | None = None
    last_kind: str | None = None
    todos: list[TodoItem] | None = None
    model_name: str | None = None
    last_turn_duration_ms: int | None = None

    @property
    def stamp(self) -> datetime:
        return self.last_timestamp or self.now

    def feed(self, record: EventRecord) -> None:
        if isinstance(record, UserRecord):
            self._user(record)
        elif isinstance(record, AssistantRecord):
            self._assistant(record)
        elif isinstance(record, SystemRecord):
            self._system(record)

    def _user(self, record: UserRecord) -> None:
        if record.timestamp is not None:
            self.last_timestamp = record.timestamp
        if record.text:
            self.activities.append(
                ActivityEntry(
                    timestamp=self.stamp,
                    kind="user",
                    icon=ICONS["User"],
                    label="User",
                    detail=fold_newlines(record.text),
                )
            )
        if record.todos is not None:
            self.todos = record.todos
        self.last_kind = "user"

    def _assistant(self, record: AssistantRecord) -> None:
        if record.timestamp is not None:
            self.last_timestamp = record.timestamp
        if record.model:
            self.model_name = record.model

        for block in record.blocks:
            if block.type == "tool_use":
                self._tool(block.name or "Tool", tool_detail(block.input))
            elif block.type == "text" and len(block.text) > MIN_RESPONSE_LENGTH:
                self.activities.append(
                    ActivityEntry(
                        timestamp=self.stamp,
                        kind="response",
                        icon=ICONS["Response"],
                        label="Response",
                        detail=fold_newlines(block.text),
                    )
                )
                self.last_kind = "response"

        self.tokens += record.tokens

    def _tool(self, name: str, detail: str) -> None:
        self.last_kind = "tool"
        if name == TODO_TOOL:
            return

        previous = self.activities[-1] if self.activities else None
        if previous is not None and previous.kind == "tool" and previous.label == name and previous.detail == detail:
            previous.count = (previous.count or 1) + 1
            previous.timestamp = self.stamp
            return

        self.activities.append(
            ActivityEntry(timestamp=self.stamp, kind="tool", icon=icon_for(name), label=name, detail=detail)
        )

    def _system(self, record: SystemRecord) -> None:
        if record.subtype == STOP_SUBTYPE:
            self.last_kind = "stop"
            if record.timestamp is not None:
                self.last_timestamp = record.timestamp
        elif record.subtype == TURN_DURATION_SUBTYPE and record.duration_ms is not None:
            self.last_turn_duration_ms = record.duration_ms


@dataclass
class SubLog:
    path: Path
    tokens: int = 0
    activities: list[ActivityEntry] = field(default_factory=list)


def subagent_dir_for(session_file: str | Path) -> Path:
    path = Path(session_file)
    base = path.with_suffix("") if path.suffix == LOG_SUFFIX else path
    return base / "subagents"


def _read_lines(fs, path: Path) -> list[str]:
    return [line for line in fs.read_text(path).splitlines() if line.strip()]


def read_sublog(fs, path: Path, now: datetime) -> SubLog:
    """Summarize a whole sub-log: total usage plus its tool calls, newest first."""
    sublog = SubLog(path=path)
    for record in iter_records(_read_lines(fs, path)):
        if not isinstance(record, AssistantRecord):
            continue
        sublog.tokens += record.tokens
        for block in record.blocks:
            if block.type != "tool_use" or not block.name or block.name == TODO_TOOL:
                continue
            sublog.activities.append(
                ActivityEntry(
                    timestamp=record.timestamp or now,
                    kind="tool",
                    icon=icon_for(block.name),
                    label=block.name,
                    detail=tool_detail(block.input),
                )
            )
    sublog.activities.sort(key=lambda entry: entry.timestamp, reverse=True)
    return sublog


def list_sublogs(fs, session_file: Path) -> list[Path]:
    """Sub-logs of a session, most recently modified first."""
    directory = subagent_dir_for(session_file)
    if not fs.exists(directory):
        return []
    dated = [(fs.stat(directory / name).mtime, directory / name) for name in _log_names(fs, directory)]
    dated.sort(key=lambda row: row[0], reverse=True)
    return [path for _, path in dated]


def attach_sub_activities(activities: list[ActivityEntry], sublogs: list[SubLog]) -> None:
    # Positional join: the n-th delegation entry (newest first) gets the n-th
    # most recently modified sub-log. The log format carries no shared id.
    remaining = iter(sublogs)
    for entry in activities:
        if entry.label != DELEGATION_TOOL:
            continue
        sublog = next(remaining, None)
        if sublog is None:
            return
        if sublog.activities:
            entry.sub_activities = sublog.activities[:MAX_SUB_ACTIVITIES]
            entry.sub_activity_count = len(sublog.activities)


def _derive(fs, session_file: Path, max_activities: int, now: datetime) -> SessionState:
    lines = _read_lines(fs, session_file)
    if not lines:
        return SessionState.empty()

    session_start = None
    for record in iter_records(lines[:START_TIME_SCAN_LINES]):
        if record.timestamp is not None:
            session_start = record.timestamp
            break

    replay = _Replay(now=now)
    for record in iter_records(lines[-MAX_LINES_TO_SCAN:]):
        replay.feed(record)

    sublogs = [read_sublog(fs, path, now) for path in list_sublogs(fs, session_file)]
    token_count = replay.tokens + sum(sublog.tokens for sublog in sublogs)

    recent = replay.activities[-max_activities:] if max_activities > 0 else []
    activities = list(reversed(recent))
    attach_sub_activities(activities, sublogs)

    return SessionState(
        status=classify_status(replay.last_timestamp, replay.last_kind, now),
        activities=activities,
        token_count=token_count,
        session_start_time=session_start,
        todos=replay.todos,
        model_name=replay.model_name,
        last_turn_duration_ms=replay.last_turn_duration_ms,
    )


def derive_state(
    session_file: str | Path,
    max_activities: int = DEFAULT_MAX_ACTIVITIES,
    fs=None,
    now: datetime | None = None,
) -> SessionState:
    fs = fs or LocalFileSystem()
    now = now or utc_now()
    try:
        return _derive(fs, Path(session_file), max_activities, now)
    except OSError as exc:
        logger.debug("session replay failed for %s: %s", session_file, exc)
        return SessionState.empty(error=str(exc))


@dataclass
class ProjectInfo:
    encoded: str
    decoded: str

    @property
    def name(self) -> str:
        return os.path.basename(self.decoded.rstrip("/\\")) or self.decoded


def decode_project_path(encoded: str, fs=None) -> str:
    """Best-effort inverse of ``encode_project_path``.

    A "-" may be a separator or part of a directory name, so prefer the longest
    run of segments that names an existing directory.
    """
    fs = fs or LocalFileSystem()
    naive = encoded.replace("-", os.sep)
    if fs.exists(Path(naive)):
        return naive

    segments = [segment for segment in encoded.split("-") if segment]
    if not segments:
        return naive

    current = ""
    i = 0
    while i < len(segments):
        found = False
        for j in range(len(segments), i, -1):
            candidate = "-".join(segments[i:j])
            test_path = os.path.join(current, candidate) if current else os.sep + candidate
            try:
                if fs.exists(Path(test_path)) and fs.stat(Path(test_path)).is_dir:
                    current, i, found = test_path, j, True
                    break
            except OSError:
                continue
        if not found:
            current = os.path.join(current, segments[i]) if current else os.sep + segments[i]
            i += 1
    return current or naive


def list_projects(home: Path | None = None, fs=None) -> list[ProjectInfo]:
    fs = fs or LocalFileSystem()
    root = projects_root(home)
    if not fs.exists(root):
        return []
    projects = []
    for name in fs.list_dir(root):
        try:
            if not fs.stat(root / name).is_dir:
                continue
        except OSError:
            continue
        projects.append(ProjectInfo(encoded=name, decoded=decode_project_path(name, fs)))
    return projects


@dataclass
class SessionAvailability:
    has_current_session: bool
    other_projects: list[str] = field(default_factory=list)


def check_session_availability(project_path: str | Path, home: Path | None = None, fs=None) -> SessionAvailability:
    fs = fs or LocalFileSystem()
    if fs.exists(session_dir_for(project_path, home)):
        return SessionAvailability(has_current_session=True)
    current = encode_project_path(project_path)
    others = [project.name for project in list_projects(home, fs) if project.encoded != current]
    return SessionAvailability(has_current_session=False, other_projects=others)
