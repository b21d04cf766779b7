"""Shared text and time formatting helpers for human-facing panels."""

from __future__ import annotations

import re
from datetime import datetime, timezone

ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(text: str) -> str:
    return ANSI_RE.sub("", text)


def fold_newlines(text: str) -> str:
    return text.replace("\n", " ")


def truncate(text: str, max_length: int) -> str:
    if max_length <= 0:
        return ""
    if len(text) <= max_length:
        return text
    if max_length <= 3:
        return text[:max_length]
    return text[: max_length - 3] + "..."


def compact_relative_age(age_seconds: float | int | None) -> str:
    if age_seconds is None:
        return "n/a"

    seconds = max(0, int(age_seconds))
    if seconds < 1:
        return "just now"
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def format_elapsed(start: datetime | None, now: datetime | None = None) -> str:
    """Session length for panel titles: "<1m", "12m" or "2h 5m"."""
    if start is None:
        return ""
    now = now or datetime.now(timezone.utc)
    minutes = max(0, int((now - start).total_seconds() // 60))
    hours, remaining = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {remaining}m"
    if minutes > 0:
        return f"{minutes}m"
    return "<1m"


def format_countdown(seconds: int | None) -> str:
    if seconds is None:
        return ""
    return f"↻ {seconds:>2}s"


def format_tokens(count: int) -> str:
    return f"{count:,} tokens"


def format_duration_ms(duration_ms: int | None) -> str:
    if duration_ms is None:
        return ""
    seconds = max(0, int(duration_ms) // 1000)
    if seconds < 60:
        return f"{seconds}s"
    return f"{seconds // 60}m {seconds % 60:02d}s"


def clock_time(value: datetime) -> str:
    return value.astimezone().strftime("%H:%M:%S")


def parse_iso_timestamp(value: str | None) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
