"""Collector helpers and package exports."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any


def project_dir_from(params: dict[str, Any]) -> Path:
    return Path(params.get("project_dir") or env_project_dir())


def resolve_path(params: dict[str, Any], value: str) -> Path:
    path = Path(value).expanduser()
    if path.is_absolute():
        return path
    return project_dir_from(params) / path


def clean_output(text: str) -> str:
    """Strip a BOM and surrounding quotes some shells leave on command output."""
    return text.lstrip("\ufeff").strip().strip("'\"")


def env_project_dir() -> Path:
    return Path(os.environ.get("AGENTHUD_PROJECT_DIR") or os.getcwd())
