"""Claude session collector (activity feed, tokens, todos)."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from hud_core.collectors import project_dir_from
from hud_core.fsio import LocalFileSystem
from hud_core.models import PanelData, SessionState, utc_now
from hud_core.session import (
    DEFAULT_MAX_ACTIVITIES,
    DEFAULT_SESSION_TIMEOUT_MS,
    derive_state,
    locate_active_session,
    session_dir_for,
)

logger = logging.getLogger(__name__)


def _panel(state: SessionState, has_session: bool, session_file: Path | None) -> PanelData:
    if state.error:
        status = "error"
    elif state.status in ("running", "completed"):
        status = "ok"
    else:
        status = "warn"

    return PanelData(
        key="claude",
        title="Claude",
        status=status,
        items=[entry.to_dict() for entry in state.activities],
        meta={
            "session_status": state.status,
            "has_session": has_session,
            "session_file": str(session_file) if session_file else None,
            "token_count": state.token_count,
            "session_start_time": state.session_start_time.isoformat() if state.session_start_time else None,
            "todos": [todo.to_dict() for todo in state.todos] if state.todos is not None else None,
            "model_name": state.model_name,
            "last_turn_duration_ms": state.last_turn_duration_ms,
        },
        errors=[state.error] if state.error else [],
    )


def collect(params: dict[str, Any], fs=None, now: datetime | None = None) -> PanelData:
    fs = fs or LocalFileSystem()
    now = now or utc_now()
    home = Path(params["home"]) if params.get("home") else None
    max_activities = int(params.get("max_activities", DEFAULT_MAX_ACTIVITIES))
    timeout_ms = int(params.get("session_timeout_ms", DEFAULT_SESSION_TIMEOUT_MS))

    session_dir = session_dir_for(project_dir_from(params), home)
    try:
        has_session = fs.exists(session_dir)
        session_file = locate_active_session(session_dir, timeout_ms, fs, now)
    except OSError as exc:
        logger.debug("session lookup failed in %s: %s", session_dir, exc)
        return _panel(SessionState.empty(error=str(exc)), False, None)

    if session_file is None:
        # the project has history but nothing recent enough to be live
        state = SessionState(status="idle" if has_session else "none")
        return _panel(state, has_session, None)

    return _panel(derive_state(session_file, max_activities, fs, now), has_session, session_file)
