"""Dashboard config resolution: panel set, order, intervals and width."""

from __future__ import annotations

import copy
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from hud_core.errors import ConfigError
from hud_core.models import PanelConfig
from hud_core.session import DEFAULT_MAX_ACTIVITIES, DEFAULT_SESSION_TIMEOUT_MS

logger = logging.getLogger(__name__)

CONFIG_DIR = ".agenthud"
CONFIG_FILE = "config.yaml"
JSON_CONFIG_FILE = "config.json"
CONFIG_ENV = "AGENTHUD_CONFIG"

CORE_PANELS = ["project", "git", "tests", "claude", "other_sessions"]
CORE_LABELS = {
    "project": "Project",
    "git": "Git",
    "tests": "Tests",
    "claude": "Claude",
    "other_sessions": "Other Sessions",
}
CUSTOM_RENDERERS = ("list", "progress", "status")

DEFAULT_WIDTH = 70
FALLBACK_WIDTH = 80
MIN_WIDTH = 50
MAX_WIDTH = 120

DEFAULT_PANELS: dict[str, dict[str, Any]] = {
    "project": {"enabled": True, "interval": "60s"},
    "git": {"enabled": True, "interval": "30s"},
    "tests": {"enabled": True, "interval": "manual"},
    "claude": {
        "enabled": True,
        "interval": "2s",
        "max_activities": DEFAULT_MAX_ACTIVITIES,
        "session_timeout": "60m",
    },
    "other_sessions": {"enabled": True, "interval": "10s"},
}

INTERVAL_RE = re.compile(r"^(\d+)([sm])$")


@dataclass
class DashboardConfig:
    panels: list[PanelConfig]
    width: int | None = None
    warnings: list[str] = field(default_factory=list)
    path: Path | None = None

    def panel(self, name: str) -> PanelConfig | None:
        for panel in self.panels:
            if panel.name == name:
                return panel
        return None


def parse_interval(value: Any) -> int | None:
    """"30s" -> 30000, "5m" -> 300000, "manual" -> None; anything else raises."""
    if isinstance(value, str):
        text = value.strip().lower()
        if text == "manual":
            return None
        match = INTERVAL_RE.match(text)
        if match:
            amount = int(match.group(1))
            if amount > 0:
                unit = 1000 if match.group(2) == "s" else 60_000
                return amount * unit
    raise ValueError(f"invalid interval: {value!r}")


def clamp_width(width: Any) -> int:
    try:
        value = int(width)
    except (TypeError, ValueError):
        return FALLBACK_WIDTH
    return max(MIN_WIDTH, min(MAX_WIDTH, value))


def default_config_path(project_dir: Path) -> Path:
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path)
    config_dir = Path(project_dir) / CONFIG_DIR
    for name in (CONFIG_FILE, "config.yml", JSON_CONFIG_FILE):
        if (config_dir / name).exists():
            return config_dir / name
    return config_dir / CONFIG_FILE


def default_config() -> dict[str, Any]:
    return {
        "width": DEFAULT_WIDTH,
        "panels": copy.deepcopy(DEFAULT_PANELS),
        "panel_order": list(CORE_PANELS),
    }


def load_user_config(path: str | Path | None, required: bool = False) -> dict:
    if not path:
        return {}

    config_path = Path(path)
    if not config_path.exists():
        if required:
            raise ConfigError(f"config path not found: {config_path}")
        return {}

    try:
        text = config_path.read_text()
        if config_path.suffix == ".json":
            payload = json.loads(text)
        else:
            payload = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"invalid config {config_path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"unreadable config {config_path}: {exc}") from exc

    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigError(f"config must be a mapping: {config_path}")
    return payload


def _interval_ms(name: str, raw: Any, fallback: str, warnings: list[str]) -> int | None:
    try:
        return parse_interval(raw)
    except ValueError:
        warnings.append(f"{name}: invalid interval {raw!r}, using {fallback}")
        return parse_interval(fallback)


def _panel_params(name: str, settings: dict[str, Any], project_dir: Path, warnings: list[str]) -> dict[str, Any]:
    params: dict[str, Any] = {"project_dir": str(project_dir)}

    if name == "claude":
        try:
            params["max_activities"] = max(0, int(settings.get("max_activities", DEFAULT_MAX_ACTIVITIES)))
        except (TypeError, ValueError):
            warnings.append(f"claude: invalid max_activities {settings.get('max_activities')!r}")
            params["max_activities"] = DEFAULT_MAX_ACTIVITIES
        timeout = settings.get("session_timeout", "60m")
        try:
            params["session_timeout_ms"] = parse_interval(timeout) or DEFAULT_SESSION_TIMEOUT_MS
        except ValueError:
            warnings.append(f"claude: invalid session_timeout {timeout!r}, using 60m")
            params["session_timeout_ms"] = DEFAULT_SESSION_TIMEOUT_MS
    elif name == "git":
        commands = settings.get("commands")
        if isinstance(commands, dict):
            params["commands"] = {key: str(value) for key, value in commands.items() if value}
    elif name == "tests":
        for key in ("command", "source"):
            if settings.get(key):
                params[key] = str(settings[key])
    elif name == "other_sessions":
        if "active_threshold" in settings:
            try:
                params["active_threshold_ms"] = parse_interval(settings["active_threshold"])
            except ValueError:
                warnings.append(f"other_sessions: invalid active_threshold {settings['active_threshold']!r}")
    return params


def _core_panel(name: str, user_settings: Any, project_dir: Path, warnings: list[str]) -> PanelConfig:
    settings = dict(DEFAULT_PANELS[name])
    if isinstance(user_settings, bool):
        # shorthand: {"git": false}
        settings["enabled"] = user_settings
    elif isinstance(user_settings, dict):
        settings.update(user_settings)
    elif user_settings is not None:
        warnings.append(f"{name}: panel settings must be an object")

    return PanelConfig(
        name=name,
        kind=name,
        enabled=bool(settings.get("enabled", True)),
        interval_ms=_interval_ms(name, settings.get("interval"), DEFAULT_PANELS[name]["interval"], warnings),
        params=_panel_params(name, settings, project_dir, warnings),
        label=CORE_LABELS[name],
    )


def _custom_panel(name: str, settings: Any, project_dir: Path, warnings: list[str]) -> PanelConfig | None:
    if name in DEFAULT_PANELS:
        warnings.append(f"custom panel '{name}' shadows a built-in panel, skipped")
        return None
    if not isinstance(settings, dict):
        warnings.append(f"custom panel '{name}' must be an object, skipped")
        return None

    renderer = settings.get("renderer", "list")
    if renderer not in CUSTOM_RENDERERS:
        warnings.append(f"{name}: unknown renderer {renderer!r}, using list")
        renderer = "list"

    params: dict[str, Any] = {"project_dir": str(project_dir), "renderer": renderer}
    for key in ("command", "source"):
        if settings.get(key):
            params[key] = str(settings[key])

    return PanelConfig(
        name=name,
        kind="custom",
        enabled=bool(settings.get("enabled", True)),
        interval_ms=_interval_ms(name, settings.get("interval", "30s"), "30s", warnings),
        params=params,
        label=name.replace("_", " ").replace("-", " ").title(),
    )


def _ordered(panels: list[PanelConfig], order: Any, warnings: list[str]) -> list[PanelConfig]:
    if not isinstance(order, list) or not order:
        return panels
    by_name = {panel.name: panel for panel in panels}
    ordered: list[PanelConfig] = []
    for name in order:
        panel = by_name.pop(name, None)
        if panel is None:
            warnings.append(f"panel_order: unknown panel {name!r}")
            continue
        ordered.append(panel)
    # panels missing from panel_order keep their default position, after the listed ones
    ordered.extend(panel for panel in panels if panel.name in by_name)
    return ordered


def resolve_config(project_dir: str | Path, config_path: str | Path | None = None) -> DashboardConfig:
    project_dir = Path(project_dir)
    explicit = config_path is not None
    path = Path(config_path) if explicit else default_config_path(project_dir)
    warnings: list[str] = []

    try:
        user_config = load_user_config(path, required=explicit)
    except ConfigError as exc:
        if explicit:
            raise
        warnings.append(f"{exc}; using defaults")
        user_config = {}

    panel_settings = user_config.get("panels") or {}
    if not isinstance(panel_settings, dict):
        warnings.append("panels must be an object")
        panel_settings = {}
    for name in panel_settings:
        if name not in DEFAULT_PANELS:
            warnings.append(f"unknown panel {name!r} ignored")

    panels = [_core_panel(name, panel_settings.get(name), project_dir, warnings) for name in CORE_PANELS]

    custom_settings = user_config.get("custom_panels") or {}
    if isinstance(custom_settings, dict):
        for name, settings in custom_settings.items():
            panel = _custom_panel(str(name), settings, project_dir, warnings)
            if panel is not None:
                panels.append(panel)
    else:
        warnings.append("custom_panels must be an object")

    panels = _ordered(panels, user_config.get("panel_order"), warnings)

    width = None
    if user_config.get("width") is not None:
        width = clamp_width(user_config["width"])

    for warning in warnings:
        logger.warning("config: %s", warning)

    return DashboardConfig(panels=panels, width=width, warnings=warnings, path=path if path.exists() else None)


def write_default_config(project_dir: str | Path) -> tuple[Path, bool]:
    """Write the default config; returns (path, created). An existing file is left alone."""
    path = Path(project_dir) / CONFIG_DIR / CONFIG_FILE
    if path.exists():
        return path, False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(default_config(), sort_keys=False))
    return path, True
