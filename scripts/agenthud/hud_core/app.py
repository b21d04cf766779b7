"""agenthud application entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Callable

from rich.console import Console, Group
from rich.live import Live

from hud_core.collectors import env_project_dir
from hud_core.collectors.claude import collect as collect_claude
from hud_core.collectors.custom import collect as collect_custom
from hud_core.collectors.git import collect as collect_git
from hud_core.collectors.other_sessions import collect as collect_other_sessions
from hud_core.collectors.project import collect as collect_project
from hud_core.collectors.tests import collect as collect_tests
from hud_core.config import DashboardConfig, clamp_width, resolve_config, write_default_config
from hud_core.errors import ConfigError
from hud_core.fsio import CommandRunner, LocalFileSystem
from hud_core.keyboard import KeyboardInput
from hud_core.models import PanelData
from hud_core.panels.claude import render as render_claude
from hud_core.panels.generic import render as render_generic
from hud_core.panels.git import render as render_git
from hud_core.panels.other_sessions import render as render_other_sessions
from hud_core.panels.project import render as render_project
from hud_core.panels.status_bar import render as render_status_bar
from hud_core.panels.tests import render as render_tests
from hud_core.scheduler import PanelScheduler
from hud_core.session import check_session_availability

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

PANEL_RENDERERS = {
    "project": render_project,
    "git": render_git,
    "tests": render_tests,
    "claude": render_claude,
    "other_sessions": render_other_sessions,
    "custom": render_generic,
}


def build_providers(config: DashboardConfig, project_dir: Path, fs=None, runner=None, home: Path | None = None) -> dict:
    fs = fs or LocalFileSystem()
    runner = runner or CommandRunner(cwd=project_dir)

    providers = {}
    for panel in config.panels:
        if not panel.enabled:
            continue
        if home is not None:
            panel.params.setdefault("home", str(home))
        if panel.kind == "claude":
            providers[panel.name] = partial(collect_claude, fs=fs)
        elif panel.kind == "git":
            providers[panel.name] = partial(collect_git, runner=runner)
        elif panel.kind == "tests":
            providers[panel.name] = partial(collect_tests, runner=runner, fs=fs)
        elif panel.kind == "project":
            providers[panel.name] = partial(collect_project, fs=fs)
        elif panel.kind == "other_sessions":
            providers[panel.name] = partial(collect_other_sessions, fs=fs)
        elif panel.kind == "custom":
            providers[panel.name] = partial(collect_custom, panel.name, runner=runner, fs=fs)
    return providers


def render_dashboard(scheduler: PanelScheduler, warnings: list[str], width: int):
    panels = []
    for runtime in scheduler.states.values():
        renderer = PANEL_RENDERERS.get(runtime.config.kind, render_generic)
        panels.append(renderer(runtime.last_snapshot, runtime, width))
    panels.append(render_status_bar(scheduler.hotkeys, warnings))
    return Group(*panels)


def _json_output(project_dir: Path, snapshots: dict[str, PanelData], warnings: list[str]) -> str:
    payload = {
        "version": __version__,
        "project_dir": str(project_dir),
        "collected_at": datetime.now(timezone.utc).isoformat(),
        "panels": {name: data.to_dict() for name, data in snapshots.items()},
        "warnings": warnings,
    }
    return json.dumps(payload, indent=2, default=str)


def configure_logging(log_level: str | None, log_file: str | None, watch: bool) -> None:
    level_name = (log_level or os.environ.get("AGENTHUD_LOG_LEVEL") or "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    log_file = log_file or os.environ.get("AGENTHUD_LOG_FILE")
    if log_file:
        logging.basicConfig(filename=log_file, level=level, format=LOG_FORMAT)
    elif watch:
        # stderr would tear the live screen
        logging.basicConfig(handlers=[logging.NullHandler()], level=level)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)


def _no_session_message(project_dir: Path, others: list[str]) -> str:
    lines = [f"No Claude session found for {project_dir}"]
    if others:
        shown = ", ".join(others[:5])
        more = f" (+{len(others) - 5} more)" if len(others) > 5 else ""
        lines.append(f"Projects with sessions: {shown}{more}")
    lines.append("Start a Claude session in this directory, then run agenthud again.")
    return "\n".join(lines)


async def _watch(scheduler: PanelScheduler, console: Console, warnings: list[str], width: Callable[[], int]) -> None:
    quit_event = asyncio.Event()
    scheduler.initialize()
    scheduler.on_quit(quit_event.set)

    with Live(
        render_dashboard(scheduler, warnings, width()),
        console=console,
        screen=True,
        auto_refresh=False,
    ) as live:

        def redraw(_name: str | None = None) -> None:
            live.update(render_dashboard(scheduler, warnings, width()), refresh=True)

        scheduler.add_listener(redraw)
        with KeyboardInput(scheduler.handle_input):
            scheduler.start()
            scheduler.refresh_all()
            try:
                await quit_event.wait()
            finally:
                scheduler.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agenthud", description="Live terminal dashboard for AI coding sessions")
    parser.add_argument("command", nargs="?", choices=["init"], help="init: write a default .agenthud/config.yaml")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("-w", "--watch", action="store_true", help="Live dashboard (default)")
    mode.add_argument("--once", action="store_true", help="Render every panel once and exit")
    mode.add_argument("--json", action="store_true", help="Emit one pass of panel data as JSON")
    parser.add_argument("--config", help="Config file (default: .agenthud/config.yaml)")
    parser.add_argument("--project-dir", help="Project to watch (default: current directory)")
    parser.add_argument("--log-file", help="Write logs to this file")
    parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS, help="Log level (default: WARNING)")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None, console: Console | None = None) -> int:
    args = build_parser().parse_args(argv)
    watch = args.command is None and not (args.once or args.json)
    configure_logging(args.log_level, args.log_file, watch)

    project_dir = Path(os.path.abspath(args.project_dir or env_project_dir()))

    if args.command == "init":
        path, created = write_default_config(project_dir)
        print(f"Created {path}" if created else f"Skipped {path} (already exists)")
        return 0

    try:
        config = resolve_config(project_dir, args.config)
    except ConfigError as exc:
        print(f"agenthud: {exc}", file=sys.stderr)
        return 2

    console = console or Console()

    def width() -> int:
        return config.width or clamp_width(console.size.width)

    claude_panel = config.panel("claude")
    if not args.json and claude_panel is not None and claude_panel.enabled:
        availability = check_session_availability(project_dir)
        if not availability.has_current_session:
            console.print(_no_session_message(project_dir, availability.other_projects))
            return 0

    logger.info("watching %s with panels %s", project_dir, [p.name for p in config.panels if p.enabled])
    scheduler = PanelScheduler(config.panels, build_providers(config, project_dir))

    if args.json or args.once:
        try:
            snapshots = asyncio.run(scheduler.run_once())
        except KeyboardInterrupt:
            return 0
        if args.json:
            print(_json_output(project_dir, snapshots, config.warnings))
        else:
            console.print(render_dashboard(scheduler, config.warnings, width()))
        return 0

    try:
        asyncio.run(_watch(scheduler, console, config.warnings, width))
    except KeyboardInterrupt:
        return 0
    return 0


def cli() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    cli()
