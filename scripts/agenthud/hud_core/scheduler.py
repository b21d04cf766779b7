"""Panel refresh scheduler.

``PanelScheduler`` owns one ``PanelRuntimeState`` per enabled panel and keeps
its snapshot fresh: per-panel interval timers, a 1 Hz countdown heartbeat,
manual hotkeys and a global refresh. Timers come from an injected timer source
so the controller itself never sleeps; rendering happens elsewhere, driven by
the "state changed" listeners.

Overlapping refreshes of one panel are neither cancelled nor queued. Whichever
fetch completes last is stored; ``request_seq`` / ``applied_seq`` on the runtime
state record which request that was.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Mapping, Union

from hud_core.models import PanelConfig, PanelData, PanelRuntimeState

logger = logging.getLogger(__name__)

FEEDBACK_SECONDS = 1.5
HEARTBEAT_SECONDS = 1.0
REFRESH_ALL_KEY = "r"
QUIT_KEY = "q"
RESERVED_KEYS = (REFRESH_ALL_KEY, QUIT_KEY)

Provider = Callable[[dict[str, Any]], Union[PanelData, Awaitable[PanelData]]]
Listener = Callable[[Union[str, None]], None]


class AsyncioTimers:
    """Timer source backed by the running asyncio loop."""

    def call_later(self, delay: float, callback: Callable[..., None], *args: Any) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback, *args)

    def spawn(self, coro: Awaitable[Any]) -> asyncio.Future:
        return asyncio.ensure_future(coro)


@dataclass(frozen=True)
class Hotkey:
    key: str
    label: str
    panel: str | None = None


def derive_hotkeys(panels: Iterable[PanelConfig]) -> list[Hotkey]:
    """First unclaimed character of each manual panel's name; r and q are taken."""
    claimed = set(RESERVED_KEYS)
    hotkeys: list[Hotkey] = []
    for panel in panels:
        if not panel.enabled or not panel.is_manual:
            continue
        for char in panel.name.lower():
            if char in claimed:
                continue
            claimed.add(char)
            hotkeys.append(Hotkey(key=char, label=f"run {panel.name}", panel=panel.name))
            break
    hotkeys.append(Hotkey(key=REFRESH_ALL_KEY, label="refresh all"))
    hotkeys.append(Hotkey(key=QUIT_KEY, label="quit"))
    return hotkeys


def placeholder_snapshot(config: PanelConfig) -> PanelData:
    return PanelData(key=config.name, title=config.label or config.name, status="loading", meta={"placeholder": True})


def error_snapshot(config: PanelConfig, message: str) -> PanelData:
    return PanelData(key=config.name, title=config.label or config.name, status="error", errors=[message])


class PanelScheduler:
    def __init__(
        self,
        panels: Iterable[PanelConfig],
        providers: Mapping[str, Provider],
        timers: Any = None,
    ):
        self.panels = list(panels)
        self.providers = dict(providers)
        self.timers = timers or AsyncioTimers()
        self.hotkeys = derive_hotkeys(self.panels)
        self.states: dict[str, PanelRuntimeState] = {}
        self.quit_requested = False
        self._listeners: list[Listener] = []
        self._quit_callbacks: list[Callable[[], None]] = []
        self._feedback_handles: dict[tuple[str, str], Any] = {}
        self._interval_handles: dict[str, Any] = {}
        self._heartbeat_handle: Any = None
        self._tasks: set[Any] = set()
        self._running = False

    @property
    def enabled_panels(self) -> list[PanelConfig]:
        return [panel for panel in self.panels if panel.enabled]

    def initialize(self) -> dict[str, PanelRuntimeState]:
        self.states = {
            panel.name: PanelRuntimeState(
                config=panel,
                last_snapshot=placeholder_snapshot(panel),
                countdown=panel.interval_seconds,
            )
            for panel in self.enabled_panels
        }
        return self.states

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def on_quit(self, callback: Callable[[], None]) -> None:
        self._quit_callbacks.append(callback)

    def _notify(self, name: str | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(name)
            except Exception:
                logger.exception("listener failed for panel %s", name)

    def _spawn(self, coro: Awaitable[Any]) -> Any:
        task = self.timers.spawn(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: Any) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("background refresh failed", exc_info=exc)

    async def tick(self, name: str, *, feedback: bool = True) -> PanelData:
        runtime = self.states[name]
        runtime.request_seq += 1
        seq = runtime.request_seq
        runtime.visual.is_running = True
        try:
            self._notify(name)
            snapshot = await self._fetch(runtime.config)
            if seq < runtime.applied_seq:
                logger.debug("panel %s: request %d completed after %d", name, seq, runtime.applied_seq)
            runtime.last_snapshot = snapshot
            runtime.applied_seq = seq
        finally:
            runtime.visual.is_running = False
            self.reset(name)
        self._flash(name, feedback)
        self._notify(name)
        return snapshot

    async def _fetch(self, config: PanelConfig) -> PanelData:
        provider = self.providers.get(config.name)
        if provider is None:
            return error_snapshot(config, f"no provider for panel '{config.name}'")

        started = time.monotonic()
        try:
            if inspect.iscoroutinefunction(provider):
                result = await provider(config.params)
            else:
                # file-reading providers block; keep them off the loop
                result = await asyncio.to_thread(provider, config.params)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            # panel boundary: provider failures become this panel's error string
            logger.warning("panel %s refresh failed: %s", config.name, exc)
            return error_snapshot(config, str(exc) or exc.__class__.__name__)

        logger.debug("panel %s refreshed in %.3fs", config.name, time.monotonic() - started)
        if not isinstance(result, PanelData):
            return error_snapshot(config, "provider returned no panel data")
        return result

    def _flash(self, name: str, feedback: bool) -> None:
        if not feedback:
            return
        runtime = self.states[name]
        flag = "just_completed" if runtime.config.is_manual else "just_refreshed"
        setattr(runtime.visual, flag, True)
        key = (name, flag)
        previous = self._feedback_handles.pop(key, None)
        if previous is not None:
            previous.cancel()
        self._feedback_handles[key] = self.timers.call_later(FEEDBACK_SECONDS, self._clear_flag, name, flag)

    def _clear_flag(self, name: str, flag: str) -> None:
        self._feedback_handles.pop((name, flag), None)
        runtime = self.states.get(name)
        if runtime is None:
            return
        setattr(runtime.visual, flag, False)
        self._notify(name)

    def heartbeat(self) -> None:
        for runtime in self.states.values():
            if runtime.countdown is not None:
                runtime.countdown = max(1, runtime.countdown - 1)
        self._notify(None)

    def reset(self, name: str) -> None:
        runtime = self.states[name]
        if runtime.config.interval_seconds is not None:
            runtime.countdown = runtime.config.interval_seconds

    def reset_all(self) -> None:
        for name in self.states:
            self.reset(name)
        self._notify(None)

    def refresh_all(self) -> list[Any]:
        return [self._spawn(self.tick(name)) for name in self.states]

    def request_quit(self) -> None:
        self.quit_requested = True
        self.stop()
        for callback in list(self._quit_callbacks):
            callback()

    def handle_input(self, key: str) -> bool:
        key = key.lower()
        if key == QUIT_KEY:
            self.request_quit()
            return True
        if key == REFRESH_ALL_KEY:
            self.refresh_all()
            return True
        for hotkey in self.hotkeys:
            if hotkey.panel is not None and hotkey.key == key and hotkey.panel in self.states:
                self._spawn(self.tick(hotkey.panel))
                return True
        return False

    def start(self) -> None:
        if not self.states:
            self.initialize()
        self._running = True
        self._heartbeat_handle = self.timers.call_later(HEARTBEAT_SECONDS, self._on_heartbeat)
        for runtime in self.states.values():
            if not runtime.config.is_manual:
                self._arm(runtime.config)

    def stop(self) -> None:
        self._running = False
        handles = [self._heartbeat_handle, *self._interval_handles.values(), *self._feedback_handles.values()]
        for handle in handles:
            if handle is not None:
                handle.cancel()
        self._heartbeat_handle = None
        self._interval_handles.clear()
        self._feedback_handles.clear()
        for task in list(self._tasks):
            if not task.done():
                task.cancel()

    def _arm(self, config: PanelConfig) -> None:
        self._interval_handles[config.name] = self.timers.call_later(
            config.interval_ms / 1000, self._on_interval, config.name
        )

    def _on_interval(self, name: str) -> None:
        if not self._running:
            return
        self._arm(self.states[name].config)
        self._spawn(self.tick(name))

    def _on_heartbeat(self) -> None:
        if not self._running:
            return
        self.heartbeat()
        self._heartbeat_handle = self.timers.call_later(HEARTBEAT_SECONDS, self._on_heartbeat)

    async def run_once(self) -> dict[str, PanelData]:
        """Single pass over every enabled panel; no timers are installed."""
        if not self.states:
            self.initialize()
        for name in self.states:
            await self.tick(name, feedback=False)
        return {name: runtime.last_snapshot for name, runtime in self.states.items()}
