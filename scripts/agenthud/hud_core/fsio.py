"""File-system and process capabilities handed to the engine and providers.

Nothing in the core touches ``os`` or ``subprocess`` directly; callers pass a
``LocalFileSystem`` / ``CommandRunner`` (or a test double with the same
methods) at construction time.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from hud_core.errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 30.0


@dataclass(frozen=True)
class FileStat:
    mtime: float
    size: int
    is_dir: bool = False


class LocalFileSystem:
    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def list_dir(self, path: Path) -> list[str]:
        return sorted(entry.name for entry in Path(path).iterdir())

    def stat(self, path: Path) -> FileStat:
        result = Path(path).stat()
        return FileStat(mtime=result.st_mtime, size=result.st_size, is_dir=Path(path).is_dir())

    def read_text(self, path: Path) -> str:
        return Path(path).read_text(encoding="utf-8", errors="replace")

    def walk_files(self, root: Path, exclude_dirs: tuple[str, ...] = ()) -> list[Path]:
        found: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(name for name in dirnames if name not in exclude_dirs)
            found.extend(Path(dirpath) / name for name in sorted(filenames))
        return found


@dataclass
class CommandResult:
    command: str
    returncode: int
    stdout: str
    stderr: str


def _first_line(text: str, fallback: str) -> str:
    lines = (text or "").strip().splitlines()
    return lines[0] if lines else fallback


class CommandRunner:
    """Runs shell commands without blocking the event loop."""

    def __init__(self, cwd: Path | None = None, timeout: float = DEFAULT_COMMAND_TIMEOUT):
        self.cwd = cwd
        self.timeout = timeout

    async def run(self, command: str, *, check: bool = True, timeout: float | None = None) -> CommandResult:
        limit = self.timeout if timeout is None else timeout
        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.cwd) if self.cwd else None,
            )
        except OSError as exc:
            raise ProviderError(f"Command failed: {exc}") from exc

        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=limit)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise ProviderError(f"Command timed out after {limit:g}s: {command}") from exc

        result = CommandResult(
            command=command,
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=out.decode("utf-8", errors="replace"),
            stderr=err.decode("utf-8", errors="replace"),
        )
        logger.debug("command %r exited %s", command, result.returncode)
        if check and result.returncode != 0:
            message = _first_line(result.stderr or result.stdout, f"exit status {result.returncode}")
            raise ProviderError(f"Command failed: {message}", returncode=result.returncode)
        return result
