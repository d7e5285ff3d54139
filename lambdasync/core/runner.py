"""Command execution helpers for the layer dependency installer."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Sequence

from lambdasync.core.errors import RunnerError

logger = logging.getLogger("lambdasync.runner")


@dataclass(frozen=True)
class CompletedCommand:
    """Normalized command execution result."""

    cmd: tuple[str, ...]
    returncode: int
    stdout: str = ""


class CommandRunner:
    """Thin async subprocess wrapper with deterministic logging."""

    def __init__(
        self,
        *,
        printer: Callable[[str], None] | None = None,
    ) -> None:
        self._printer = printer

    def format_cmd(self, cmd: Sequence[str]) -> str:
        return "$ " + " ".join(shlex.quote(str(token)) for token in cmd)

    def emit(self, message: str) -> None:
        if self._printer is not None:
            self._printer(message)
        else:
            logger.info(message)

    def which(self, command: str) -> str | None:
        resolved = shutil.which(command)
        if resolved is None:
            return None
        return str(Path(resolved).resolve())

    def require_command(self, command: str) -> str:
        resolved = self.which(command)
        if resolved is None:
            raise RunnerError(f"required command not found: {command}")
        return resolved

    async def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
    ) -> CompletedCommand:
        rendered = self.format_cmd(cmd)
        self.emit(rendered)

        run_env = os.environ.copy()
        if env:
            run_env.update({str(key): str(value) for key, value in env.items()})

        try:
            proc = await asyncio.create_subprocess_exec(
                *[str(token) for token in cmd],
                cwd=str(cwd) if cwd else None,
                env=run_env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise RunnerError(f"cannot start command: {rendered}: {e}") from e

        assert proc.stdout is not None
        captured: list[str] = []
        try:
            async for raw_line in proc.stdout:
                line = raw_line.decode("utf-8", errors="replace").rstrip("\n")
                captured.append(line)
                logger.debug(line)
            rc = await proc.wait()
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        stdout = "\n".join(captured)
        if check and rc != 0:
            tail = "\n".join(captured[-20:])
            if tail:
                raise RunnerError(f"command failed with exit code {rc}: {rendered}\n{tail}")
            raise RunnerError(f"command failed with exit code {rc}: {rendered}")
        return CompletedCommand(tuple(str(token) for token in cmd), rc, stdout)
