"""Git command execution for providers that publish through git.

``GitRunner`` is the seam: the GitHub Pages provider never spawns
processes itself, so tests substitute a recording fake.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class GitResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitCommandError(RuntimeError):
    """Raised when a git command exits non-zero or times out."""

    def __init__(self, command: str, message: str) -> None:
        self.command = command
        super().__init__(f"git {command} failed: {message}")


@runtime_checkable
class GitRunner(Protocol):
    """Runs ``git <args>`` in *cwd* and returns its result.

    Implementations raise ``GitCommandError`` on timeout; a non-zero exit
    is returned in the result.
    """

    async def __call__(
        self, args: list[str], *, cwd: Path | None = None, timeout: float = 120.0
    ) -> GitResult:
        ...


def redact(text: str, secret: str | None) -> str:
    """Replace *secret* in *text* with ``***``."""
    if not secret:
        return text
    return text.replace(secret, "***")


class SubprocessGitRunner:
    """Default ``GitRunner`` backed by ``asyncio.create_subprocess_exec``.

    Parameters
    ----------
    secret:
        Credential to redact from logged commands and error output.
    """

    def __init__(self, secret: str | None = None) -> None:
        self._secret = secret

    async def __call__(
        self, args: list[str], *, cwd: Path | None = None, timeout: float = 120.0
    ) -> GitResult:
        shown = redact(" ".join(args), self._secret)
        logger.debug("git %s (cwd=%s)", shown, cwd)
        proc = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=str(cwd) if cwd is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise GitCommandError(shown, f"timed out after {timeout}s") from exc
        return GitResult(
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=redact(stderr.decode("utf-8", errors="replace"), self._secret),
        )
