"""Thin runner for the GitHub ``gh`` CLI.

Uses subprocess directly; authentication is whatever ``gh auth`` already
holds on the host. Calls are pushed onto the default executor so the
event loop is never blocked on a network round trip.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class GhCommandError(RuntimeError):
    """A gh invocation exited non-zero or could not be started."""


class GhCli:
    """Runs gh commands in a working directory with a timeout."""

    def __init__(self, cwd: str | Path | None = None, timeout: int = 15) -> None:
        self._cwd = str(cwd) if cwd else None
        self._timeout = timeout

    def _run(self, *args: str) -> str:
        """Run a gh command and return its stripped stdout."""
        cmd = ["gh", *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=self._cwd,
                capture_output=True,
                text=True,
                check=False,
                timeout=self._timeout,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            raise GhCommandError(f"gh {args[0] if args else ''} failed: {e}") from e

        if result.returncode != 0:
            detail = (result.stderr or result.stdout).strip()
            raise GhCommandError(
                f"gh {' '.join(args[:2])} exited {result.returncode}: {detail}"
            )
        return result.stdout.strip()

    async def run(self, *args: str) -> str:
        loop = asyncio.get_running_loop()
        logger.debug("Running gh %s (cwd=%s)", " ".join(args[:2]), self._cwd)
        return await loop.run_in_executor(None, lambda: self._run(*args))
