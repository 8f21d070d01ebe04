"""Process-level adapters for admin commands (shell commands, restart)."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Optional

LOGGER = logging.getLogger(__name__)


class LocalProcess:
    """ProcessPort adapter running shell commands and re-executing the bot."""

    def __init__(self, timeout: float = 300.0) -> None:
        self._timeout = timeout

    async def run_shell(self, command: str, stdin: Optional[bytes] = None) -> tuple[int, str, str]:
        """Run a shell command and return (exit code, stdout, stderr)."""

        LOGGER.info("Executing command: %s", command)
        process = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(stdin), timeout=self._timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise OSError(f"Command timed out after {self._timeout:.0f}s: {command}")

        return (
            process.returncode if process.returncode is not None else -1,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    def restart(self) -> None:
        """Replace the current process with a fresh one; never returns."""

        LOGGER.info("Restarting process")
        logging.shutdown()
        os.execv(sys.executable, [sys.executable, *sys.argv])
