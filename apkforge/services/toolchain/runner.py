"""
External process runner.

Every toolchain invocation goes through a CommandLineRunner so that command
lines can be recorded or replaced in tests.
"""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from pathlib import Path

from ...core.exceptions import ToolchainError
from ...core.logging import get_logger, tool_context

logger = get_logger(__name__)


class CommandLineRunner:
    """Runs external tools and fails on a non-zero exit code."""

    def run_cmd_line(self, command: Sequence[str | Path], cwd: Path | None = None) -> str:
        """Run a command line.

        Args:
            command: The tool followed by its arguments.
            cwd: Working directory.

        Returns:
            str: The standard output of the tool.

        Raises:
            ToolchainError: If the tool cannot be started or exits with a
                non-zero code.
        """
        cmd = [str(part) for part in command]
        tool = Path(cmd[0]).name
        with tool_context(tool):
            return self._run(cmd, tool, cwd)

    def _run(self, cmd: list[str], tool: str, cwd: Path | None) -> str:
        logger.info("Running command", command=" ".join(cmd), cwd=str(cwd) if cwd else None)

        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                cwd=cwd,
            )
        except OSError as e:
            raise ToolchainError(
                message=f"Unable to run {cmd[0]}",
                tool=tool,
                command=cmd,
                cause=e,
            ) from e

        for line in result.stdout.splitlines():
            logger.debug(line, stream="stdout")
        for line in result.stderr.splitlines():
            logger.info(line, stream="stderr")

        if result.returncode != 0:
            stderr = result.stderr.strip()
            raise ToolchainError(
                message=stderr[-2000:] or "process failed",
                tool=tool,
                command=cmd,
                returncode=result.returncode,
            )
        return result.stdout
