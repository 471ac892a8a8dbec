"""Async subprocess runner used for git, npm, and nyc invocations."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

_OUTPUT_TAIL_CHARS = 2000


@dataclass
class SubprocessResult:
    """Result of subprocess execution."""

    returncode: int
    """Exit code of the process."""

    stdout: str
    """Standard output captured from the process."""

    stderr: str
    """Standard error captured from the process."""

    timed_out: bool = False
    """True if the process was killed after exceeding its timeout."""

    duration_ms: float = 0.0
    """Wall-clock duration of the process in milliseconds."""

    @property
    def success(self) -> bool:
        """True if the process exited with 0 and was not killed."""
        return self.returncode == 0 and not self.timed_out

    @property
    def output_tail(self) -> str:
        """The last part of stderr (or stdout when stderr is empty), for log messages."""
        text = self.stderr.strip() or self.stdout.strip()
        return text[-_OUTPUT_TAIL_CHARS:]


class SubprocessError(Exception):
    """Exception raised when a subprocess cannot be started or fails with ``check=True``."""

    def __init__(self, message: str, result: SubprocessResult) -> None:
        super().__init__(message)
        self.result = result


async def run_subprocess(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    timeout: float | None = None,
    check: bool = False,
) -> SubprocessResult:
    """Execute *command* and capture its output.

    Args:
        command: Command and arguments (e.g. ``['npm', 'test']``).
        cwd: Working directory. Defaults to the current directory.
        timeout: Seconds to wait before killing the process. ``None`` waits
            indefinitely and leaves timeouts to the invoked tool.
        check: Raise ``SubprocessError`` on a non-zero exit code.

    Returns:
        SubprocessResult with exit code, output, and duration.

    Raises:
        SubprocessError: The command could not be started, or ``check`` is set
            and the command failed.
        ValueError: The command is empty or the working directory is missing.
    """
    if not command:
        raise ValueError("Command cannot be empty")

    work_dir = cwd.resolve() if cwd else Path.cwd()
    if not work_dir.exists():
        raise ValueError(f"Working directory does not exist: {work_dir}")

    display = " ".join(str(c) for c in command)
    logger.debug("Running subprocess: %s (cwd=%s, timeout=%s)", display, work_dir, timeout)

    start_time = time.perf_counter()
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=work_dir,
        )
    except (FileNotFoundError, PermissionError) as exc:
        logger.error("Command not found: %s", command[0])
        raise SubprocessError(
            f"Command not found: {command[0]}",
            result=SubprocessResult(returncode=-1, stdout="", stderr=str(exc)),
        ) from exc

    timed_out = False
    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        logger.warning("Subprocess timed out after %s seconds: %s", timeout, display)
        timed_out = True
        try:
            process.kill()
            await process.wait()
        except ProcessLookupError:
            pass
        stdout_bytes = b""
        stderr_bytes = b"Process timed out and was killed"

    duration_ms = (time.perf_counter() - start_time) * 1000
    returncode = process.returncode if process.returncode is not None else -1

    result = SubprocessResult(
        returncode=-1 if timed_out else returncode,
        stdout=stdout_bytes.decode("utf-8", errors="replace"),
        stderr=stderr_bytes.decode("utf-8", errors="replace"),
        timed_out=timed_out,
        duration_ms=duration_ms,
    )

    logger.debug(
        "Subprocess completed: returncode=%d, duration=%.2fms", result.returncode, duration_ms
    )

    if check and not result.success:
        raise SubprocessError(
            f"Command failed with exit code {result.returncode}: {display}", result=result
        )

    return result
