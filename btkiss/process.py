"""Helpers for running short-lived external commands."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import tempfile
from dataclasses import dataclass

from .constants import BINDER_KILL_TIMEOUT, COMMAND_TIMEOUT

logger = logging.getLogger(__name__)

COMMAND_NOT_FOUND = 127
COMMAND_TIMED_OUT = 124


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command(
    *argv: str,
    timeout: float = COMMAND_TIMEOUT,
    detach_output: bool = False,
) -> CommandResult:
    """Runs a command to completion and captures its output.

    A missing executable is reported as exit status 127 and an overrun
    as 124 rather than raised, so best-effort callers can simply check
    ``ok``. A command still running after ``timeout`` is killed.

    Args:
        argv: The program and its arguments.
        timeout: Seconds to wait for the command to exit.
        detach_output: Capture output through temporary files instead of
            pipes. Use for programs that daemonize, whose background
            child keeps inherited pipes open.

    Returns:
        The exit status with decoded stdout and stderr.
    """
    logger.debug("Running: %s", " ".join(argv))
    if detach_output:
        result = await _run_to_files(argv, timeout)
    else:
        result = await _run_to_pipes(argv, timeout)
    if not result.ok:
        logger.debug("%s exited %d: %s", argv[0], result.returncode, result.stderr.strip())
    return result


async def _run_to_pipes(argv: tuple[str, ...], timeout: float) -> CommandResult:
    proc = await _spawn(argv, asyncio.subprocess.PIPE, asyncio.subprocess.PIPE)
    if proc is None:
        return _not_found(argv)
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        return await _timed_out(proc, argv, timeout)
    return CommandResult(
        proc.returncode if proc.returncode is not None else 0,
        stdout.decode(errors="replace"),
        stderr.decode(errors="replace"),
    )


async def _run_to_files(argv: tuple[str, ...], timeout: float) -> CommandResult:
    with tempfile.TemporaryFile() as out, tempfile.TemporaryFile() as err:
        proc = await _spawn(argv, out, err)
        if proc is None:
            return _not_found(argv)
        try:
            returncode = await asyncio.wait_for(proc.wait(), timeout)
        except asyncio.TimeoutError:
            return await _timed_out(proc, argv, timeout)
        out.seek(0)
        err.seek(0)
        return CommandResult(
            returncode,
            out.read().decode(errors="replace"),
            err.read().decode(errors="replace"),
        )


async def _spawn(argv: tuple[str, ...], stdout, stderr) -> asyncio.subprocess.Process | None:
    try:
        return await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=stdout,
            stderr=stderr,
        )
    except FileNotFoundError:
        logger.debug("Command not found: %s", argv[0])
        return None


def _not_found(argv: tuple[str, ...]) -> CommandResult:
    return CommandResult(COMMAND_NOT_FOUND, "", f"{argv[0]}: command not found")


async def _timed_out(
    proc: asyncio.subprocess.Process, argv: tuple[str, ...], timeout: float
) -> CommandResult:
    logger.warning("%s still running after %.0fs, killing it", argv[0], timeout)
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    with contextlib.suppress(asyncio.TimeoutError):
        await asyncio.wait_for(proc.wait(), BINDER_KILL_TIMEOUT)
    return CommandResult(COMMAND_TIMED_OUT, "", f"{argv[0]}: timed out after {timeout:.0f}s")
