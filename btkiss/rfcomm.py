"""RFCOMM serial channel binding.

Defines the :class:`SerialBridge` protocol and :class:`RfcommBridge`,
which drives the BlueZ ``rfcomm`` tool. A binder is a long-running
``rfcomm connect /dev/rfcommN <MAC>`` process; it is started in its own
session so it outlives this program once the channel is up.
"""

from __future__ import annotations

import asyncio
import logging
import re
import subprocess
from pathlib import Path
from typing import Iterable, Protocol, runtime_checkable

from .constants import BINDER_KILL_TIMEOUT, DIAGNOSTIC_LOG_LINES
from .process import run_command

logger = logging.getLogger(__name__)


def connection_refused(log_lines: Iterable[str]) -> bool:
    """Reports whether kernel log lines show the radio refusing RFCOMM.

    Args:
        log_lines: The most recent diagnostic log lines.

    Returns:
        True if an rfcomm line mentions 'connection refused'.
    """
    for line in log_lines:
        lower = line.lower()
        if "rfcomm" in lower and "connection refused" in lower:
            return True
    return False


def channel_pattern(program: str, channel_path: str) -> str:
    """Builds a ``pkill -f`` pattern for one program on one channel.

    The path is anchored so '/dev/rfcomm1' does not also match
    '/dev/rfcomm10'.

    Args:
        program: The leading command words (e.g. 'rfcomm connect').
        channel_path: The serial channel (e.g. '/dev/rfcomm1').

    Returns:
        An extended regular expression for the full command line.
    """
    return f"{program} {re.escape(channel_path)}( |$)"


@runtime_checkable
class BinderHandle(Protocol):
    """An owned binder process.

    Leaving the ``async with`` block terminates the process unless
    :meth:`keep` was called first.
    """

    def keep(self) -> None:
        ...

    async def terminate(self) -> None:
        ...

    async def __aenter__(self) -> BinderHandle:
        ...

    async def __aexit__(self, exc_type, exc, tb) -> None:
        ...


@runtime_checkable
class SerialBridge(Protocol):
    """Binds a Bluetooth serial profile connection to a local channel."""

    def spawn_binder(self, channel_path: str, address: str) -> BinderHandle:
        ...

    def channel_exists(self, channel_path: str) -> bool:
        ...

    async def connection_refused(self) -> bool:
        ...

    async def terminate_binders(self, channel_path: str) -> None:
        ...

    async def release(self, channel_path: str) -> None:
        ...


class BinderProcess:
    """Supervises one ``rfcomm connect`` process.

    Args:
        argv: The binder command line.
    """

    def __init__(self, argv: list[str]) -> None:
        self._argv = argv
        self._proc: subprocess.Popen | None = None
        self._kept = False

    @property
    def running(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def start(self) -> BinderProcess:
        logger.debug("Spawning binder: %s", " ".join(self._argv))
        self._proc = subprocess.Popen(
            self._argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
        return self

    def keep(self) -> None:
        self._kept = True

    async def terminate(self) -> None:
        if not self.running:
            return
        assert self._proc is not None
        self._proc.terminate()
        try:
            await asyncio.to_thread(self._proc.wait, BINDER_KILL_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.debug("Binder %d ignored SIGTERM, killing", self._proc.pid)
            self._proc.kill()
            await asyncio.to_thread(self._proc.wait)

    async def __aenter__(self) -> BinderProcess:
        if self._proc is None:
            self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self._kept:
            await self.terminate()


class RfcommBridge:
    """:class:`SerialBridge` backed by the ``rfcomm`` command line tool."""

    def spawn_binder(self, channel_path: str, address: str) -> BinderProcess:
        return BinderProcess(["rfcomm", "connect", channel_path, address])

    def channel_exists(self, channel_path: str) -> bool:
        return Path(channel_path).exists()

    async def connection_refused(self) -> bool:
        result = await run_command("dmesg")
        if not result.ok:
            logger.debug("dmesg unavailable: %s", result.stderr.strip())
            return False
        tail = result.stdout.splitlines()[-DIAGNOSTIC_LOG_LINES:]
        return connection_refused(tail)

    async def terminate_binders(self, channel_path: str) -> None:
        for program in ("kissattach", "rfcomm connect"):
            pattern = channel_pattern(program, channel_path)
            result = await run_command("pkill", "-f", pattern)
            if result.returncode == 0:
                logger.info("Terminated stale '%s'", pattern)

    async def release(self, channel_path: str) -> None:
        await run_command("rfcomm", "release", channel_path)
