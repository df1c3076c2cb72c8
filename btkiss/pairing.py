"""Pairing session: discover, clean stale pairing, trust, pair.

Trust always precedes pair; BlueZ rejects pairing these radios without
prior trust. The discovery scan started at the beginning of a session is
cancelled exactly once, right after the pair request returns or as soon
as any earlier stage fails.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .bluetooth import BluetoothAgent
from .constants import (
    CLEANUP_SETTLE_DELAY,
    DISCOVERY_TICKS,
    PAIR_SETTLE_DELAY,
    POLL_INTERVAL,
    RECHECK_TICKS,
    SCAN_TIMEOUT,
)
from .exceptions import (
    AuthenticationFailed,
    DeviceNotDiscovered,
    DeviceUnavailable,
    PairingRejected,
    TrustRejected,
)
from .models import PairingStage, ReplyStatus
from .output import OutputFormatter

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class PairingSession:
    """Runs one pairing attempt against a single device.

    The current :class:`PairingStage` is exposed as ``stage`` so callers
    can tell where a failed session stopped.

    Args:
        agent: The Bluetooth stack.
        output: The output formatter for status messages.
        sleep: Coroutine function used for every wait.
        scan_timeout: Upper bound on the discovery scan's lifetime.
        poll_interval: Seconds per visibility poll tick.
    """

    def __init__(
        self,
        agent: BluetoothAgent,
        output: OutputFormatter,
        sleep: Sleep = asyncio.sleep,
        scan_timeout: float = SCAN_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self._agent = agent
        self._output = output
        self._sleep = sleep
        self._scan_timeout = scan_timeout
        self._poll_interval = poll_interval
        self.stage = PairingStage.SCANNING

    async def pair(
        self,
        address: str,
        discovery_ticks: int = DISCOVERY_TICKS,
        skip_cleanup: bool = False,
    ) -> None:
        """Pairs with ``address``.

        Args:
            address: The device MAC address.
            discovery_ticks: Poll ticks to wait for the device to appear.
            skip_cleanup: Skip removing stale pairing data (the caller
                already cleaned the cache).

        Raises:
            DeviceNotDiscovered: The device never appeared.
            DeviceUnavailable: BlueZ could not reach the device to trust it.
            TrustRejected: Trust failed for another reason.
            AuthenticationFailed: Pairing was not authorised on the radio.
            PairingRejected: Pairing failed for another reason.
        """
        self.stage = PairingStage.SCANNING
        self._output.progress("Scanning...")
        scan = await self._agent.start_scan(self._scan_timeout)
        try:
            self._output.progress("Waiting for device to be discovered...")
            if not await self._wait_visible(address, discovery_ticks):
                raise DeviceNotDiscovered(f"Device {address} not discovered")
            self.stage = PairingStage.DISCOVERED
            self._output.success("Device discovered")

            if not skip_cleanup:
                await self._clean(address)
            self.stage = PairingStage.CLEANED

            await self._trust(address)
            self.stage = PairingStage.TRUSTED

            self._output.progress("Pairing...")
            reply = await self._agent.pair(address)
        except Exception:
            self.stage = PairingStage.FAILED
            raise
        finally:
            await scan.cancel()

        if not reply.ok:
            self.stage = PairingStage.FAILED
            logger.info("Pairing %s failed: %s", address, reply.detail)
            if reply.status is ReplyStatus.AUTHENTICATION_FAILED:
                raise AuthenticationFailed(f"Pairing failed: {reply.detail or 'AuthenticationFailed'}")
            raise PairingRejected(f"Pairing failed: {reply.detail or reply.status.value}")

        self.stage = PairingStage.PAIRED
        self._output.success("Paired")
        await self._sleep(PAIR_SETTLE_DELAY)
        self.stage = PairingStage.DONE

    async def _wait_visible(self, address: str, ticks: int) -> bool:
        for _ in range(ticks):
            if await self._agent.is_visible(address):
                return True
            await self._sleep(self._poll_interval)
        return False

    async def _clean(self, address: str) -> None:
        self._output.progress("Cleaning old pairing data...")
        await forget_device(self._agent, address)
        await self._sleep(CLEANUP_SETTLE_DELAY)

        self._output.progress("Re-checking device visibility...")
        if await self._wait_visible(address, RECHECK_TICKS):
            self._output.success("Device visible")
        else:
            logger.warning("Device %s not visible after cleanup, trying anyway", address)

    async def _trust(self, address: str) -> None:
        self._output.progress("Trusting device...")
        reply = await self._agent.trust(address)
        if reply.status is ReplyStatus.UNAVAILABLE:
            raise DeviceUnavailable("Device not available for trust")
        if not reply.ok:
            raise TrustRejected(f"Trust failed: {reply.detail or reply.status.value}")
        self._output.success("Trusted")


async def forget_device(agent: BluetoothAgent, address: str) -> None:
    """Disconnects, untrusts and removes a device, ignoring every failure."""
    for operation in (agent.disconnect, agent.untrust, agent.remove):
        try:
            await operation(address)
        except Exception:
            logger.debug("%s %s failed (ignored)", operation.__name__, address, exc_info=True)
