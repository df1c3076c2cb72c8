"""Connection orchestrator: from a MAC address to a running AX.25 link.

Implements the connection sequence:
1. channel cleanup (always, never fails)
2. callsign resolution and persistence
3. pairing, only if BlueZ does not already report the device paired
4. RFCOMM bind with bounded retries
5. KISS attach, unless serial-only mode was requested

Every stage failure aborts the run with a :class:`BtKissError`
subclass; only the bind stage retries, and only within one run.
"""

from __future__ import annotations

import asyncio
import logging

from .bluetooth import BluetoothAgent
from .catalog import filter_compatible
from .config import ConfigStore
from .constants import (
    BIND_ATTEMPT_TIMEOUT,
    BIND_MAX_ATTEMPTS,
    BIND_RETRY_DELAY,
    LIST_SCAN_SECONDS,
    POLL_INTERVAL,
    RELEASE_DELAY,
    RFCOMM_DEVICE_PREFIX,
    SCAN_TIMEOUT,
    TEARDOWN_DELAY,
)
from .exceptions import (
    BindExhausted,
    CallsignRequired,
    NoCompatibleDevice,
    RadioNeedsRestart,
)
from .kiss import LinkAttacher
from .models import ConnectionConfig, ConnectionTarget, Device, PairedState, SessionOutcome
from .output import OutputFormatter
from .pairing import PairingSession, Sleep, forget_device
from .prompts import Operator
from .rfcomm import SerialBridge

logger = logging.getLogger(__name__)


class ConnectionOrchestrator:
    """Sequences the Bluetooth, RFCOMM and KISS capabilities.

    Args:
        agent: The Bluetooth stack.
        bridge: The RFCOMM channel binder.
        attacher: The KISS link attacher.
        store: Persisted configuration.
        operator: Prompt channel for the callsign and pairing mode.
        output: The output formatter for status messages.
        sleep: Coroutine function used for every wait.
        poll_interval: Seconds per poll tick.
    """

    def __init__(
        self,
        agent: BluetoothAgent,
        bridge: SerialBridge,
        attacher: LinkAttacher,
        store: ConfigStore,
        operator: Operator,
        output: OutputFormatter,
        sleep: Sleep = asyncio.sleep,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self._agent = agent
        self._bridge = bridge
        self._attacher = attacher
        self._store = store
        self._operator = operator
        self._output = output
        self._sleep = sleep
        self._poll_interval = poll_interval

    async def connect(
        self,
        target: ConnectionTarget,
        skip_prior_cleanup: bool = False,
    ) -> SessionOutcome:
        """Brings the target up as far as requested.

        Args:
            target: What to connect and where.
            skip_prior_cleanup: Skip removing stale pairing data during
                pairing because the caller already cleaned the cache.
                Channel cleanup runs regardless.

        Returns:
            ``LINK_UP`` with the interface name, or ``SERIAL_ONLY`` with
            the channel when the target skips the KISS attach.
        """
        self._output.section("SETUP", "Preparing connection...")
        await self.teardown(target.channel_path)
        self._output.success("Old connections cleaned up")

        await self.resolve_callsign(target)
        await self.ensure_paired(target.address, skip_cleanup=skip_prior_cleanup)

        self._output.blank()
        self._output.section("CONNECT", "Establishing RFCOMM connection...")
        await self.bind_channel(target.address, target.channel_path)

        if target.skip_link_attach:
            return SessionOutcome.serial_only(target.channel, target.address)

        self._output.blank()
        self._output.section("KISS", "Attaching AX.25 interface...")
        interface = await self._attacher.attach(
            target.channel_path, target.port_name, target.interface_name
        )
        self._output.success(f"Interface created: {self._output.highlight(interface)}")
        return SessionOutcome.link_up(interface, target.address)

    async def auto_connect(
        self,
        channel: int = 0,
        callsign: str | None = None,
        skip_link_attach: bool = False,
    ) -> SessionOutcome:
        """Connects to the first compatible device a fresh scan finds.

        The pairing cache of every compatible device is cleaned first,
        so the connect that follows skips its own pairing cleanup.

        Raises:
            NoCompatibleDevice: The scan found no known TNC model.
        """
        await self.clean_bluetooth_cache()

        self._output.section("SCAN", "Searching for compatible devices...")
        compatible = filter_compatible(await self.scan_devices())
        if not compatible:
            raise NoCompatibleDevice("No compatible devices found")

        chosen = compatible[0]
        label = f"{self._output.highlight(chosen.name)} ({chosen.address})"
        if len(compatible) > 1:
            self._output.success(f"Found {len(compatible)} devices, using: {label}")
        else:
            self._output.success(f"Found: {label}")
        self._output.blank()

        target = ConnectionTarget(
            address=chosen.address,
            channel=channel,
            callsign=callsign,
            skip_link_attach=skip_link_attach,
        )
        return await self.connect(target, skip_prior_cleanup=True)

    async def halt(self, channel: int = 0) -> None:
        """Stops the binder and KISS attach for one channel; always succeeds."""
        channel_path = f"{RFCOMM_DEVICE_PREFIX}{channel}"
        self._output.section("HALT", f"Stopping AX.25 on {channel_path}...")
        await self.teardown(channel_path, settle=False)
        self._output.success("Stopped")
        self._output.blank()

    async def teardown(self, channel_path: str, settle: bool = True) -> None:
        """Terminates stale processes for the channel and releases it.

        Idempotent; failures are logged and swallowed.

        Args:
            channel_path: The serial channel (e.g. '/dev/rfcomm0').
            settle: Pause after the release so the kernel frees the device.
        """
        try:
            await self._bridge.terminate_binders(channel_path)
        except Exception:
            logger.warning("Terminating binders for %s failed", channel_path, exc_info=True)
        await self._sleep(TEARDOWN_DELAY)
        try:
            await self._bridge.release(channel_path)
        except Exception:
            logger.warning("Releasing %s failed", channel_path, exc_info=True)
        if settle:
            await self._sleep(RELEASE_DELAY)

    async def resolve_callsign(self, target: ConnectionTarget) -> str:
        """Returns the station callsign, persisting it on first use.

        A stored callsign wins over the command line. The axports line for
        the target's port is written whenever it is missing or stale.

        Raises:
            CallsignRequired: No callsign stored, given or entered.
        """
        stored = self._store.load()
        if stored is not None:
            if self._store.ensure_port(target.port_name, stored.callsign):
                self._output.success(f"Port {target.port_name} configured")
            return stored.callsign

        callsign = target.callsign or await self._operator.ask_callsign()
        if not callsign:
            raise CallsignRequired("Callsign required")
        callsign = callsign.upper()

        self._store.save(ConnectionConfig(device_mac=target.address, callsign=callsign))
        self._store.ensure_port(target.port_name, callsign)
        self._output.success(f"Configuration saved to {self._store.config_file}")
        self._output.blank()
        return callsign

    async def ensure_paired(self, address: str, skip_cleanup: bool = False) -> bool:
        """Pairs the device unless BlueZ already reports it paired.

        Returns:
            True if a pairing session ran.
        """
        if await self._agent.paired_state(address) is PairedState.PAIRED:
            self._output.success("Device already paired")
            return False

        self._output.blank()
        self._output.section("PAIR", "Device needs pairing")
        await self._operator.confirm_pairing_mode()
        session = PairingSession(
            self._agent,
            self._output,
            sleep=self._sleep,
            scan_timeout=SCAN_TIMEOUT,
            poll_interval=self._poll_interval,
        )
        await session.pair(address, skip_cleanup=skip_cleanup)
        return True

    async def bind_channel(
        self,
        address: str,
        channel_path: str,
        max_attempts: int = BIND_MAX_ATTEMPTS,
        attempt_timeout: int = BIND_ATTEMPT_TIMEOUT,
    ) -> int:
        """Binds the device's serial profile to ``channel_path``.

        Args:
            address: The device MAC address.
            channel_path: The serial channel (e.g. '/dev/rfcomm0').
            max_attempts: Binder processes to try at most.
            attempt_timeout: Poll ticks to wait for the channel per attempt.

        Returns:
            The number of the attempt that succeeded.

        Raises:
            RadioNeedsRestart: The radio refused the connection.
            BindExhausted: Every attempt timed out.
        """
        for attempt in range(1, max_attempts + 1):
            self._output.progress(f"Attempt {attempt}/{max_attempts}...")
            async with self._bridge.spawn_binder(channel_path, address) as binder:
                if await self._wait_for_channel(channel_path, attempt_timeout):
                    binder.keep()
                    self._output.success(
                        f"RFCOMM connected: {self._output.highlight(channel_path)}"
                    )
                    return attempt

            if await self._bridge.connection_refused():
                raise RadioNeedsRestart("Connection refused - radio needs restart")

            logger.info("Bind attempt %d/%d for %s timed out", attempt, max_attempts, channel_path)
            if attempt < max_attempts:
                self._output.progress(f"Connection attempt {attempt} failed, retrying...")
                await self._sleep(BIND_RETRY_DELAY)

        raise BindExhausted(f"RFCOMM connection failed after {max_attempts} attempts")

    async def scan_devices(self, seconds: float = LIST_SCAN_SECONDS) -> list[Device]:
        """Scans for ``seconds`` and returns every device BlueZ knows."""
        scan = await self._agent.start_scan(seconds)
        try:
            await self._sleep(seconds)
        finally:
            await scan.cancel()
        return await self._agent.devices()

    async def list_devices(
        self, seconds: float = LIST_SCAN_SECONDS
    ) -> tuple[list[Device], list[Device]]:
        """Scans and returns ``(all devices, compatible devices)``."""
        self._output.section("SCAN", "Searching for Bluetooth devices...")
        devices = await self.scan_devices(seconds)
        return devices, filter_compatible(devices)

    async def clean_bluetooth_cache(self) -> list[Device]:
        """Forgets every compatible device BlueZ has cached. Best effort.

        Returns:
            The devices that were forgotten.
        """
        self._output.section("CLEANUP", "Cleaning Bluetooth cache...")
        cached = filter_compatible(await self._agent.devices())
        for device in cached:
            self._output.progress(f"Removing cached device: {device.address}")
            await forget_device(self._agent, device.address)
        if cached:
            self._output.success("Cache cleaned")
        else:
            self._output.success("No cached devices to clean")
        self._output.blank()
        return cached

    async def _wait_for_channel(self, channel_path: str, ticks: int) -> bool:
        for _ in range(ticks):
            await self._sleep(self._poll_interval)
            if self._bridge.channel_exists(channel_path):
                return True
        return False
