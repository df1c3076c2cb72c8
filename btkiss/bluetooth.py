"""Bluetooth stack access: discovery, device state, trust and pairing.

Defines the :class:`BluetoothAgent` protocol the pairing session and the
orchestrator depend on, and :class:`BluezAgent`, which implements it
against BlueZ on the D-Bus system bus.

D-Bus error names are turned into :class:`ReplyStatus` values in exactly
one place, :func:`classify_dbus_error`; nothing above this module looks
at error text.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, runtime_checkable

from dbus_fast import Message, MessageType, Variant

from .agent import PairingAgent
from .bus import BusConnection
from .constants import (
    ADAPTER_INTERFACE,
    ADAPTER_PATH,
    AGENT_CAPABILITY,
    AGENT_MANAGER_INTERFACE,
    AGENT_PATH,
    BLUEZ_PATH,
    DEVICE_INTERFACE,
    OBJECT_MANAGER_INTERFACE,
    PAIR_TIMEOUT,
    PROPERTIES_INTERFACE,
    mac_to_device_path,
)
from .models import AgentReply, Device, PairedState, ReplyStatus

logger = logging.getLogger(__name__)

_UNAVAILABLE_ERRORS = (
    "org.freedesktop.DBus.Error.UnknownObject",
    "org.freedesktop.DBus.Error.UnknownMethod",
    "org.bluez.Error.DoesNotExist",
    "org.bluez.Error.NotAvailable",
    "org.bluez.Error.NotReady",
)


def classify_dbus_error(error_name: str | None, text: str = "") -> ReplyStatus:
    """Maps a BlueZ error reply to a :class:`ReplyStatus`.

    Args:
        error_name: The D-Bus error name (e.g. 'org.bluez.Error.AuthenticationFailed').
        text: The error message body, consulted when the name is generic.

    Returns:
        The tagged status; ``OK`` when there is no error.
    """
    if not error_name:
        return ReplyStatus.OK
    if error_name == "org.bluez.Error.AlreadyExists":
        return ReplyStatus.OK
    if error_name.endswith("AuthenticationFailed") or "AuthenticationFailed" in text:
        return ReplyStatus.AUTHENTICATION_FAILED
    if error_name in _UNAVAILABLE_ERRORS or "not available" in text.lower():
        return ReplyStatus.UNAVAILABLE
    return ReplyStatus.REJECTED


def _reply_from(message: Message) -> AgentReply:
    if message.message_type != MessageType.ERROR:
        return AgentReply(ReplyStatus.OK)
    text = message.body[0] if message.body else ""
    detail = f"{message.error_name}: {text}" if text else str(message.error_name)
    return AgentReply(classify_dbus_error(message.error_name, str(text)), detail)


@runtime_checkable
class DiscoveryScan(Protocol):
    """A running discovery scan; ``cancel`` is idempotent."""

    async def cancel(self) -> None:
        ...


@runtime_checkable
class BluetoothAgent(Protocol):
    """Operations on the Bluetooth stack, keyed by hardware address.

    ``disconnect``, ``untrust`` and ``remove`` are best effort and never
    raise. ``trust`` and ``pair`` report failure through the returned
    :class:`AgentReply` instead of raising.
    """

    async def start_scan(self, timeout: float) -> DiscoveryScan:
        ...

    async def devices(self) -> list[Device]:
        ...

    async def is_visible(self, address: str) -> bool:
        ...

    async def paired_state(self, address: str) -> PairedState:
        ...

    async def trust(self, address: str) -> AgentReply:
        ...

    async def pair(self, address: str) -> AgentReply:
        ...

    async def disconnect(self, address: str) -> None:
        ...

    async def untrust(self, address: str) -> None:
        ...

    async def remove(self, address: str) -> None:
        ...


class BluezDiscoveryScan:
    """Adapter discovery bounded by a timeout.

    Discovery is stopped when the timeout expires or on the first call to
    :meth:`cancel`, whichever comes first. Use as an async context manager
    to guarantee the stop on every exit path.

    Args:
        bus_conn: The shared D-Bus connection.
        timeout: Seconds after which discovery stops by itself.
    """

    def __init__(self, bus_conn: BusConnection, timeout: float) -> None:
        self._bus_conn = bus_conn
        self._timeout = timeout
        self._expiry: asyncio.Task | None = None
        self._stopped = False

    async def start(self) -> BluezDiscoveryScan:
        reply = await self._bus_conn.call(ADAPTER_PATH, ADAPTER_INTERFACE, "StartDiscovery")
        if reply.message_type == MessageType.ERROR:
            # InProgress means another client is already scanning, which is fine
            logger.debug("StartDiscovery: %s", reply.error_name)
        self._expiry = asyncio.get_running_loop().create_task(self._expire())
        return self

    async def cancel(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._expiry is not None and not self._expiry.done():
            self._expiry.cancel()
        await self._stop_discovery()

    async def _expire(self) -> None:
        await asyncio.sleep(self._timeout)
        if not self._stopped:
            logger.debug("Discovery timed out after %.0fs", self._timeout)
            self._stopped = True
            await self._stop_discovery()

    async def _stop_discovery(self) -> None:
        try:
            reply = await self._bus_conn.call(ADAPTER_PATH, ADAPTER_INTERFACE, "StopDiscovery")
            if reply.message_type == MessageType.ERROR:
                logger.debug("StopDiscovery: %s (may already be stopped)", reply.error_name)
        except Exception:
            logger.debug("StopDiscovery failed", exc_info=True)

    async def __aenter__(self) -> BluezDiscoveryScan:
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.cancel()


class BluezAgent:
    """BlueZ implementation of :class:`BluetoothAgent`.

    Args:
        bus_conn: The shared, already connected D-Bus connection.
        pair_timeout: Upper bound for a single Pair request.
    """

    def __init__(self, bus_conn: BusConnection, pair_timeout: float = PAIR_TIMEOUT) -> None:
        self._bus_conn = bus_conn
        self._pair_timeout = pair_timeout

    async def start_scan(self, timeout: float) -> BluezDiscoveryScan:
        return await BluezDiscoveryScan(self._bus_conn, timeout).start()

    async def devices(self) -> list[Device]:
        """Lists every device object BlueZ currently knows about."""
        found = []
        for path, interfaces in (await self._managed_objects()).items():
            props = interfaces.get(DEVICE_INTERFACE)
            if props is None:
                continue
            address = _value(props, "Address")
            if not address:
                continue
            name = _value(props, "Alias") or _value(props, "Name") or address
            paired = PairedState.PAIRED if _value(props, "Paired") else PairedState.NOT_PAIRED
            found.append(Device(str(address).upper(), str(name), paired))
        return found

    async def is_visible(self, address: str) -> bool:
        objects = await self._managed_objects()
        interfaces = objects.get(mac_to_device_path(address), {})
        return DEVICE_INTERFACE in interfaces

    async def paired_state(self, address: str) -> PairedState:
        reply = await self._bus_conn.call(
            mac_to_device_path(address),
            PROPERTIES_INTERFACE,
            "Get",
            "ss",
            [DEVICE_INTERFACE, "Paired"],
        )
        if reply.message_type == MessageType.ERROR:
            logger.debug("Paired lookup for %s: %s", address, reply.error_name)
            return PairedState.UNKNOWN
        return PairedState.PAIRED if reply.body[0].value else PairedState.NOT_PAIRED

    async def trust(self, address: str) -> AgentReply:
        reply = _reply_from(await self._set_trusted(address, True))
        logger.info("Trust %s: %s", address, reply.status.value)
        return reply

    async def pair(self, address: str) -> AgentReply:
        """Pairs with the device while a :class:`PairingAgent` is registered.

        Args:
            address: The device MAC address.

        Returns:
            The classified reply; a timeout is reported as ``REJECTED``.
        """
        bus = self._bus_conn.bus
        bus.export(AGENT_PATH, PairingAgent())
        try:
            registered = await self._bus_conn.call(
                BLUEZ_PATH,
                AGENT_MANAGER_INTERFACE,
                "RegisterAgent",
                "os",
                [AGENT_PATH, AGENT_CAPABILITY],
            )
            if registered.message_type == MessageType.ERROR:
                logger.debug("RegisterAgent: %s (using default agent)", registered.error_name)
            try:
                message = await asyncio.wait_for(
                    self._bus_conn.call(mac_to_device_path(address), DEVICE_INTERFACE, "Pair"),
                    timeout=self._pair_timeout,
                )
            except asyncio.TimeoutError:
                return AgentReply(
                    ReplyStatus.REJECTED,
                    f"Pair timed out after {self._pair_timeout:.0f}s",
                )
            reply = _reply_from(message)
            logger.info("Pair %s: %s", address, reply.status.value)
            return reply
        finally:
            try:
                await self._bus_conn.call(
                    BLUEZ_PATH, AGENT_MANAGER_INTERFACE, "UnregisterAgent", "o", [AGENT_PATH]
                )
            except Exception:
                logger.debug("Agent unregister failed (non-critical)")
            bus.unexport(AGENT_PATH)

    async def disconnect(self, address: str) -> None:
        await self._best_effort(
            "Disconnect",
            self._bus_conn.call(mac_to_device_path(address), DEVICE_INTERFACE, "Disconnect"),
        )

    async def untrust(self, address: str) -> None:
        await self._best_effort("Untrust", self._set_trusted(address, False))

    async def remove(self, address: str) -> None:
        await self._best_effort(
            "RemoveDevice",
            self._bus_conn.call(
                ADAPTER_PATH,
                ADAPTER_INTERFACE,
                "RemoveDevice",
                "o",
                [mac_to_device_path(address)],
            ),
        )

    async def _set_trusted(self, address: str, trusted: bool) -> Message:
        return await self._bus_conn.call(
            mac_to_device_path(address),
            PROPERTIES_INTERFACE,
            "Set",
            "ssv",
            [DEVICE_INTERFACE, "Trusted", Variant("b", trusted)],
        )

    async def _managed_objects(self) -> dict:
        reply = await self._bus_conn.call("/", OBJECT_MANAGER_INTERFACE, "GetManagedObjects")
        if reply.message_type == MessageType.ERROR:
            logger.debug("GetManagedObjects failed: %s", reply.error_name)
            return {}
        return reply.body[0]  # dict: path -> {interface -> {prop -> Variant}}

    @staticmethod
    async def _best_effort(operation: str, call) -> None:
        try:
            reply = await call
            if reply.message_type == MessageType.ERROR:
                logger.debug("%s ignored: %s", operation, reply.error_name)
        except Exception:
            logger.debug("%s failed (ignored)", operation, exc_info=True)


def _value(props: dict, name: str):
    variant = props.get(name)
    return variant.value if variant is not None else None
