"""D-Bus system bus connection manager.

Provides a single shared connection to the D-Bus system bus used by the
adapter, discovery and device operations. All BlueZ calls go through
direct method-call messages; no proxy introspection is needed.
"""

from __future__ import annotations

import logging
from typing import Any

from dbus_fast import BusType, Message
from dbus_fast.aio import MessageBus

from .constants import BLUEZ_SERVICE
from .exceptions import DbusPermissionError

logger = logging.getLogger(__name__)


class BusConnection:
    """Manages the D-Bus system bus connection lifecycle.

    Example:
        bus_conn = BusConnection()
        await bus_conn.connect()
        reply = await bus_conn.call(ADAPTER_PATH, ADAPTER_INTERFACE, "StartDiscovery")
        await bus_conn.disconnect()
    """

    def __init__(self) -> None:
        self._bus: MessageBus | None = None

    @property
    def bus(self) -> MessageBus:
        """Returns the active D-Bus connection.

        Raises:
            RuntimeError: If connect() has not been called.
        """
        if self._bus is None:
            raise RuntimeError("D-Bus connection not established. Call connect() first.")
        return self._bus

    @property
    def connected(self) -> bool:
        return self._bus is not None

    async def connect(self) -> None:
        """Connects to the D-Bus system bus.

        Raises:
            DbusPermissionError: If the connection is refused.
        """
        try:
            logger.debug("Connecting to D-Bus system bus")
            self._bus = await MessageBus(bus_type=BusType.SYSTEM).connect()
            logger.debug("D-Bus system bus connected")
        except PermissionError as exc:
            raise DbusPermissionError(
                "Cannot connect to D-Bus system bus"
            ) from exc
        except Exception as exc:
            raise DbusPermissionError(
                f"Failed to connect to D-Bus system bus: {exc}"
            ) from exc

    async def call(
        self,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: list[Any] | None = None,
    ) -> Message:
        """Sends a BlueZ method call and returns the reply message.

        The reply may be an error message; callers inspect
        ``reply.message_type`` and ``reply.error_name`` themselves.

        Args:
            path: The object path (e.g. '/org/bluez/hci0').
            interface: The D-Bus interface name.
            member: The method name.
            signature: The D-Bus signature of ``body``.
            body: The method arguments.

        Returns:
            The reply Message.
        """
        return await self.bus.call(
            Message(
                destination=BLUEZ_SERVICE,
                path=path,
                interface=interface,
                member=member,
                signature=signature,
                body=body or [],
            )
        )

    async def disconnect(self) -> None:
        """Disconnects from the D-Bus system bus."""
        if self._bus is not None:
            logger.debug("Disconnecting from D-Bus system bus")
            self._bus.disconnect()
            self._bus = None
