"""Bluetooth adapter management via D-Bus.

Handles adapter power-on and pairable configuration. All operations are
idempotent: if the condition is already met, the step is skipped.
"""

import logging

from dbus_fast import MessageType, Variant

from .bus import BusConnection
from .constants import ADAPTER_INTERFACE, ADAPTER_PATH, PROPERTIES_INTERFACE
from .exceptions import AdapterError
from .output import OutputFormatter
from .process import run_command

logger = logging.getLogger(__name__)


class AdapterManager:
    """Manages the Bluetooth adapter state via D-Bus.

    Ensures the adapter is powered on and pairable before any scan or
    pairing operation begins.

    Args:
        bus_conn: The shared D-Bus connection.
        output: The output formatter for status messages.
    """

    def __init__(self, bus_conn: BusConnection, output: OutputFormatter) -> None:
        self._bus_conn = bus_conn
        self._output = output

    async def ensure_powered(self) -> None:
        """Ensures the Bluetooth adapter is powered on.

        Raises:
            AdapterError: If the adapter cannot be found or powered on.
        """
        await self._ensure_flag("Powered", "Powering on adapter")

    async def ensure_pairable(self) -> None:
        """Ensures the Bluetooth adapter is in pairable mode.

        Raises:
            AdapterError: If the adapter cannot be set to pairable.
        """
        await self._ensure_flag("Pairable", "Enabling pairable mode")

    async def ensure_ready(self) -> None:
        await self.ensure_powered()
        await self.ensure_pairable()

    async def get_bluez_version(self) -> str:
        """Reads the BlueZ version from ``bluetoothctl --version``.

        Returns:
            The version string, or 'unknown'. The version is informational
            only.
        """
        result = await run_command("bluetoothctl", "--version")
        # Output: "bluetoothctl: 5.66"
        version_line = result.stdout.strip()
        if not result.ok or not version_line:
            return "unknown"
        if ":" in version_line:
            return version_line.split(":")[-1].strip()
        return version_line

    async def _ensure_flag(self, name: str, action: str) -> None:
        try:
            if await self._get_property(name):
                self._output.verbose(f"Adapter already {name.lower()}")
                return
            self._output.verbose(action)
            await self._set_property(name, True)
            logger.info("Adapter %s set", name)
        except AdapterError:
            raise
        except Exception as exc:
            raise AdapterError(f"Failed to set adapter {name}: {exc}") from exc

    async def _get_property(self, name: str) -> bool:
        reply = await self._bus_conn.call(
            ADAPTER_PATH,
            PROPERTIES_INTERFACE,
            "Get",
            "ss",
            [ADAPTER_INTERFACE, name],
        )
        if reply.message_type == MessageType.ERROR:
            raise AdapterError(
                f"Bluetooth adapter not found at {ADAPTER_PATH}: {reply.error_name}"
            )
        return bool(reply.body[0].value)

    async def _set_property(self, name: str, value: bool) -> None:
        reply = await self._bus_conn.call(
            ADAPTER_PATH,
            PROPERTIES_INTERFACE,
            "Set",
            "ssv",
            [ADAPTER_INTERFACE, name, Variant("b", value)],
        )
        if reply.message_type == MessageType.ERROR:
            detail = reply.body[0] if reply.body else reply.error_name
            raise AdapterError(f"Failed to set adapter {name}: {detail}")
