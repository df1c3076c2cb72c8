"""btkiss application: command dispatch and error translation.

Checks the host, connects to the system bus when the command needs
BlueZ, runs the requested orchestrator operation and translates
exceptions to exit codes.
"""

from __future__ import annotations

import logging
from enum import Enum

from .adapter import AdapterManager
from .bluetooth import BluezAgent
from .bus import BusConnection
from .config import ConfigStore
from .constants import DISPLAY_NAME, RFCOMM_DEVICE_PREFIX, TOOL_NAME, ExitCode
from .environment import check_prerequisites, check_privileges, required_tools
from .exceptions import BtKissError, InvalidAddress
from .kiss import KissAttacher
from .models import ConnectionTarget, Device, OutcomeKind, SessionOutcome
from .orchestrator import ConnectionOrchestrator
from .output import OutputFormatter
from .prompts import Operator, UnattendedOperator
from .rfcomm import RfcommBridge

logger = logging.getLogger(__name__)


class Command(Enum):
    CONNECT = "connect"
    AUTO_CONNECT = "auto-connect"
    HALT = "halt"
    LIST_DEVICES = "list-devices"


HEADERS = {
    Command.CONNECT: DISPLAY_NAME,
    Command.AUTO_CONNECT: f"{DISPLAY_NAME} - Auto Connect",
    Command.HALT: f"{DISPLAY_NAME} - Halt",
    Command.LIST_DEVICES: f"{DISPLAY_NAME} - Device Scanner",
}


class BtKissApp:
    """Runs one btkiss command.

    Args:
        command: The command to run.
        mac: Target device MAC address (``CONNECT`` only).
        channel: RFCOMM channel index.
        callsign: Callsign from the command line.
        skip_kiss: Stop after the RFCOMM bind.
        operator: Prompt channel; unattended when omitted.
        output: The output formatter.
        store: Persisted configuration.
    """

    def __init__(
        self,
        command: Command,
        mac: str | None = None,
        channel: int = 0,
        callsign: str | None = None,
        skip_kiss: bool = False,
        operator: Operator | None = None,
        output: OutputFormatter | None = None,
        store: ConfigStore | None = None,
    ) -> None:
        self._command = command
        self._mac = mac.upper() if mac else None
        self._channel = channel
        self._callsign = callsign
        self._skip_kiss = skip_kiss
        self._output = output or OutputFormatter()
        self._operator = operator or UnattendedOperator()
        self._store = store or ConfigStore()
        self._bus_conn = BusConnection()
        self.outcome: SessionOutcome | None = None

    async def run(self) -> ExitCode:
        """Executes the command.

        Returns:
            The appropriate ExitCode for the result.
        """
        try:
            self._check_host()
            self._output.header(HEADERS[self._command])
            if self._command is Command.HALT:
                await self._build_orchestrator().halt(self._channel)
                return ExitCode.OK
            await self._bus_conn.connect()
            return await self._execute()
        except BtKissError as exc:
            self.outcome = SessionOutcome.failed(str(exc))
            self._output.error(str(exc), exc.hint)
            return ExitCode.ERROR
        except Exception as exc:
            self.outcome = SessionOutcome.failed(str(exc))
            self._output.error(f"Unexpected error: {exc}")
            logger.exception("Unexpected error")
            return ExitCode.ERROR
        finally:
            await self._bus_conn.disconnect()

    def _check_host(self) -> None:
        check_privileges()
        if self._command is Command.HALT:
            return
        need_kiss = self._command is not Command.LIST_DEVICES and not self._skip_kiss
        check_prerequisites(required_tools(need_kiss))

    async def _execute(self) -> ExitCode:
        adapter = AdapterManager(self._bus_conn, self._output)
        self._output.verbose(f"BlueZ {await adapter.get_bluez_version()}")
        await adapter.ensure_ready()

        orchestrator = self._build_orchestrator()
        if self._command is Command.LIST_DEVICES:
            devices, compatible = await orchestrator.list_devices()
            self._report_devices(devices, compatible)
            return ExitCode.OK

        if self._command is Command.AUTO_CONNECT:
            self.outcome = await orchestrator.auto_connect(
                channel=self._channel,
                callsign=self._callsign,
                skip_link_attach=self._skip_kiss,
            )
        else:
            if not self._mac:
                raise InvalidAddress(
                    "MAC address required",
                    hint=f"Usage: sudo {TOOL_NAME} --connect <MAC_ADDRESS> "
                    f"or sudo {TOOL_NAME} --auto-connect",
                )
            target = ConnectionTarget(
                address=self._mac,
                channel=self._channel,
                callsign=self._callsign,
                skip_link_attach=self._skip_kiss,
            )
            self.outcome = await orchestrator.connect(target)

        self._report_outcome(self.outcome)
        return ExitCode.OK

    def _build_orchestrator(self) -> ConnectionOrchestrator:
        return ConnectionOrchestrator(
            agent=BluezAgent(self._bus_conn),
            bridge=RfcommBridge(),
            attacher=KissAttacher(),
            store=self._store,
            operator=self._operator,
            output=self._output,
        )

    def _report_outcome(self, outcome: SessionOutcome) -> None:
        out = self._output
        address = out.highlight(outcome.address or "")
        if outcome.kind is OutcomeKind.LINK_UP:
            stored = self._store.load()
            callsign = stored.callsign if stored else (self._callsign or "")
            out.result(
                "AX.25 interface ready",
                [
                    ("Interface", out.highlight(outcome.interface_name or "")),
                    ("Callsign", out.emphasis(callsign)),
                    ("Device", address),
                ],
                footer=f"Test with:  {out.emphasis('sudo axlisten -a -c -t')}",
            )
        elif outcome.kind is OutcomeKind.SERIAL_ONLY:
            out.result(
                "RFCOMM connected",
                [
                    ("Device", out.highlight(f"{RFCOMM_DEVICE_PREFIX}{outcome.channel}")),
                    ("MAC", address),
                ],
                footer="KISS attach was skipped (--no-kiss)",
            )

    def _report_devices(self, devices: list[Device], compatible: list[Device]) -> None:
        out = self._output
        out.blank()
        out.separator()
        for device in devices:
            out.progress(f"Device {device.address} {device.name}")
        if not devices:
            out.progress("No devices found")
        out.separator()
        out.blank()

        if compatible:
            out.section("FOUND", "Compatible TNC devices:")
            for device in compatible:
                out.success(f"{out.highlight(device.name)} ({device.address})")
                out.progress(
                    f"Connect: {out.emphasis(f'sudo {TOOL_NAME} --connect {device.address}')}"
                )
            out.blank()

        out.note("If your device doesn't show up:")
        out.progress("1. Enable 'Pairing' mode in device settings")
        out.progress(f"2. Rerun: sudo {TOOL_NAME} --list-devices")
        out.blank()
