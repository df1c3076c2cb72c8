"""Custom exceptions for btkiss.

Every failure the orchestrator can surface is a subclass of
:class:`BtKissError`. Each class carries a default remediation ``hint``
that the CLI prints below the error message.
"""


class BtKissError(Exception):
    """Base exception for all btkiss errors."""

    hint: str = ""

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        if hint is not None:
            self.hint = hint


# Environment and input

class SetupError(BtKissError):
    """The host or the command line is not usable as given."""


class NotPrivileged(SetupError):
    """Not running with root privileges."""

    hint = "Run the command again with sudo"


class MissingPrerequisites(SetupError):
    """Required command line tools are not installed."""

    hint = "Install with: sudo apt install -y ax25-tools ax25-apps bluez"


class InvalidAddress(SetupError):
    """The MAC address is missing or malformed."""

    hint = "Expected format: AA:BB:CC:DD:EE:FF"


class CallsignRequired(SetupError):
    """No callsign stored, given on the command line, or entered."""

    hint = "Pass --callsign <CALL> (e.g. N0CALL-1)"


class NoCompatibleDevice(SetupError):
    """Auto-connect found no compatible TNC."""

    hint = (
        "Make sure your device is powered on, Bluetooth is enabled and "
        "pairing is turned on (Menu > Pairing > Press OK)"
    )


class AdapterError(SetupError):
    """Adapter is not available, not powered, or cannot be configured."""

    hint = "Check that a Bluetooth adapter is present and not blocked (rfkill)"


class DbusPermissionError(SetupError):
    """Insufficient permissions to access the D-Bus system bus or BlueZ."""

    hint = "Are you running as root and is bluetoothd running?"


# Pairing

class PairingError(BtKissError):
    """A stage of the pairing session failed."""


class DeviceNotDiscovered(PairingError):
    """The device did not show up during the discovery scan."""

    hint = "Make sure the device is in pairing mode"


class DeviceUnavailable(PairingError):
    """BlueZ reports the device is not currently reachable for trust."""

    hint = "Turn the device off and on, then retry"


class TrustRejected(PairingError):
    """The trust request failed for any other reason."""

    hint = "Turn the device off and on, then Menu > Pairing and retry"


class AuthenticationFailed(PairingError):
    """The pairing was not authorised on the radio."""

    hint = (
        "You didn't press OK in Menu > Pairing on the radio. "
        "Turn the radio off then on, Menu > Pairing > Press OK, "
        "and run the command again"
    )


class PairingRejected(PairingError):
    """The pair request failed for any reason other than authentication."""

    hint = "Turn the device off, then on, then Menu > Pairing and retry"


# Serial bind

class BindError(BtKissError):
    """The RFCOMM channel could not be bound."""


class RadioNeedsRestart(BindError):
    """The radio refused the RFCOMM connection; retrying is futile."""

    hint = (
        "Turn the radio off then on, Menu > Pairing > Press OK, "
        "and run the command again"
    )


class BindExhausted(BindError):
    """Every bind attempt timed out."""

    hint = (
        "Make sure KISS TNC is enabled on the device "
        "(Menu > General Settings > KISS TNC > Enable). "
        "If it keeps failing, turn the radio off then on and run again"
    )


# Link attach

class AttachError(BtKissError):
    """The KISS attach did not produce a network interface."""


class InterfaceNotCreated(AttachError):
    """The expected AX.25 interface is absent after kissattach."""

    hint = "Run --halt for this channel before trying again"
