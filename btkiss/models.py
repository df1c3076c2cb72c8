"""Data models shared by the orchestrator and its capabilities."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .constants import INTERFACE_PREFIX, PORT_PREFIX, RFCOMM_DEVICE_PREFIX


class PairedState(Enum):
    UNKNOWN = "unknown"
    PAIRED = "paired"
    NOT_PAIRED = "not paired"


@dataclass(frozen=True)
class Device:
    """A Bluetooth device as reported by the stack.

    Identity is the hardware address; the name and paired state are
    whatever the latest scan reported.
    """

    address: str
    name: str = field(compare=False)
    paired_state: PairedState = field(default=PairedState.UNKNOWN, compare=False)


@dataclass(frozen=True)
class ConnectionTarget:
    """Everything one connection attempt needs, fixed for its duration.

    Args:
        address: Device MAC address.
        channel: RFCOMM channel index; selects /dev/rfcommN and axN.
        callsign: Callsign from the command line, if any.
        skip_link_attach: Stop after the RFCOMM bind (--no-kiss).
    """

    address: str
    channel: int = 0
    callsign: str | None = None
    skip_link_attach: bool = False

    def __post_init__(self) -> None:
        if self.channel < 0:
            raise ValueError(f"Channel must be >= 0, got {self.channel}")

    @property
    def channel_path(self) -> str:
        return f"{RFCOMM_DEVICE_PREFIX}{self.channel}"

    @property
    def interface_name(self) -> str:
        return f"{INTERFACE_PREFIX}{self.channel}"

    @property
    def port_name(self) -> str:
        # Channel 0 keeps the bare port name existing axports files use
        return PORT_PREFIX if self.channel == 0 else f"{PORT_PREFIX}{self.channel}"


@dataclass(frozen=True)
class ConnectionConfig:
    device_mac: str
    callsign: str


class OutcomeKind(Enum):
    LINK_UP = "link up"
    SERIAL_ONLY = "serial only"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionOutcome:
    """Terminal result of one orchestration run."""

    kind: OutcomeKind
    interface_name: str | None = None
    channel: int | None = None
    reason: str | None = None
    address: str | None = None

    @classmethod
    def link_up(cls, interface_name: str, address: str | None = None) -> SessionOutcome:
        return cls(OutcomeKind.LINK_UP, interface_name=interface_name, address=address)

    @classmethod
    def serial_only(cls, channel: int, address: str | None = None) -> SessionOutcome:
        return cls(OutcomeKind.SERIAL_ONLY, channel=channel, address=address)

    @classmethod
    def failed(cls, reason: str) -> SessionOutcome:
        return cls(OutcomeKind.FAILED, reason=reason)


class ReplyStatus(Enum):
    OK = "ok"
    UNAVAILABLE = "unavailable"
    AUTHENTICATION_FAILED = "authentication failed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class AgentReply:
    """Structured result of a trust or pair request."""

    status: ReplyStatus
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is ReplyStatus.OK


class PairingStage(Enum):
    SCANNING = "scanning"
    DISCOVERED = "discovered"
    CLEANED = "cleaned"
    TRUSTED = "trusted"
    PAIRED = "paired"
    DONE = "done"
    FAILED = "failed"
