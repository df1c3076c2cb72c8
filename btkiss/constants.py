"""Constants and configuration for btkiss.

Single source of truth for version, exit codes, D-Bus paths, timeouts,
file locations and the fixed AX.25 link parameters.
"""

from enum import IntEnum

VERSION: str = "1.0.0"
TOOL_NAME: str = "btkiss"
DISPLAY_NAME: str = "Bluetooth KISS TNC Manager"

# D-Bus constants
BLUEZ_SERVICE: str = "org.bluez"
ADAPTER_INTERFACE: str = "org.bluez.Adapter1"
DEVICE_INTERFACE: str = "org.bluez.Device1"
AGENT_MANAGER_INTERFACE: str = "org.bluez.AgentManager1"
PROPERTIES_INTERFACE: str = "org.freedesktop.DBus.Properties"
OBJECT_MANAGER_INTERFACE: str = "org.freedesktop.DBus.ObjectManager"

BLUEZ_PATH: str = "/org/bluez"
ADAPTER_PATH: str = "/org/bluez/hci0"
AGENT_PATH: str = "/org/bluez/agent/btkiss"
DEVICE_PATH_PREFIX: str = "/org/bluez/hci0/dev_"

# The radios use Secure Simple Pairing with no display on our side
AGENT_CAPABILITY: str = "NoInputNoOutput"
DEFAULT_PIN: str = "0000"

# Compatible TNC models, matched case-insensitively against device names
COMPATIBLE_MODELS: tuple[str, ...] = ("UV-PRO", "RT-660", "VR-N76", "VR-N7600")

# Discovery (seconds / one-second ticks)
SCAN_TIMEOUT: float = 30.0
LIST_SCAN_SECONDS: float = 10.0
DISCOVERY_TICKS: int = 15
RECHECK_TICKS: int = 10
POLL_INTERVAL: float = 1.0
CLEANUP_SETTLE_DELAY: float = 2.0
PAIR_SETTLE_DELAY: float = 2.0
PAIR_TIMEOUT: float = 60.0

# Serial bind
BIND_MAX_ATTEMPTS: int = 3
BIND_ATTEMPT_TIMEOUT: int = 10
BIND_RETRY_DELAY: float = 2.0
BINDER_KILL_TIMEOUT: float = 2.0
DIAGNOSTIC_LOG_LINES: int = 5

# Channel teardown
TEARDOWN_DELAY: float = 2.0
RELEASE_DELAY: float = 1.0

# Upper bound for any helper command (kissattach, pkill, dmesg, ...)
COMMAND_TIMEOUT: float = 10.0

# Channel naming
RFCOMM_DEVICE_PREFIX: str = "/dev/rfcomm"
INTERFACE_PREFIX: str = "ax"
PORT_PREFIX: str = "btport"
SYS_NET_PATH: str = "/sys/class/net"

# Persisted state
CONFIG_DIR: str = "/etc/ax25"
CONFIG_FILE: str = f"{CONFIG_DIR}/btkiss.conf"
AXPORTS_FILE: str = f"{CONFIG_DIR}/axports"
OS_RELEASE_FILE: str = "/etc/os-release"

# Fixed AX.25 link parameters written to axports
LINK_SPEED: int = 1200
LINK_PACLEN: int = 255
LINK_WINDOW: int = 2
LINK_DESCRIPTION: str = "Bluetooth TNC"

REQUIRED_TOOLS: tuple[str, ...] = ("rfcomm",)
KISS_TOOLS: tuple[str, ...] = ("kissattach", "kissparms")


def mac_to_device_path(mac: str) -> str:
    """Converts a MAC address to a BlueZ device object path.

    Args:
        mac: MAC address (e.g. '38:D2:00:01:11:FE').

    Returns:
        D-Bus path (e.g. '/org/bluez/hci0/dev_38_D2_00_01_11_FE').
    """
    return f"{DEVICE_PATH_PREFIX}{mac.upper().replace(':', '_')}"


class ExitCode(IntEnum):
    """Process exit codes.

    Attributes:
        OK: Command succeeded, or help was shown.
        ERROR: Any fatal error.
    """

    OK = 0
    ERROR = 1
