"""Entry point for btkiss.

Parses CLI arguments, configures logging, picks the operator prompt
channel, and runs the requested command.
"""

import argparse
import asyncio
import logging
import re
import sys

from .app import BtKissApp, Command
from .constants import CONFIG_FILE, DISPLAY_NAME, TOOL_NAME, VERSION, ExitCode
from .exceptions import InvalidAddress
from .output import OutputFormatter
from .prompts import InteractiveOperator, UnattendedOperator

MAC_PATTERN = re.compile(r"^([0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2}$")

EPILOG = f"""\
compatible devices:
  BTECH UV-PRO
  Radtel RT-660 (same hardware as UV-PRO)
  VGC VR-N76 (same hardware as UV-PRO)
  VERO VR-N7600 (possibly compatible, untested)

examples:
  sudo {TOOL_NAME} --list-devices
  sudo {TOOL_NAME} --auto-connect --callsign VA3SYS-1
  sudo {TOOL_NAME} --connect 38:D2:00:01:11:FE
  sudo {TOOL_NAME} --connect 38:D2:00:01:11:FE --rfcomm 1
  sudo {TOOL_NAME} --connect 38:D2:00:01:11:FE --no-kiss
  sudo {TOOL_NAME} --halt --rfcomm 1

multiple TNCs:
  Use --rfcomm to pick a channel per device (0, 1, 2, ...).
  Each /dev/rfcommN gets its own interface (ax0, ax1, ax2, ...).

first time connecting:
  Asks for a callsign (unless --callsign is given), pairs with the
  device and saves the configuration to {CONFIG_FILE}.
"""


def channel_index(value: str) -> int:
    try:
        channel = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid channel index: {value!r}") from None
    if channel < 0:
        raise argparse.ArgumentTypeError(f"channel index must be >= 0, got {channel}")
    return channel


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parses command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog=TOOL_NAME,
        description=f"{DISPLAY_NAME}: manage Bluetooth TNC connections for AX.25 packet radio.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    commands = parser.add_mutually_exclusive_group()
    commands.add_argument(
        "--connect",
        metavar="MAC",
        nargs="?",
        const="",
        default=None,
        help="Connect to a Bluetooth TNC and start AX.25",
    )
    commands.add_argument(
        "--auto-connect",
        action="store_true",
        help="Scan and connect to the first compatible device found",
    )
    commands.add_argument(
        "--halt",
        action="store_true",
        help="Stop AX.25 and disconnect",
    )
    commands.add_argument(
        "--list-devices",
        action="store_true",
        help="Scan and list Bluetooth devices",
    )
    parser.add_argument(
        "--callsign",
        metavar="CALL",
        default=None,
        help="Callsign to configure (e.g. N0CALL-1)",
    )
    parser.add_argument(
        "--rfcomm",
        metavar="NUM",
        type=channel_index,
        default=0,
        help="Use /dev/rfcommNUM (default: 0)",
    )
    parser.add_argument(
        "--no-kiss",
        action="store_true",
        help="Skip KISS attach (Bluetooth/RFCOMM only)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose output for debugging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"{TOOL_NAME} v{VERSION}",
    )
    return parser.parse_args(argv)


def select_command(args: argparse.Namespace) -> Command | None:
    if args.connect is not None:
        return Command.CONNECT
    if args.auto_connect:
        return Command.AUTO_CONNECT
    if args.halt:
        return Command.HALT
    if args.list_devices:
        return Command.LIST_DEVICES
    return None


def validate_mac(mac: str) -> str:
    """Validates and normalizes a MAC address.

    Args:
        mac: The MAC address string to validate.

    Returns:
        The MAC address in uppercase format.

    Raises:
        InvalidAddress: If the MAC address is missing or malformed.
    """
    if not mac:
        raise InvalidAddress(
            "MAC address required",
            hint=f"Usage: sudo {TOOL_NAME} --connect <MAC_ADDRESS> "
            f"or sudo {TOOL_NAME} --auto-connect",
        )
    if not MAC_PATTERN.match(mac):
        raise InvalidAddress(f"Invalid MAC address: {mac}")
    return mac.upper()


def configure_logging(verbose: bool) -> None:
    """Configures the logging module.

    Args:
        verbose: When True, sets log level to DEBUG.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for btkiss."""
    args = parse_args(argv)
    configure_logging(args.verbose)
    output = OutputFormatter(verbose=args.verbose)

    command = select_command(args)
    if command is None:
        parse_args(["--help"])
        return

    mac = None
    if command is Command.CONNECT:
        try:
            mac = validate_mac(args.connect)
        except InvalidAddress as exc:
            output.error(str(exc), exc.hint)
            sys.exit(ExitCode.ERROR)

    if sys.stdin.isatty():
        operator = InteractiveOperator(output)
    else:
        operator = UnattendedOperator()

    app = BtKissApp(
        command=command,
        mac=mac,
        channel=args.rfcomm,
        callsign=args.callsign,
        skip_kiss=args.no_kiss,
        operator=operator,
        output=output,
    )

    exit_code = asyncio.run(app.run())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
