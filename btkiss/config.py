"""Persisted configuration: the device/callsign record and axports.

``btkiss.conf`` keeps the shell-sourceable ``KEY="value"`` layout so files
written by earlier versions of the tool load unchanged.
"""

from __future__ import annotations

import logging
import shlex
from pathlib import Path

from .constants import (
    AXPORTS_FILE,
    CONFIG_FILE,
    LINK_DESCRIPTION,
    LINK_PACLEN,
    LINK_SPEED,
    LINK_WINDOW,
)
from .models import ConnectionConfig

logger = logging.getLogger(__name__)

AXPORTS_HEADER = "# name    callsign        speed  paclen  window  description"


def format_port_line(port_name: str, callsign: str) -> str:
    return (
        f"{port_name:<9} {callsign:<15} {LINK_SPEED:<6} "
        f"{LINK_PACLEN:<7} {LINK_WINDOW:<7} {LINK_DESCRIPTION}"
    )


class ConfigStore:
    """Reads and writes the persisted configuration files.

    Args:
        config_file: Location of the device/callsign record.
        axports_file: Location of the AX.25 port table.
    """

    def __init__(
        self,
        config_file: str | Path = CONFIG_FILE,
        axports_file: str | Path = AXPORTS_FILE,
    ) -> None:
        self._config_file = Path(config_file)
        self._axports_file = Path(axports_file)

    @property
    def config_file(self) -> Path:
        return self._config_file

    def load(self) -> ConnectionConfig | None:
        """Loads the stored record.

        Returns:
            The record, or None when no callsign has been stored yet.
        """
        if not self._config_file.exists():
            return None
        values: dict[str, str] = {}
        for line in self._config_file.read_text().splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, raw = line.partition("=")
            try:
                parts = shlex.split(raw)
            except ValueError:
                logger.warning("Ignoring malformed line in %s: %s", self._config_file, line)
                continue
            values[key.strip()] = parts[0] if parts else ""
        callsign = values.get("CALLSIGN", "")
        if not callsign:
            return None
        return ConnectionConfig(device_mac=values.get("DEVICE_MAC", ""), callsign=callsign)

    def save(self, config: ConnectionConfig) -> None:
        self._config_file.parent.mkdir(parents=True, exist_ok=True)
        self._config_file.write_text(
            f"DEVICE_MAC={shlex.quote(config.device_mac)}\n"
            f"CALLSIGN={shlex.quote(config.callsign)}\n"
        )
        logger.info("Saved configuration to %s", self._config_file)

    def ensure_port(self, port_name: str, callsign: str) -> bool:
        """Makes sure axports has a line for ``port_name`` with ``callsign``.

        Other ports are left untouched.

        Args:
            port_name: The AX.25 port name (e.g. 'btport1').
            callsign: The station callsign for the port.

        Returns:
            True if the file was written.
        """
        wanted = format_port_line(port_name, callsign)
        lines = []
        if self._axports_file.exists():
            lines = self._axports_file.read_text().splitlines()
        else:
            lines = [AXPORTS_HEADER]

        replaced = False
        for index, line in enumerate(lines):
            fields = line.split()
            if fields and not fields[0].startswith("#") and fields[0] == port_name:
                if line == wanted:
                    return False
                lines[index] = wanted
                replaced = True
                break
        if not replaced:
            lines.append(wanted)

        self._axports_file.parent.mkdir(parents=True, exist_ok=True)
        self._axports_file.write_text("\n".join(lines) + "\n")
        logger.info("Wrote port %s to %s", port_name, self._axports_file)
        return True
