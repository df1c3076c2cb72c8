"""KISS attachment of an RFCOMM channel to the AX.25 stack."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from .constants import SYS_NET_PATH
from .exceptions import InterfaceNotCreated
from .process import run_command

logger = logging.getLogger(__name__)


@runtime_checkable
class LinkAttacher(Protocol):
    """Attaches KISS framing to a channel and brings up the interface."""

    async def attach(self, channel_path: str, port_name: str, interface_name: str) -> str:
        ...


class KissAttacher:
    """:class:`LinkAttacher` using ``kissattach`` and ``kissparms``.

    Args:
        net_path: Directory listing the kernel's network interfaces.
    """

    def __init__(self, net_path: str = SYS_NET_PATH) -> None:
        self._net_path = Path(net_path)

    async def attach(self, channel_path: str, port_name: str, interface_name: str) -> str:
        """Runs the KISS attach and verifies the interface exists.

        Args:
            channel_path: The bound serial channel (e.g. '/dev/rfcomm0').
            port_name: The axports port name (e.g. 'btport').
            interface_name: The interface expected to appear (e.g. 'ax0').

        Returns:
            The interface name.

        Raises:
            InterfaceNotCreated: If the interface is absent afterwards.
        """
        # kissattach daemonizes; its child must not inherit our pipes
        attached = await run_command("kissattach", channel_path, port_name, detach_output=True)
        if not attached.ok:
            logger.warning("kissattach exited %d: %s", attached.returncode, attached.stderr.strip())
        params = await run_command("kissparms", "-c", "1", "-p", port_name)
        if not params.ok:
            logger.warning("kissparms exited %d: %s", params.returncode, params.stderr.strip())

        if not self.interface_exists(interface_name):
            detail = attached.stderr.strip() or params.stderr.strip()
            message = f"Failed to create {interface_name} interface"
            raise InterfaceNotCreated(f"{message}: {detail}" if detail else message)
        logger.info("Interface %s up on %s", interface_name, channel_path)
        return interface_name

    def interface_exists(self, interface_name: str) -> bool:
        return (self._net_path / interface_name).exists()
