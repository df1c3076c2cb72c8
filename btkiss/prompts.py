"""Operator interaction abstraction and implementations.

Defines the Operator protocol and two concrete implementations:
- InteractiveOperator: prompts on the terminal
- UnattendedOperator: never prompts (scripts, systemd, piped stdin)

The orchestrator depends on the protocol, not on the concrete input
method.
"""

import asyncio
import logging
from typing import Protocol, runtime_checkable

from .output import OutputFormatter

logger = logging.getLogger(__name__)

PAIRING_MODE_INSTRUCTIONS = """⚠  ACTION REQUIRED - On your radio:

   1. Menu > Pairing
   2. Press OK to activate pairing mode
   3. Wait for pairing mode indicator

Press ENTER only after pressing OK on radio..."""


@runtime_checkable
class Operator(Protocol):
    """Protocol for the person running the tool."""

    async def ask_callsign(self) -> str | None:
        """Asks for a callsign.

        Returns:
            The callsign, or None if none can be obtained.
        """
        ...

    async def confirm_pairing_mode(self) -> None:
        """Waits until the operator has put the radio in pairing mode."""
        ...


class InteractiveOperator:
    """Prompts the operator on stdin.

    Args:
        output: The output formatter for displaying instructions.
    """

    def __init__(self, output: OutputFormatter) -> None:
        self._output = output

    async def ask_callsign(self) -> str | None:
        logger.debug("Prompting operator for callsign")
        self._output.blank()
        try:
            callsign = await asyncio.to_thread(input, "Callsign (e.g., N0CALL-1): ")
        except EOFError:
            return None
        return callsign.strip().upper() or None

    async def confirm_pairing_mode(self) -> None:
        self._output.action(PAIRING_MODE_INSTRUCTIONS)
        try:
            await asyncio.to_thread(input, "")
        except EOFError:
            logger.debug("No operator input, continuing")


class UnattendedOperator:
    """Operator stand-in for non-interactive runs; never blocks."""

    async def ask_callsign(self) -> str | None:
        logger.debug("No prompt channel for callsign")
        return None

    async def confirm_pairing_mode(self) -> None:
        logger.info("Assuming the radio is already in pairing mode")
