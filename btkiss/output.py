"""Structured CLI output formatter.

Produces the sectioned, colour-coded operator output. Separates
presentation from the orchestration logic: nothing outside this module
prints to the terminal except the operator prompts.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

logger = logging.getLogger(__name__)

RESET = "\033[0m"
RED = "\033[0;31m"
GREEN = "\033[0;32m"
YELLOW = "\033[1;33m"
BLUE = "\033[0;34m"
CYAN = "\033[0;36m"
WHITE = "\033[1;37m"

RULE_WIDTH = 63
BOX_WIDTH = 58


class OutputFormatter:
    """Formats and prints structured CLI output.

    Produces output of the form::

        [SETUP] Preparing connection...
               ✓ Old connections cleaned up

    Args:
        verbose: When True, additional debug information is printed.
        stream: Where normal output goes (defaults to stdout).
        color: Force colour on or off; by default colour is used only
            when ``stream`` is a terminal.
    """

    LABEL_WIDTH: int = 12

    def __init__(
        self,
        verbose: bool = False,
        stream: TextIO | None = None,
        color: bool | None = None,
    ) -> None:
        self._verbose = verbose
        self._stream = stream or sys.stdout
        if color is None:
            color = hasattr(self._stream, "isatty") and self._stream.isatty()
        self._color = color

    def header(self, title: str) -> None:
        """Prints a banner heading."""
        rule = "═" * RULE_WIDTH
        self._print(self._paint(BLUE, rule))
        self._print(self._paint(BLUE, f"  {title}"))
        self._print(self._paint(BLUE, rule))
        self._print("")

    def section(self, label: str, message: str) -> None:
        """Prints the start of a stage, e.g. ``[PAIR] Device needs pairing``."""
        self._print(f"{self._paint(CYAN, f'[{label}]')} {message}")

    def progress(self, message: str) -> None:
        self._print(f"       {message}")

    def success(self, message: str) -> None:
        self._print(f"       {self._paint(GREEN, chr(0x2713))} {message}")

    def field(self, label: str, value: str) -> None:
        """Prints an aligned ``label: value`` line.

        Args:
            label: The field label (e.g. 'Interface', 'Callsign').
            value: The field value.
        """
        padded_label = f"{label}:".ljust(self.LABEL_WIDTH)
        self._print(f"  {padded_label}{value}")

    def separator(self) -> None:
        self._print(self._paint(BLUE, "─" * (RULE_WIDTH - 3)))

    def action(self, message: str) -> None:
        """Prints a boxed call to action for the operator.

        Args:
            message: One or more lines of instructions.
        """
        edge = self._paint(YELLOW, "│")
        self._print("")
        self._print(self._paint(YELLOW, "┌" + "─" * (BOX_WIDTH + 2) + "┐"))
        for line in message.splitlines():
            self._print(f"{edge} {line:<{BOX_WIDTH}} {edge}")
        self._print(self._paint(YELLOW, "└" + "─" * (BOX_WIDTH + 2) + "┘"))
        self._print("")

    def note(self, message: str) -> None:
        self._print(f"{self._paint(YELLOW, 'Note:')} {message}")

    def result(self, title: str, fields: list[tuple[str, str]], footer: str | None = None) -> None:
        """Prints the final success summary.

        Args:
            title: Banner text, without the checkmark.
            fields: ``(label, value)`` pairs listed under the banner.
            footer: Optional line printed between separators.
        """
        self._print("")
        self.header(f"✓ SUCCESS - {title}")
        for label, value in fields:
            self.field(label, value)
        if footer:
            self.separator()
            self._print(f"  {footer}")
        self.separator()
        self._print("")

    def error(self, message: str, hint: str | None = None) -> None:
        """Prints an error message and optional remediation hint to stderr.

        Args:
            message: The error message.
            hint: What the operator should do about it.
        """
        print(f"{self._paint(RED, 'Error:')} {message}", file=sys.stderr)
        if hint:
            print(f"       {hint}", file=sys.stderr)

    def verbose(self, message: str) -> None:
        """Prints a message only when verbose mode is enabled.

        Args:
            message: The debug message.
        """
        if self._verbose:
            self._print(f"  [{message}]")
            logger.debug(message)

    def blank(self) -> None:
        self._print("")

    def highlight(self, text: str) -> str:
        return self._paint(CYAN, text)

    def emphasis(self, text: str) -> str:
        return self._paint(WHITE, text)

    def _paint(self, color: str, text: str) -> str:
        if not self._color:
            return text
        return f"{color}{text}{RESET}"

    def _print(self, message: str) -> None:
        print(message, file=self._stream)
