"""Host checks run before any command touches Bluetooth or RFCOMM."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Callable, Iterable

from .constants import KISS_TOOLS, OS_RELEASE_FILE, REQUIRED_TOOLS
from .exceptions import MissingPrerequisites, NotPrivileged

logger = logging.getLogger(__name__)

DEBIAN_LIKE = ("debian", "ubuntu", "raspbian")
PACKAGES = "ax25-tools ax25-apps bluez"


def check_privileges(geteuid: Callable[[], int] = os.geteuid) -> None:
    """Raises NotPrivileged unless running as root."""
    if geteuid() != 0:
        raise NotPrivileged("This command must be run with sudo")


def required_tools(need_kiss: bool = True) -> tuple[str, ...]:
    return REQUIRED_TOOLS + (KISS_TOOLS if need_kiss else ())


def check_prerequisites(
    tools: Iterable[str],
    which: Callable[[str], str | None] = shutil.which,
    os_release: str | Path = OS_RELEASE_FILE,
) -> None:
    """Raises MissingPrerequisites if any tool is not on PATH.

    Args:
        tools: Executable names to look for.
        which: Lookup function (``shutil.which`` signature).
        os_release: The os-release file used to pick an install hint.
    """
    missing = [tool for tool in tools if which(tool) is None]
    if not missing:
        return
    logger.debug("Missing tools: %s", missing)
    os_id = read_os_id(os_release)
    if os_id in DEBIAN_LIKE:
        hint = f"Install with: sudo apt update && sudo apt install -y {PACKAGES}"
    else:
        hint = f"Detected OS: {os_id or 'unknown'} (not fully supported yet). Try installing: {PACKAGES}"
    raise MissingPrerequisites(f"Missing required tools: {', '.join(missing)}", hint=hint)


def read_os_id(os_release: str | Path = OS_RELEASE_FILE) -> str | None:
    path = Path(os_release)
    if not path.exists():
        return None
    for line in path.read_text().splitlines():
        if line.startswith("ID="):
            return line[3:].strip().strip('"').lower()
    return None
