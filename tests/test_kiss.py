from __future__ import annotations

import asyncio
import os
import sys
import time

import pytest

from btkiss import kiss
from btkiss.exceptions import InterfaceNotCreated
from btkiss.kiss import KissAttacher
from btkiss.process import CommandResult


def test_attach_runs_kiss_tools_and_finds_interface(monkeypatch, tmp_path) -> None:
    commands: list[tuple[str, ...]] = []
    options: list[dict] = []

    async def fake_run(*argv, **kwargs):
        commands.append(argv)
        options.append(kwargs)
        if argv[0] == "kissattach":
            (tmp_path / "ax0").mkdir()
        return CommandResult(0)

    monkeypatch.setattr(kiss, "run_command", fake_run)
    interface = asyncio.run(KissAttacher(str(tmp_path)).attach("/dev/rfcomm0", "btport", "ax0"))

    assert interface == "ax0"
    assert commands == [
        ("kissattach", "/dev/rfcomm0", "btport"),
        ("kissparms", "-c", "1", "-p", "btport"),
    ]
    assert options[0] == {"detach_output": True}


def test_missing_interface_raises(monkeypatch, tmp_path) -> None:
    async def fake_run(*argv, **kwargs):
        return CommandResult(1, "", "kissattach: Cannot find port btport1")

    monkeypatch.setattr(kiss, "run_command", fake_run)
    with pytest.raises(InterfaceNotCreated, match="ax1"):
        asyncio.run(KissAttacher(str(tmp_path)).attach("/dev/rfcomm1", "btport1", "ax1"))


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
def test_daemonizing_kissattach_does_not_block(monkeypatch, tmp_path) -> None:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    # Leaves a background child holding stdout/stderr, as a daemon does
    (bin_dir / "kissattach").write_text("#!/bin/sh\n(sleep 5) &\necho attached\nexit 0\n")
    (bin_dir / "kissparms").write_text("#!/bin/sh\nexit 0\n")
    for tool in ("kissattach", "kissparms"):
        os.chmod(bin_dir / tool, 0o755)
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    net = tmp_path / "net"
    (net / "ax0").mkdir(parents=True)

    started = time.monotonic()
    interface = asyncio.run(
        asyncio.wait_for(KissAttacher(str(net)).attach("/dev/rfcomm0", "btport", "ax0"), 4)
    )

    assert interface == "ax0"
    assert time.monotonic() - started < 4
