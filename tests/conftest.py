"""Shared fakes for the Bluetooth, RFCOMM and KISS capabilities."""

from __future__ import annotations

import io

import pytest

from btkiss.config import ConfigStore
from btkiss.exceptions import InterfaceNotCreated
from btkiss.models import AgentReply, Device, PairedState, ReplyStatus
from btkiss.orchestrator import ConnectionOrchestrator
from btkiss.output import OutputFormatter

TNC_MAC = "38:D2:00:01:11:FE"


class VirtualClock:
    """Stands in for asyncio.sleep and records every wait."""

    def __init__(self) -> None:
        self.sleeps: list[float] = []
        self.on_sleep = None

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if self.on_sleep is not None:
            self.on_sleep(self)

    @property
    def elapsed(self) -> float:
        return sum(self.sleeps)


class FakeScan:
    def __init__(self, agent: FakeAgent) -> None:
        self._agent = agent

    async def cancel(self) -> None:
        self._agent.calls.append("cancel_scan")
        self._agent.scan_cancels += 1


class FakeAgent:
    """Scriptable BluetoothAgent recording every call."""

    def __init__(
        self,
        paired: PairedState = PairedState.NOT_PAIRED,
        visible_after: int = 0,
        trust_reply: AgentReply = AgentReply(ReplyStatus.OK),
        pair_reply: AgentReply = AgentReply(ReplyStatus.OK),
        known: list[Device] | None = None,
    ) -> None:
        self.paired = paired
        self.visible_after = visible_after
        self.trust_reply = trust_reply
        self.pair_reply = pair_reply
        self.known = list(known or [])
        self.calls: list[str] = []
        self.visibility_polls = 0
        self.scan_cancels = 0

    async def start_scan(self, timeout: float) -> FakeScan:
        self.calls.append("start_scan")
        return FakeScan(self)

    async def devices(self) -> list[Device]:
        self.calls.append("devices")
        return list(self.known)

    async def is_visible(self, address: str) -> bool:
        self.visibility_polls += 1
        return self.visibility_polls > self.visible_after

    async def paired_state(self, address: str) -> PairedState:
        self.calls.append("paired_state")
        return self.paired

    async def trust(self, address: str) -> AgentReply:
        self.calls.append("trust")
        return self.trust_reply

    async def pair(self, address: str) -> AgentReply:
        self.calls.append("pair")
        return self.pair_reply

    async def disconnect(self, address: str) -> None:
        self.calls.append(f"disconnect {address}")

    async def untrust(self, address: str) -> None:
        self.calls.append(f"untrust {address}")

    async def remove(self, address: str) -> None:
        self.calls.append(f"remove {address}")

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call == name)


class FakeBinder:
    def __init__(self, bridge: FakeBridge) -> None:
        self._bridge = bridge
        self.kept = False
        self.terminated = False

    def keep(self) -> None:
        self.kept = True

    async def terminate(self) -> None:
        self.terminated = True
        self._bridge.calls.append("terminate_binder")

    async def __aenter__(self) -> FakeBinder:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self.kept:
            await self.terminate()


class FakeBridge:
    """Scriptable SerialBridge.

    The channel appears after ``appear_after_ticks`` existence checks in
    the attempt numbered ``appear_on_attempt`` (never if None).
    """

    def __init__(
        self,
        appear_on_attempt: int | None = 1,
        appear_after_ticks: int = 1,
        refused: bool = False,
    ) -> None:
        self.appear_on_attempt = appear_on_attempt
        self.appear_after_ticks = appear_after_ticks
        self.refused = refused
        self.calls: list[str] = []
        self.binders: list[FakeBinder] = []
        self._ticks = 0

    def spawn_binder(self, channel_path: str, address: str) -> FakeBinder:
        self.calls.append(f"spawn {channel_path} {address}")
        self._ticks = 0
        binder = FakeBinder(self)
        self.binders.append(binder)
        return binder

    def channel_exists(self, channel_path: str) -> bool:
        self._ticks += 1
        return (
            self.appear_on_attempt == len(self.binders)
            and self._ticks >= self.appear_after_ticks
        )

    async def connection_refused(self) -> bool:
        self.calls.append("check_refused")
        return self.refused

    async def terminate_binders(self, channel_path: str) -> None:
        self.calls.append(f"terminate_binders {channel_path}")

    async def release(self, channel_path: str) -> None:
        self.calls.append(f"release {channel_path}")

    @property
    def spawns(self) -> int:
        return len(self.binders)


class FakeAttacher:
    def __init__(self, creates_interface: bool = True) -> None:
        self.creates_interface = creates_interface
        self.calls: list[tuple[str, str, str]] = []

    async def attach(self, channel_path: str, port_name: str, interface_name: str) -> str:
        self.calls.append((channel_path, port_name, interface_name))
        if not self.creates_interface:
            raise InterfaceNotCreated(f"Failed to create {interface_name} interface")
        return interface_name


class FakeOperator:
    def __init__(self, callsign: str | None = None) -> None:
        self.callsign = callsign
        self.callsign_prompts = 0
        self.pairing_prompts = 0

    async def ask_callsign(self) -> str | None:
        self.callsign_prompts += 1
        return self.callsign

    async def confirm_pairing_mode(self) -> None:
        self.pairing_prompts += 1


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def output() -> OutputFormatter:
    return OutputFormatter(stream=io.StringIO(), color=False)


@pytest.fixture
def store(tmp_path) -> ConfigStore:
    return ConfigStore(tmp_path / "btkiss.conf", tmp_path / "axports")


@pytest.fixture
def make_orchestrator(clock, output, store):
    def _make(
        agent: FakeAgent | None = None,
        bridge: FakeBridge | None = None,
        attacher: FakeAttacher | None = None,
        operator: FakeOperator | None = None,
    ) -> ConnectionOrchestrator:
        return ConnectionOrchestrator(
            agent=agent or FakeAgent(),
            bridge=bridge or FakeBridge(),
            attacher=attacher or FakeAttacher(),
            store=store,
            operator=operator or FakeOperator("N0CALL-1"),
            output=output,
            sleep=clock.sleep,
        )

    return _make
