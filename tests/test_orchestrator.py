from __future__ import annotations

import asyncio

import pytest

from btkiss.exceptions import (
    AuthenticationFailed,
    BindExhausted,
    CallsignRequired,
    InterfaceNotCreated,
    NoCompatibleDevice,
)
from btkiss.models import (
    AgentReply,
    ConnectionConfig,
    ConnectionTarget,
    Device,
    OutcomeKind,
    PairedState,
    ReplyStatus,
)

from conftest import TNC_MAC, FakeAgent, FakeAttacher, FakeBridge, FakeOperator


def test_already_paired_serial_only(make_orchestrator, store) -> None:
    agent = FakeAgent(paired=PairedState.PAIRED)
    bridge = FakeBridge()
    attacher = FakeAttacher()
    orchestrator = make_orchestrator(agent=agent, bridge=bridge, attacher=attacher)
    target = ConnectionTarget(TNC_MAC, channel=0, callsign="N0CALL-1", skip_link_attach=True)

    outcome = asyncio.run(orchestrator.connect(target))

    assert outcome.kind is OutcomeKind.SERIAL_ONLY
    assert outcome.channel == 0
    assert agent.count("start_scan") == 0
    assert agent.count("trust") == 0
    assert agent.count("pair") == 0
    assert bridge.spawns == 1
    assert attacher.calls == []


def test_connect_cleans_channel_before_anything_else(make_orchestrator) -> None:
    agent = FakeAgent(paired=PairedState.PAIRED)
    bridge = FakeBridge()
    orchestrator = make_orchestrator(agent=agent, bridge=bridge)

    asyncio.run(orchestrator.connect(ConnectionTarget(TNC_MAC, channel=2, callsign="N0CALL")))

    assert bridge.calls[:2] == ["terminate_binders /dev/rfcomm2", "release /dev/rfcomm2"]
    assert bridge.calls[2].startswith("spawn /dev/rfcomm2")


def test_link_up_on_derived_names(make_orchestrator) -> None:
    attacher = FakeAttacher()
    orchestrator = make_orchestrator(
        agent=FakeAgent(paired=PairedState.PAIRED), attacher=attacher
    )

    outcome = asyncio.run(
        orchestrator.connect(ConnectionTarget(TNC_MAC, channel=1, callsign="N0CALL"))
    )

    assert outcome.kind is OutcomeKind.LINK_UP
    assert outcome.interface_name == "ax1"
    assert attacher.calls == [("/dev/rfcomm1", "btport1", "ax1")]


def test_unpaired_device_runs_pairing_session(make_orchestrator) -> None:
    agent = FakeAgent(paired=PairedState.NOT_PAIRED)
    operator = FakeOperator("N0CALL-1")
    orchestrator = make_orchestrator(agent=agent, operator=operator)

    asyncio.run(orchestrator.connect(ConnectionTarget(TNC_MAC, callsign="N0CALL-1")))

    assert operator.pairing_prompts == 1
    assert agent.calls.index("trust") < agent.calls.index("pair")
    assert f"remove {TNC_MAC}" in agent.calls


def test_unknown_pairing_state_is_treated_as_unpaired(make_orchestrator) -> None:
    agent = FakeAgent(paired=PairedState.UNKNOWN)
    asyncio.run(
        make_orchestrator(agent=agent).connect(ConnectionTarget(TNC_MAC, callsign="N0CALL"))
    )
    assert agent.count("pair") == 1


def test_authentication_failure_aborts_before_bind(make_orchestrator) -> None:
    agent = FakeAgent(
        pair_reply=AgentReply(ReplyStatus.AUTHENTICATION_FAILED, "AuthenticationFailed")
    )
    bridge = FakeBridge()
    orchestrator = make_orchestrator(agent=agent, bridge=bridge)

    with pytest.raises(AuthenticationFailed):
        asyncio.run(orchestrator.connect(ConnectionTarget(TNC_MAC, callsign="N0CALL")))

    assert agent.scan_cancels == 1
    assert bridge.spawns == 0


def test_bind_failure_skips_attach(make_orchestrator) -> None:
    attacher = FakeAttacher()
    orchestrator = make_orchestrator(
        agent=FakeAgent(paired=PairedState.PAIRED),
        bridge=FakeBridge(appear_on_attempt=None),
        attacher=attacher,
    )

    with pytest.raises(BindExhausted):
        asyncio.run(orchestrator.connect(ConnectionTarget(TNC_MAC, callsign="N0CALL")))
    assert attacher.calls == []


def test_missing_interface_is_fatal(make_orchestrator) -> None:
    orchestrator = make_orchestrator(
        agent=FakeAgent(paired=PairedState.PAIRED),
        attacher=FakeAttacher(creates_interface=False),
    )
    with pytest.raises(InterfaceNotCreated):
        asyncio.run(orchestrator.connect(ConnectionTarget(TNC_MAC, callsign="N0CALL")))


def test_callsign_from_flag_is_persisted(make_orchestrator, store, output) -> None:
    operator = FakeOperator(None)
    orchestrator = make_orchestrator(agent=FakeAgent(paired=PairedState.PAIRED), operator=operator)

    asyncio.run(orchestrator.connect(ConnectionTarget(TNC_MAC, callsign="va3sys-1")))

    assert store.load() == ConnectionConfig(device_mac=TNC_MAC, callsign="VA3SYS-1")
    assert operator.callsign_prompts == 0
    assert f"Configuration saved to {store.config_file}" in output._stream.getvalue()


def test_callsign_prompted_when_not_given(make_orchestrator, store) -> None:
    operator = FakeOperator("N0CALL-2")
    orchestrator = make_orchestrator(agent=FakeAgent(paired=PairedState.PAIRED), operator=operator)

    asyncio.run(orchestrator.connect(ConnectionTarget(TNC_MAC)))

    assert operator.callsign_prompts == 1
    assert store.load().callsign == "N0CALL-2"


def test_stored_callsign_wins(make_orchestrator, store) -> None:
    store.save(ConnectionConfig(device_mac=TNC_MAC, callsign="OLD-1"))
    operator = FakeOperator("NEW-1")
    orchestrator = make_orchestrator(agent=FakeAgent(paired=PairedState.PAIRED), operator=operator)

    callsign = asyncio.run(
        orchestrator.resolve_callsign(ConnectionTarget(TNC_MAC, callsign="NEW-1"))
    )

    assert callsign == "OLD-1"
    assert operator.callsign_prompts == 0


def test_no_callsign_obtainable(make_orchestrator) -> None:
    bridge = FakeBridge()
    orchestrator = make_orchestrator(
        agent=FakeAgent(paired=PairedState.PAIRED), bridge=bridge, operator=FakeOperator(None)
    )

    with pytest.raises(CallsignRequired):
        asyncio.run(orchestrator.connect(ConnectionTarget(TNC_MAC)))

    # Cleanup still ran first
    assert bridge.calls[0] == "terminate_binders /dev/rfcomm0"
    assert bridge.spawns == 0


def test_halt_always_succeeds(make_orchestrator, clock) -> None:
    bridge = FakeBridge()
    orchestrator = make_orchestrator(bridge=bridge)

    asyncio.run(orchestrator.halt(3))

    assert bridge.calls == ["terminate_binders /dev/rfcomm3", "release /dev/rfcomm3"]
    assert clock.sleeps == [2.0]


def test_teardown_swallows_errors(make_orchestrator) -> None:
    bridge = FakeBridge()

    async def broken(channel_path: str) -> None:
        raise OSError("pkill missing")

    bridge.terminate_binders = broken
    bridge.release = broken
    asyncio.run(make_orchestrator(bridge=bridge).teardown("/dev/rfcomm0"))


def test_auto_connect_picks_first_compatible(make_orchestrator, clock) -> None:
    radios = [
        Device("11:22:33:44:55:66", "Pixel 7"),
        Device(TNC_MAC, "UV-PRO", PairedState.NOT_PAIRED),
        Device("38:D2:00:01:11:AA", "VR-N76"),
    ]
    agent = FakeAgent(known=radios)
    bridge = FakeBridge()
    orchestrator = make_orchestrator(agent=agent, bridge=bridge)

    outcome = asyncio.run(orchestrator.auto_connect(callsign="N0CALL", skip_link_attach=True))

    assert outcome.kind is OutcomeKind.SERIAL_ONLY
    assert outcome.address == TNC_MAC
    assert bridge.calls[2] == f"spawn /dev/rfcomm0 {TNC_MAC}"
    # The cache clean covers every compatible device, not just the target
    assert f"remove {TNC_MAC}" in agent.calls
    assert "remove 38:D2:00:01:11:AA" in agent.calls
    assert "remove 11:22:33:44:55:66" not in agent.calls
    # connect() does not clean the pairing cache a second time
    assert agent.count(f"remove {TNC_MAC}") == 1
    assert 10.0 in clock.sleeps


def test_auto_connect_without_compatible_devices(make_orchestrator) -> None:
    agent = FakeAgent(known=[Device("11:22:33:44:55:66", "Pixel 7")])
    bridge = FakeBridge()
    with pytest.raises(NoCompatibleDevice):
        asyncio.run(make_orchestrator(agent=agent, bridge=bridge).auto_connect())
    assert bridge.spawns == 0


def test_list_devices_scans_then_filters(make_orchestrator, clock) -> None:
    radios = [Device("11:22:33:44:55:66", "Pixel 7"), Device(TNC_MAC, "RT-660")]
    agent = FakeAgent(known=radios)

    devices, compatible = asyncio.run(make_orchestrator(agent=agent).list_devices(seconds=10))

    assert devices == radios
    assert [device.address for device in compatible] == [TNC_MAC]
    assert agent.calls == ["start_scan", "cancel_scan", "devices"]
    assert clock.sleeps == [10]
