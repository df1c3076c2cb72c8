import pytest

from btkiss.models import ConnectionTarget, Device, OutcomeKind, PairedState, SessionOutcome


def test_channel_derives_path_interface_and_port() -> None:
    target = ConnectionTarget("38:D2:00:01:11:FE", channel=2)
    assert target.channel_path == "/dev/rfcomm2"
    assert target.interface_name == "ax2"
    assert target.port_name == "btport2"


def test_channel_zero_keeps_default_port_name() -> None:
    assert ConnectionTarget("38:D2:00:01:11:FE").port_name == "btport"


def test_negative_channel_rejected() -> None:
    with pytest.raises(ValueError):
        ConnectionTarget("38:D2:00:01:11:FE", channel=-1)


def test_device_identity_is_the_address() -> None:
    seen = Device("38:D2:00:01:11:FE", "UV-PRO", PairedState.PAIRED)
    rescanned = Device("38:D2:00:01:11:FE", "UV-PRO 2", PairedState.NOT_PAIRED)
    assert seen == rescanned
    assert len({seen, rescanned}) == 1


def test_outcomes() -> None:
    assert SessionOutcome.link_up("ax0").kind is OutcomeKind.LINK_UP
    assert SessionOutcome.serial_only(0).channel == 0
    failed = SessionOutcome.failed("Pairing failed")
    assert failed.kind is OutcomeKind.FAILED
    assert failed.reason == "Pairing failed"
