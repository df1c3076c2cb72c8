"""D-Bus pairing agent used while a Pair request is in flight.

Implements the org.bluez.Agent1 interface. The radios pair with Secure
Simple Pairing, so every confirmation and authorization is accepted;
the operator authorises on the radio itself (Menu > Pairing > OK).
"""

import logging

from dbus_fast.service import ServiceInterface, method

from .constants import DEFAULT_PIN

logger = logging.getLogger(__name__)


class PairingAgent(ServiceInterface):
    """BlueZ Agent1 implementation that accepts every request.

    Args:
        pin: Legacy PIN answered if the radio falls back to PIN pairing.
    """

    def __init__(self, pin: str = DEFAULT_PIN) -> None:
        super().__init__("org.bluez.Agent1")
        self._pin = pin

    @method()
    def RequestPinCode(self, device: "o") -> "s":  # noqa: N802
        """Called by BlueZ for legacy PIN authentication."""
        logger.debug("PinCode requested for device: %s", device)
        return self._pin

    @method()
    def RequestPasskey(self, device: "o") -> "u":  # noqa: N802
        logger.debug("Passkey requested for device: %s", device)
        return int(self._pin)

    @method()
    def DisplayPasskey(self, device: "o", passkey: "u", entered: "q") -> None:  # noqa: N802
        logger.debug("DisplayPasskey for %s: %06d (entered: %d)", device, passkey, entered)

    @method()
    def RequestConfirmation(self, device: "o", passkey: "u") -> None:  # noqa: N802
        logger.debug("Auto-confirming passkey %06d for %s", passkey, device)

    @method()
    def RequestAuthorization(self, device: "o") -> None:  # noqa: N802
        logger.debug("Auto-authorizing pairing for %s", device)

    @method()
    def AuthorizeService(self, device: "o", uuid: "s") -> None:  # noqa: N802
        logger.debug("Auto-authorizing service %s for %s", uuid, device)

    @method()
    def Cancel(self) -> None:  # noqa: N802
        logger.debug("Pairing request cancelled by BlueZ")

    @method()
    def Release(self) -> None:  # noqa: N802
        logger.debug("Agent released")
