"""btkiss: Bluetooth KISS TNC manager.

Pairs a Bluetooth packet-radio TNC through BlueZ, binds it to an RFCOMM
channel and brings up a KISS-attached AX.25 interface.
"""

from .constants import VERSION

__version__ = VERSION
