"""RS-485 transceiver direction control (DE/!RE).

Some RS-485 adapters switch between transmit and receive on their own;
others expose DE/!RE and need the host to drive it.  A Transport either
owns a DirectionLine or has none.

Example:
    >>> import serial
    >>> from jbdbms.direction import RtsDirectionLine
    >>> ser = serial.Serial("/dev/ttyUSB0", 9600)
    >>> line = RtsDirectionLine(ser)
    >>> line.transmit()
    >>> line.receive()
"""

import logging

log = logging.getLogger(__name__)


class DirectionLine:
    """Output that selects the transceiver direction.

    Subclasses drive the physical line.  Receive is the idle level.
    """

    def transmit(self) -> None:
        """Enable the driver (DE high, !RE high)."""
        raise NotImplementedError

    def receive(self) -> None:
        """Enable the receiver (DE low, !RE low)."""
        raise NotImplementedError


class RtsDirectionLine(DirectionLine):
    """Drive DE/!RE from the serial port's RTS output.

    USB-serial adapters without automatic direction control commonly
    wire RTS to DE/!RE.  Some invert the level; set *active_high* to
    False for those.

    Args:
        port: A ``serial.Serial`` (or anything with a writable ``rts``).
        active_high: RTS level that means transmit.
    """

    def __init__(self, port, active_high: bool = True):
        """Take the line and drive it to receive."""
        self._port = port
        self._active_high = active_high
        self.receive()

    @property
    def transmitting(self) -> bool:
        """True while the line is at the transmit level."""
        return bool(self._port.rts) == self._active_high

    def transmit(self) -> None:
        self._port.rts = self._active_high
        log.debug("direction: transmit")

    def receive(self) -> None:
        self._port.rts = not self._active_high
        log.debug("direction: receive")
