"""Command-level API for a JBD battery management system.

Each method is one request/response exchange on the bus: read status,
read cell voltages, read the hardware id, or switch the charge and
discharge mosfets.

Example:
    >>> from jbdbms.driver import open_bms
    >>> with open_bms("/dev/ttyUSB0", direction="rts") as bms:
    ...     status = bms.get_status()
    ...     cells = bms.get_cells()
    >>> status.voltage, cells.active(status.cells)
    (1325, (3312, 3309, 3315, 3311))
"""

import logging

import serial

from jbdbms.config import TIMEOUT_MS
from jbdbms.direction import RtsDirectionLine
from jbdbms.models import CellVoltages, HardwareId, MosfetMask, Status
from jbdbms.protocol import (
    CMD_CELLS,
    CMD_HARDWARE,
    CMD_MOSFET,
    CMD_STATUS,
    PROTO_MAX_PAYLOAD,
    READ,
    WRITE,
)
from jbdbms.transport import Transport

log = logging.getLogger(__name__)

# Largest payload accepted per command.
STATUS_CAPACITY = PROTO_MAX_PAYLOAD
CELLS_CAPACITY = PROTO_MAX_PAYLOAD
HARDWARE_CAPACITY = 32


class JbdBms:
    """A JBD BMS reachable through one Transport.

    Not thread-safe: callers sharing a device must serialize on one
    instance.

    Args:
        transport: Transport (or any object with a matching
            ``execute`` and ``close``).
        swap_temperatures: Decode the NTC readings big-endian.  Off by
            default, which leaves them in host order like the firmware
            family this driver targets.
    """

    def __init__(self, transport, swap_temperatures: bool = False):
        """Initialize the driver."""
        self._transport = transport
        self._swap_temperatures = swap_temperatures

    @classmethod
    def from_config(cls, cfg: dict):
        """Open the serial port described by a load_config() dict."""
        return open_bms(
            cfg["port"],
            cfg["baudrate"],
            direction=cfg["direction"],
            rts_active_high=cfg["rts_active_high"],
            command_delay_ms=cfg["command_delay_ms"],
            timeout_ms=cfg["timeout_ms"],
            swap_temperatures=cfg["swap_temperatures"],
        )

    @property
    def transport(self):
        """The Transport this driver sends commands through."""
        return self._transport

    def get_status(self) -> Status:
        """Read pack voltage, current, capacity, faults and temperatures."""
        response = self._transport.execute(
            READ, CMD_STATUS, capacity=STATUS_CAPACITY
        )
        status = Status.from_payload(response.payload, self._swap_temperatures)
        log.debug(
            "status: %d.%02d V %d mA soc=%d%% mosfet=%d fault=0x%04X",
            status.voltage // 100, status.voltage % 100,
            status.current * 10, status.current_capacity,
            status.mosfet_status, status.fault,
        )
        return status

    def get_cells(self) -> CellVoltages:
        """Read the per-cell voltages in millivolts."""
        response = self._transport.execute(
            READ, CMD_CELLS, capacity=CELLS_CAPACITY
        )
        cells = CellVoltages.from_payload(response.payload)
        log.debug("cells: %s", list(cells.voltages))
        return cells

    def get_hardware(self) -> HardwareId:
        """Read the ASCII hardware identifier."""
        response = self._transport.execute(
            READ, CMD_HARDWARE, capacity=HARDWARE_CAPACITY
        )
        hardware = HardwareId.from_payload(response.payload)
        log.debug("hardware: %s", hardware.text)
        return hardware

    def set_mosfet_status(self, mask: MosfetMask) -> None:
        """Enable or disable the charge and discharge mosfets.

        Raises:
            ValueError: If *mask* is not one of the four MosfetMask values.
        """
        mask = MosfetMask(mask)
        self._transport.execute(WRITE, CMD_MOSFET, bytes([0, mask]))
        log.debug("mosfets: %s", mask.describe())

    def toggle_charge(self) -> MosfetMask:
        """Flip the charge mosfet, leaving discharge as it is.

        Returns:
            MosfetMask: The mask that was written.
        """
        status = self.get_status()
        mask = MosfetMask(status.mosfet ^ MosfetMask.CHARGE)
        self.set_mosfet_status(mask)
        return mask

    def close(self) -> None:
        """Close the transport and its serial port."""
        self._transport.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def open_bms(port: str, baudrate: int = 9600, direction: str = "auto",
             rts_active_high: bool = True, command_delay_ms: int = 0,
             timeout_ms: int = TIMEOUT_MS,
             swap_temperatures: bool = False) -> JbdBms:
    """Open *port* and return a JbdBms talking to it.

    Args:
        port: Serial port device path (e.g. ``"/dev/ttyUSB0"``).
        baudrate: Baud rate; JBD boards use 9600 8N1.
        direction: ``"auto"`` if the adapter switches direction itself,
            ``"rts"`` to drive DE/!RE from RTS.
        rts_active_high: RTS level meaning transmit.
        command_delay_ms: Minimum spacing between commands.
        timeout_ms: Serial read timeout.
        swap_temperatures: See :class:`JbdBms`.

    Raises:
        ValueError: On an unknown *direction*.
        serial.SerialException: If the port cannot be opened.
    """
    if direction not in ("auto", "rts"):
        raise ValueError(
            "direction must be 'auto' or 'rts', got '{}'".format(direction)
        )
    ser = serial.Serial(port, baudrate, timeout=timeout_ms / 1000.0)
    line = None
    if direction == "rts":
        line = RtsDirectionLine(ser, active_high=rts_active_high)
    log.debug(
        "opened %s at %d baud, direction=%s, delay=%d ms",
        port, baudrate, direction, command_delay_ms,
    )
    transport = Transport(ser, line, command_delay_ms)
    return JbdBms(transport, swap_temperatures)
