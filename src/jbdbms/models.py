"""Decoded BMS records returned by the driver commands.

Each record is built from a validated response payload and owned by
the caller.  Multi-byte numeric fields are already in host order.

Example:
    >>> from jbdbms.models import Status
    >>> status = Status.from_payload(payload)
    >>> status.voltage, status.production_date
    (5230, (2024, 12, 31))
"""

import enum
import struct
from dataclasses import dataclass, field

from jbdbms.errors import ProtocolError, ProtocolFault
from jbdbms.faults import active_faults
from jbdbms.wire import decode_date, decode_temperature, unpack_u16_array

MAX_CELLS = 32
HARDWARE_ID_MAX_LEN = 32

# Fixed part of the status payload, everything before the NTC readings.
STATUS_STRUCT = struct.Struct(">HhHHHHHHHBBBBB")


class MosfetMask(enum.IntEnum):
    """Charge/discharge switch selection (2 bits)."""

    NONE = 0
    CHARGE = 1
    DISCHARGE = 2
    BOTH = 3

    def describe(self) -> str:
        """Return a human-readable ON/OFF summary.

        Example:
            >>> MosfetMask.CHARGE.describe()
            'Charge ON and discharge OFF'
        """
        return _MOSFET_MESSAGES[self]


_MOSFET_MESSAGES = {
    MosfetMask.NONE: "Charge and discharge OFF",
    MosfetMask.CHARGE: "Charge ON and discharge OFF",
    MosfetMask.DISCHARGE: "Charge OFF and discharge ON",
    MosfetMask.BOTH: "Charge and discharge ON",
}


@dataclass
class Status:
    """Basic pack information (command 0x03).

    Units: voltage 10 mV, current 10 mA (positive = charging),
    capacities 10 mAh, temperatures raw 0.1 K.
    """

    voltage: int
    current: int
    remaining_capacity: int
    nominal_capacity: int
    cycles: int
    production_date_raw: int
    balance_low: int
    balance_high: int
    fault: int
    version: int
    current_capacity: int
    mosfet_status: int
    cells: int
    ntcs: int
    temperatures: tuple[int, ...] = field(default_factory=tuple)

    @classmethod
    def from_payload(cls, payload: bytes, swap_temperatures: bool = False):
        """Decode a status response payload.

        The NTC readings are read in host-native order unless
        *swap_temperatures* is set, matching the firmware family this
        driver was written against.

        Raises:
            ProtocolError: If the payload is shorter than the fixed
                fields plus ``ntcs`` temperature readings.
        """
        if len(payload) < STATUS_STRUCT.size:
            raise ProtocolError(
                ProtocolFault.SHORT_READ,
                "status payload is {} bytes, need at least {}".format(
                    len(payload), STATUS_STRUCT.size
                ),
            )
        fields = STATUS_STRUCT.unpack_from(payload)
        ntcs = fields[-1]
        needed = STATUS_STRUCT.size + 2 * ntcs
        if len(payload) < needed:
            raise ProtocolError(
                ProtocolFault.SHORT_READ,
                "status payload is {} bytes, {} NTCs need {}".format(
                    len(payload), ntcs, needed
                ),
            )
        temps = unpack_u16_array(
            payload, ntcs, STATUS_STRUCT.size, swap=swap_temperatures
        )
        return cls(*fields, temperatures=tuple(temps))

    @property
    def production_date(self) -> tuple[int, int, int]:
        """Decoded ``(year, month, day)``."""
        return decode_date(self.production_date_raw)

    @property
    def year(self) -> int:
        """Production year."""
        return self.production_date[0]

    @property
    def month(self) -> int:
        """Production month, 1-12."""
        return self.production_date[1]

    @property
    def day(self) -> int:
        """Production day of month."""
        return self.production_date[2]

    @property
    def mosfet(self) -> MosfetMask:
        """Charge and discharge mosfet state as a MosfetMask."""
        return MosfetMask(self.mosfet_status & 0x03)

    def balance_string(self) -> str:
        """One '1' or '0' per cell, cell 1 first, set if balancing.

        Example:
            >>> status.cells, status.balance_low
            (4, 0b0101)
            >>> status.balance_string()
            '1010'
        """
        mask = (self.balance_high << 16) | self.balance_low
        count = min(self.cells, MAX_CELLS)
        return "".join("1" if mask & (1 << i) else "0" for i in range(count))

    def temperatures_decicelsius(self) -> list[int]:
        """NTC readings converted to tenths of a degree Celsius."""
        return [decode_temperature(t) for t in self.temperatures]

    def faults(self) -> list[str]:
        """Names of the protection faults currently active."""
        return active_faults(self.fault)

    def to_dict(self) -> dict:
        """Return a JSON-ready dict of the decoded fields."""
        year, month, day = self.production_date
        return {
            "voltage": self.voltage,
            "current": self.current,
            "remaining_capacity": self.remaining_capacity,
            "nominal_capacity": self.nominal_capacity,
            "cycles": self.cycles,
            "production_date": "%04u-%02u-%02u" % (year, month, day),
            "balance": self.balance_string(),
            "fault": self.fault,
            "faults": self.faults(),
            "version": self.version,
            "current_capacity": self.current_capacity,
            "mosfet_status": self.mosfet_status,
            "cells": self.cells,
            "ntcs": self.ntcs,
            "temperatures": self.temperatures_decicelsius(),
        }


@dataclass
class CellVoltages:
    """Per-cell voltages in millivolts (command 0x04).

    Only the first ``Status.cells`` entries are meaningful.
    """

    voltages: tuple[int, ...]

    @classmethod
    def from_payload(cls, payload: bytes):
        """Decode a cell voltage payload of big-endian u16 values.

        Raises:
            ProtocolError: If the payload has an odd length or more
                than MAX_CELLS values.
        """
        if len(payload) % 2:
            raise ProtocolError(
                ProtocolFault.SHORT_READ,
                "cell payload has odd length {}".format(len(payload)),
            )
        count = len(payload) // 2
        if count > MAX_CELLS:
            raise ProtocolError(
                ProtocolFault.OVERSIZED,
                "{} cells, at most {} supported".format(count, MAX_CELLS),
            )
        return cls(unpack_u16_array(payload, count))

    def active(self, cells: int) -> tuple[int, ...]:
        """Return the first *cells* readings."""
        return self.voltages[:cells]

    def to_dict(self) -> dict:
        """Return a JSON-ready dict of all readings."""
        return {"voltages": list(self.voltages)}


@dataclass
class HardwareId:
    """ASCII hardware identifier (command 0x05), raw bytes as sent."""

    raw: bytes

    @classmethod
    def from_payload(cls, payload: bytes):
        if len(payload) > HARDWARE_ID_MAX_LEN:
            raise ProtocolError(
                ProtocolFault.OVERSIZED,
                "hardware id is {} bytes, at most {}".format(
                    len(payload), HARDWARE_ID_MAX_LEN
                ),
            )
        return cls(bytes(payload))

    @property
    def text(self) -> str:
        """The identifier as text, cut at the first NUL if any."""
        return self.raw.split(b"\x00", 1)[0].decode("ascii", errors="replace")

    def __str__(self) -> str:
        return self.text

    def to_dict(self) -> dict:
        return {"id": self.text}
