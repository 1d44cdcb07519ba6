"""Protection fault bits reported in the Status fault field.

Each ``is_*`` accessor tests one bit of the 16-bit fault mask.

Example:
    >>> from jbdbms.faults import is_short_circuit, active_faults
    >>> is_short_circuit(0x0400)
    True
    >>> active_faults(0x0401)
    ['cell_overvoltage', 'short_circuit']
"""

import enum


class Fault(enum.IntFlag):
    """Bit positions of the fault mask."""

    CELL_OVERVOLTAGE = 0x0001
    CELL_UNDERVOLTAGE = 0x0002
    OVERVOLTAGE = 0x0004
    UNDERVOLTAGE = 0x0008
    CHARGE_OVERTEMPERATURE = 0x0010
    CHARGE_UNDERTEMPERATURE = 0x0020
    DISCHARGE_OVERTEMPERATURE = 0x0040
    DISCHARGE_UNDERTEMPERATURE = 0x0080
    CHARGE_OVERCURRENT = 0x0100
    DISCHARGE_OVERCURRENT = 0x0200
    SHORT_CIRCUIT = 0x0400
    IC_ERROR = 0x0800
    MOSFET_SOFTWARE_LOCK = 0x1000


def is_cell_overvoltage(fault: int) -> bool:
    """A cell is above its overvoltage limit."""
    return bool(fault & Fault.CELL_OVERVOLTAGE)


def is_cell_undervoltage(fault: int) -> bool:
    """A cell is below its undervoltage limit."""
    return bool(fault & Fault.CELL_UNDERVOLTAGE)


def is_overvoltage(fault: int) -> bool:
    """Pack overvoltage."""
    return bool(fault & Fault.OVERVOLTAGE)


def is_undervoltage(fault: int) -> bool:
    """Pack undervoltage."""
    return bool(fault & Fault.UNDERVOLTAGE)


def is_charge_overtemperature(fault: int) -> bool:
    """Too hot to charge."""
    return bool(fault & Fault.CHARGE_OVERTEMPERATURE)


def is_charge_undertemperature(fault: int) -> bool:
    """Too cold to charge."""
    return bool(fault & Fault.CHARGE_UNDERTEMPERATURE)


def is_discharge_overtemperature(fault: int) -> bool:
    """Too hot to discharge."""
    return bool(fault & Fault.DISCHARGE_OVERTEMPERATURE)


def is_discharge_undertemperature(fault: int) -> bool:
    """Too cold to discharge."""
    return bool(fault & Fault.DISCHARGE_UNDERTEMPERATURE)


def is_charge_overcurrent(fault: int) -> bool:
    """Charge current above limit."""
    return bool(fault & Fault.CHARGE_OVERCURRENT)


def is_discharge_overcurrent(fault: int) -> bool:
    """Discharge current above limit."""
    return bool(fault & Fault.DISCHARGE_OVERCURRENT)


def is_short_circuit(fault: int) -> bool:
    """Short-circuit protection tripped."""
    return bool(fault & Fault.SHORT_CIRCUIT)


def is_ic_error(fault: int) -> bool:
    """Front-end IC reported an error."""
    return bool(fault & Fault.IC_ERROR)


def is_mosfet_software_lock(fault: int) -> bool:
    """Mosfets were switched off by software (see set_mosfet_status)."""
    return bool(fault & Fault.MOSFET_SOFTWARE_LOCK)


def active_faults(fault: int) -> list[str]:
    """Return the lower-case names of all bits set in *fault*, low bit first."""
    return [f.name.lower() for f in Fault if fault & f]
