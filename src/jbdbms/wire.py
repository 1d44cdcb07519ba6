"""Byte-order and field helpers for JBD wire values.

The device sends every multi-byte field big-endian.  Single fields are
read in host-native order and passed through :func:`to_host_order`;
values headed for the wire go through :func:`to_wire_order` before a
native write.  The fixed status fields are unpacked in one go with
``jbdbms.models.STATUS_STRUCT`` instead.

Example:
    >>> from jbdbms.wire import decode_date, decode_temperature
    >>> decode_date(0x319F)
    (2024, 12, 31)
    >>> decode_temperature(3000)
    269
"""

import struct
import sys

# 273.1 K expressed in 0.1 K.
KELVIN_OFFSET_DECI = 2731

_NATIVE_U16 = struct.Struct("=H")


def swap16(value: int) -> int:
    """Swap the two bytes of a 16-bit value."""
    value &= 0xFFFF
    return ((value & 0xFF) << 8) | (value >> 8)


def to_host_order(value: int) -> int:
    """Convert a big-endian field read in host-native order to its value.

    A no-op on big-endian hosts.

    Example:
        >>> to_host_order(int.from_bytes(b"\\x05\\x2d", sys.byteorder))
        1325
    """
    if sys.byteorder == "little":
        return swap16(value)
    return value & 0xFFFF


def to_wire_order(value: int) -> int:
    """Inverse of :func:`to_host_order` (the swap is an involution)."""
    return to_host_order(value)


def unpack_u16(data: bytes, offset: int = 0) -> int:
    """Read an unsigned big-endian 16-bit field at *offset*."""
    return to_host_order(_NATIVE_U16.unpack_from(data, offset)[0])


def unpack_u16_array(data: bytes, count: int, offset: int = 0,
                     swap: bool = True) -> tuple[int, ...]:
    """Read *count* consecutive 16-bit fields starting at *offset*.

    With *swap* False the values are left exactly as the host reads
    them, without conversion from wire order.
    """
    raw = struct.unpack_from("={}H".format(count), data, offset)
    if not swap:
        return raw
    return tuple(to_host_order(v) for v in raw)


def pack_u16(value: int) -> bytes:
    """Encode *value* as a big-endian 16-bit field."""
    return _NATIVE_U16.pack(to_wire_order(value))


def decode_date(value: int) -> tuple[int, int, int]:
    """Unpack the production-date field.

    Layout: ``|7 bit year since 2000|4 bit month|5 bit day|``.

    Returns:
        tuple: ``(year, month, day)``.

    Example:
        >>> decode_date(0b0000011_1100_11111)
        (2003, 12, 31)
    """
    return 2000 + (value >> 9), (value >> 5) & 0x0F, value & 0x1F


def encode_date(year: int, month: int, day: int) -> int:
    """Pack a date into the production-date field.

    Raises:
        ValueError: If any part does not fit its bit field.

    Example:
        >>> hex(encode_date(2024, 12, 31))
        '0x319f'
    """
    if not (2000 <= year <= 2127):
        raise ValueError("year must be 2000-2127, got {}".format(year))
    if not (1 <= month <= 12):
        raise ValueError("month must be 1-12, got {}".format(month))
    if not (1 <= day <= 31):
        raise ValueError("day must be 1-31, got {}".format(day))
    return ((year - 2000) << 9) | (month << 5) | day


def decode_temperature(raw: int) -> int:
    """Convert a 0.1 K reading to tenths of a degree Celsius.

    Example:
        >>> decode_temperature(2731)
        0
    """
    return raw - KELVIN_OFFSET_DECI
