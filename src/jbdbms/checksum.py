"""Frame checksum for the JBD BMS protocol.

Not a CRC despite the name used around these devices: the checksum is
the two's-complement negation of the plain byte sum over the
command (or return code) byte, the length byte and the data region,
truncated to 16 bits and sent big-endian.

Example:
    >>> from jbdbms.checksum import checksum
    >>> hex(checksum(0x03, 0, b""))
    '0xfffd'
"""

from jbdbms.errors import EncodingError
from jbdbms.wire import pack_u16

# Regions this long or longer are refused.  Deliberately stricter than
# the 64-byte transport ceiling.
CHECKSUM_MAX_LEN = 31


def checksum(byte: int, length: int, data: bytes | None) -> int:
    """Compute the 16-bit checksum over *byte*, *length* and *data*.

    Requests seed with the command byte, responses with the return
    code; the arithmetic is the same.

    Args:
        byte: Command or return code byte.
        length: Number of data bytes covered (the frame's LEN field).
        data: Data region; may be None when *length* is 0.

    Returns:
        int: ``-(byte + length + sum(data)) & 0xFFFF``.

    Raises:
        EncodingError: If *length* is 31 or more, or *data* is missing
            or shorter than *length*.

    Example:
        >>> hex(checksum(0xE1, 2, b"\\x00\\x03"))
        '0xff1a'
    """
    if length >= CHECKSUM_MAX_LEN:
        raise EncodingError(
            "checksum region must be under {} bytes, got {}".format(
                CHECKSUM_MAX_LEN, length
            )
        )
    if length > 0 and (data is None or len(data) < length):
        raise EncodingError(
            "checksum needs {} data bytes, got {}".format(
                length, 0 if data is None else len(data)
            )
        )

    total = byte + length
    if length:
        total += sum(data[:length])
    return -total & 0xFFFF


def checksum_bytes(byte: int, length: int, data: bytes | None) -> bytes:
    """Return :func:`checksum` in wire order (2 bytes, big-endian)."""
    return pack_u16(checksum(byte, length, data))
