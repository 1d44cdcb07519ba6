"""Frame encoding and decoding for the JBD BMS RS-485 protocol.

Request:  START, DIRECTION, CMD, LEN, PAYLOAD, CHK_HI, CHK_LO, STOP
Response: START, CMD, RETURNCODE, LEN, PAYLOAD, CHK_HI, CHK_LO, STOP

START is 0xDD and STOP is 0x77.  The checksum covers CMD (requests) or
RETURNCODE (responses), LEN and PAYLOAD; see jbdbms.checksum.

Example:
    >>> from jbdbms.protocol import encode_request, READ, CMD_STATUS
    >>> encode_request(READ, CMD_STATUS).hex(' ')
    'dd a5 03 00 ff fd 77'
"""

from dataclasses import dataclass

from jbdbms.checksum import checksum, checksum_bytes
from jbdbms.errors import (
    DeviceError,
    EncodingError,
    ProtocolError,
    ProtocolFault,
)
from jbdbms.wire import unpack_u16

# -- Protocol constants ------------------------------------------------------

PROTO_START = 0xDD
PROTO_STOP = 0x77

READ = 0xA5
WRITE = 0x5A

CMD_STATUS = 0x03
CMD_CELLS = 0x04
CMD_HARDWARE = 0x05
CMD_MOSFET = 0xE1

RC_OK = 0x00
RC_ERR = 0x80

# Transport ceiling for the LEN field of a response.
PROTO_MAX_PAYLOAD = 64

HEADER_LEN = 4
CHECKSUM_LEN = 2
STOP_LEN = 1
# Everything in a frame except the payload.
FRAME_OVERHEAD = HEADER_LEN + CHECKSUM_LEN + STOP_LEN


@dataclass
class Request:
    """Decoded request frame (device side)."""

    direction: int
    command: int
    payload: bytes


@dataclass
class Response:
    """Decoded response frame."""

    command: int
    returncode: int
    payload: bytes


# -- Encoding ----------------------------------------------------------------


def encode_request(direction: int, command: int, payload: bytes = b"") -> bytes:
    """Build a complete request frame.

    Raises:
        EncodingError: If the payload is too long for the checksum.
    """
    length = len(payload)
    chk = checksum_bytes(command, length, payload)
    return (
        bytes([PROTO_START, direction, command, length])
        + bytes(payload)
        + chk
        + bytes([PROTO_STOP])
    )


def encode_response(command: int, returncode: int, payload: bytes = b"") -> bytes:
    """Build a complete response frame, as the device sends it.

    Raises:
        EncodingError: If the payload is too long for the checksum.
    """
    length = len(payload)
    chk = checksum_bytes(returncode, length, payload)
    return (
        bytes([PROTO_START, command, returncode, length])
        + bytes(payload)
        + chk
        + bytes([PROTO_STOP])
    )


# -- Decoding ----------------------------------------------------------------


def check_header(header: bytes) -> int:
    """Validate the START byte and LEN field of a response header.

    Returns:
        int: The declared payload length.

    Raises:
        ProtocolError: BAD_START, OVERSIZED, or SHORT_READ if fewer than
            four header bytes are given.
    """
    if len(header) < HEADER_LEN:
        raise ProtocolError(
            ProtocolFault.SHORT_READ,
            "header is {} bytes, need {}".format(len(header), HEADER_LEN),
        )
    if header[0] != PROTO_START:
        raise ProtocolError(
            ProtocolFault.BAD_START,
            "expected 0x{:02X}, got 0x{:02X}".format(PROTO_START, header[0]),
        )
    length = header[3]
    if length > PROTO_MAX_PAYLOAD:
        raise ProtocolError(
            ProtocolFault.OVERSIZED,
            "LEN field says {}, maximum is {}".format(length, PROTO_MAX_PAYLOAD),
        )
    return length


def _split_frame(data: bytes):
    """Validate framing and checksum; return (header, payload).

    The checksum is seeded with header byte 2: the return code of a
    response, the command of a request.
    """
    length = check_header(data)

    end = HEADER_LEN + length
    if len(data) < end:
        raise ProtocolError(
            ProtocolFault.SHORT_READ,
            "LEN field says {} payload bytes, only {} present".format(
                length, len(data) - HEADER_LEN
            ),
        )
    payload = bytes(data[HEADER_LEN:end])

    if len(data) < end + CHECKSUM_LEN + STOP_LEN:
        raise ProtocolError(
            ProtocolFault.SHORT_READ,
            "frame is {} bytes, expected {}".format(
                len(data), end + CHECKSUM_LEN + STOP_LEN
            ),
        )

    received = unpack_u16(data, end)
    try:
        computed = checksum(data[2], length, payload)
    except EncodingError as exc:
        raise ProtocolError(
            ProtocolFault.CHECKSUM,
            "received 0x{:04X}, cannot compute: {}".format(received, exc),
        ) from exc
    if received != computed:
        raise ProtocolError(
            ProtocolFault.CHECKSUM,
            "received 0x{:04X}, computed 0x{:04X}".format(received, computed),
        )

    stop = data[end + CHECKSUM_LEN]
    if stop != PROTO_STOP:
        raise ProtocolError(
            ProtocolFault.BAD_STOP,
            "expected 0x{:02X}, got 0x{:02X}".format(PROTO_STOP, stop),
        )

    return data[:HEADER_LEN], payload


def decode_response(data: bytes) -> Response:
    """Parse and validate a complete response frame.

    Checks, in order: START byte, LEN <= 64, payload present,
    checksum, STOP byte.

    Raises:
        ProtocolError: On the first failed check; ``reason`` tells which.
        DeviceError: If the frame is valid but RETURNCODE is nonzero.

    Example:
        >>> decode_response(bytes.fromhex('dd e1 00 00 00 00 77'))
        Response(command=225, returncode=0, payload=b'')
    """
    header, payload = _split_frame(data)
    response = Response(command=header[1], returncode=header[2], payload=payload)
    if response.returncode != RC_OK:
        raise DeviceError(response)
    return response


def decode_request(data: bytes) -> Request:
    """Parse and validate a complete request frame (device side).

    Same checks as :func:`decode_response`, with the checksum seeded by
    the command byte.

    Raises:
        ProtocolError: On the first failed check.
    """
    header, payload = _split_frame(data)
    return Request(direction=header[1], command=header[2], payload=payload)
