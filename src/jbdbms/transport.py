"""Half-duplex request/response transport for the JBD BMS.

Owns the byte stream (normally a ``serial.Serial``) and the optional
direction line.  One call to :meth:`Transport.execute` occupies the bus
from the start of the write to the end of the validated read; nothing
else may be outstanding.

Example:
    >>> import serial
    >>> from jbdbms.transport import Transport
    >>> from jbdbms.protocol import READ, CMD_HARDWARE
    >>> ser = serial.Serial("/dev/ttyUSB0", 9600, timeout=0.5)
    >>> transport = Transport(ser, command_delay_ms=100)
    >>> transport.execute(READ, CMD_HARDWARE, capacity=32).payload
    b'JBD-SP04S034'
"""

import logging
import time

import serial

from jbdbms.errors import IoError
from jbdbms.protocol import (
    CHECKSUM_LEN,
    HEADER_LEN,
    STOP_LEN,
    Response,
    check_header,
    decode_response,
    encode_request,
)

log = logging.getLogger(__name__)

# Command spacing is measured on a 32-bit millisecond tick counter.
TICKS_MASK = 0xFFFFFFFF


def ticks_ms() -> int:
    """Monotonic milliseconds, wrapped to 32 bits."""
    return int(time.monotonic() * 1000) & TICKS_MASK


def ticks_diff(end: int, start: int) -> int:
    """Milliseconds from *start* to *end*, correct across one wraparound."""
    return (end - start) & TICKS_MASK


class Transport:
    """One device on one half-duplex bus.

    Duck-typed: *stream* needs ``reset_input_buffer()``, ``write(data)``
    returning the number of bytes written, ``flush()``, ``read(n)``
    returning up to *n* bytes, and ``close()``.

    Args:
        stream: Byte stream to the device.  Read timeouts belong to it.
        direction_line: DirectionLine driving DE/!RE, or None when the
            adapter switches direction by itself.
        command_delay_ms: Minimum time between the end of one command
            and the start of the next.
        clock: Callable returning 32-bit millisecond ticks.
        sleep: Callable taking seconds, like ``time.sleep``.
    """

    def __init__(self, stream, direction_line=None, command_delay_ms: int = 0,
                 clock=None, sleep=None):
        """Initialize the transport; the bus is idle until execute()."""
        if command_delay_ms < 0:
            raise ValueError(
                "command_delay_ms must be >= 0, got {}".format(command_delay_ms)
            )
        self._stream = stream
        self._direction_line = direction_line
        self._delay_ms = command_delay_ms
        self._clock = clock or ticks_ms
        self._sleep = sleep or time.sleep
        self._prev: int | None = None

    @property
    def stream(self):
        """The underlying byte stream."""
        return self._stream

    @property
    def direction_line(self):
        """The DirectionLine, or None for self-switching adapters."""
        return self._direction_line

    def execute(self, direction: int, command: int, payload: bytes = b"",
                capacity: int = 0) -> Response:
        """Send one request and return the validated response.

        Args:
            direction: READ or WRITE.
            command: Command code.
            payload: Request payload (under 31 bytes).
            capacity: Largest response payload the caller accepts.

        Raises:
            EncodingError: Payload too long; nothing is sent.
            IoError: Short write, short read, a serial port failure, or
                a response payload larger than *capacity*.
            ProtocolError: Malformed response frame.
            DeviceError: Device answered with an error return code.
        """
        frame = encode_request(direction, command, payload)
        self._wait_for_bus()
        try:
            self._send(frame)
            return self._receive(capacity)
        finally:
            # A failed command still uses up the delay window.
            self._prev = self._clock()

    def close(self) -> None:
        """Close the underlying stream."""
        self._stream.close()

    def _wait_for_bus(self) -> None:
        """Block until command_delay_ms has passed since the last command."""
        if self._prev is None or self._delay_ms == 0:
            return
        elapsed = ticks_diff(self._clock(), self._prev)
        if elapsed < self._delay_ms:
            remaining = self._delay_ms - elapsed
            log.debug("waiting %d ms before next command", remaining)
            self._sleep(remaining / 1000.0)

    def _send(self, frame: bytes) -> None:
        """Write *frame* with the direction line at transmit.

        The line goes back to receive only after the output is flushed,
        also when the write fails.
        """
        self._stream.reset_input_buffer()
        if self._direction_line is not None:
            self._direction_line.transmit()
        try:
            written = self._stream.write(frame)
            self._stream.flush()
        except serial.SerialException as exc:
            raise IoError("write failed: {}".format(exc)) from exc
        finally:
            if self._direction_line is not None:
                self._direction_line.receive()

        log.debug("tx: %s", frame.hex(" "))
        if written != len(frame):
            raise IoError(
                "short write: {} of {} bytes".format(written, len(frame))
            )

    def _receive(self, capacity: int) -> Response:
        """Read header, payload, checksum and stop byte, then decode."""
        header = self._read_exact(HEADER_LEN, "header")
        length = check_header(header)
        if length > capacity:
            raise IoError(
                "response payload is {} bytes, buffer holds {}".format(
                    length, capacity
                )
            )
        payload = self._read_exact(length, "payload") if length else b""
        chk = self._read_exact(CHECKSUM_LEN, "checksum")
        stop = self._read_exact(STOP_LEN, "stop byte")

        raw = header + payload + chk + stop
        log.debug("rx: %s", raw.hex(" "))
        return decode_response(raw)

    def _read_exact(self, count: int, what: str) -> bytes:
        """Read exactly *count* bytes of *what* or raise IoError."""
        try:
            data = bytes(self._stream.read(count))
        except serial.SerialException as exc:
            raise IoError("read of {} failed: {}".format(what, exc)) from exc
        if len(data) != count:
            raise IoError(
                "short read of {}: {} of {} bytes".format(what, len(data), count)
            )
        return data
