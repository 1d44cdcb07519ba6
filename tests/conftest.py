"""Shared pytest fixtures and test doubles for jbdbms tests."""

import struct

from jbdbms.models import STATUS_STRUCT
from jbdbms.protocol import (
    CMD_MOSFET,
    CMD_STATUS,
    RC_OK,
    decode_request,
    encode_response,
)
from jbdbms.wire import encode_date


def make_status_payload(voltage=1325, current=-150, remaining=2900,
                        nominal=3000, cycles=12, date=(2023, 5, 17),
                        balance_low=0, balance_high=0, fault=0, version=0x10,
                        soc=96, mosfet=3, cells=4, temps=(2981, 2991),
                        temp_order="="):
    """Build a status payload; temps are packed in *temp_order*."""
    fixed = STATUS_STRUCT.pack(
        voltage, current, remaining, nominal, cycles, encode_date(*date),
        balance_low, balance_high, fault, version, soc, mosfet, cells,
        len(temps),
    )
    return fixed + struct.pack(
        "{}{}H".format(temp_order, len(temps)), *temps
    )


def make_cells_payload(voltages):
    """Build a cell voltage payload of big-endian u16 values."""
    return struct.pack(">{}H".format(len(voltages)), *voltages)


class FakeStream:
    """Test double for serial.Serial: canned responses, records traffic.

    Each write() queues the next canned response for reading, so
    reset_input_buffer() before the write does not discard it.

    Args:
        responses: Raw response bytes, one per expected write.
        write_limit: If set, write() accepts at most this many bytes.
    """

    def __init__(self, responses=(), write_limit=None):
        """Initialize with canned responses."""
        self._responses = list(responses)
        self._rx = bytearray()
        self._write_limit = write_limit
        self._rts = False
        self.written = []
        self.events = []
        self.closed = False

    @property
    def rts(self):
        return self._rts

    @rts.setter
    def rts(self, value):
        self._rts = value
        self.events.append(("rts", value))

    def reset_input_buffer(self):
        self._rx.clear()
        self.events.append(("reset",))

    def write(self, data):
        """Record *data* and queue the reply; return bytes accepted."""
        data = bytes(data)
        accepted = len(data)
        if self._write_limit is not None:
            accepted = min(accepted, self._write_limit)
        self.written.append(data[:accepted])
        self.events.append(("write", data[:accepted]))
        self._rx.extend(self.respond(data))
        return accepted

    def respond(self, data):
        """Return the next canned response, or b"" if exhausted."""
        if self._responses:
            return self._responses.pop(0)
        return b""

    def flush(self):
        self.events.append(("flush",))

    def read(self, count):
        """Return up to *count* queued bytes."""
        self.events.append(("read", count))
        chunk = bytes(self._rx[:count])
        del self._rx[:count]
        return chunk

    def close(self):
        self.closed = True


class FakeDevice(FakeStream):
    """FakeStream that answers like a BMS and echoes the mosfet mask."""

    def __init__(self, mosfet=0, **status):
        """Initialize device state; *status* overrides payload fields."""
        super().__init__()
        self.mosfet = mosfet
        self._status = status

    def respond(self, data):
        request = decode_request(data)
        if request.command == CMD_STATUS:
            payload = make_status_payload(mosfet=self.mosfet, **self._status)
            return encode_response(CMD_STATUS, RC_OK, payload)
        if request.command == CMD_MOSFET:
            self.mosfet = request.payload[1]
            return encode_response(CMD_MOSFET, RC_OK)
        return super().respond(data)


class FakeClock:
    """Millisecond tick counter whose sleep() advances time."""

    def __init__(self, start=0):
        """Start the clock at *start* ms."""
        self.now = start
        self.sleeps = []

    def ticks(self):
        return self.now & 0xFFFFFFFF

    def sleep(self, seconds):
        """Record the wait and advance the clock by it."""
        self.sleeps.append(seconds)
        self.now += round(seconds * 1000)

    def advance(self, ms):
        self.now += ms
