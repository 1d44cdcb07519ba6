#!/usr/bin/env python3
"""Virtual JBD BMS for jbdbms.

Listens on a serial port (typically a socat PTY) and answers status,
cell, hardware and mosfet requests like a 4S pack.  Cell voltages
drift a few millivolts each cycle; the mosfet mask written by the
client is echoed back in later status replies.

Usage:
    python simulator.py <port> <baudrate>

Args:
    port: Serial port path (e.g. /tmp/jbdbms-device).
    baudrate: Baud rate (e.g. 9600).

Example:
    socat -d -d pty,raw,echo=0,link=/tmp/jbdbms pty,raw,echo=0,link=/tmp/jbdbms-device
    python simulator.py /tmp/jbdbms-device 9600
"""

import random
import struct
import sys

import serial

# Add parent src to path so we can import jbdbms
sys.path.insert(0, str(__import__("pathlib").Path(__file__).resolve().parents[1] / "src"))

from jbdbms.errors import ProtocolError
from jbdbms.models import STATUS_STRUCT
from jbdbms.protocol import (
    CMD_CELLS,
    CMD_HARDWARE,
    CMD_MOSFET,
    CMD_STATUS,
    HEADER_LEN,
    RC_ERR,
    RC_OK,
    WRITE,
    decode_request,
    encode_response,
)
from jbdbms.wire import encode_date, pack_u16

HARDWARE_ID = b"JBD-SP04S034-SIM"


class SimulatedBms:
    """Device state and request handling, independent of the port."""

    def __init__(self, cells: int = 4):
        """Start with both mosfets on and balanced cells near 3.3 V."""
        self.mosfet = 3
        self.voltages = [3300 + i for i in range(cells)]
        self.temperatures = [2981, 2991]  # 25.0 C, 26.0 C

    def status_payload(self) -> bytes:
        """Build a status payload from the current state."""
        total = sum(self.voltages) // 10
        fixed = STATUS_STRUCT.pack(
            total, -150, 2900, 3000, 12, encode_date(2023, 5, 17),
            0, 0, 0, 0x10, 96, self.mosfet, len(self.voltages),
            len(self.temperatures),
        )
        temps = struct.pack(
            "={}H".format(len(self.temperatures)), *self.temperatures
        )
        return fixed + temps

    def handle(self, raw: bytes) -> bytes | None:
        """Return the response frame for request *raw*, or None."""
        try:
            request = decode_request(raw)
        except ProtocolError:
            return None

        if request.command == CMD_STATUS:
            return encode_response(CMD_STATUS, RC_OK, self.status_payload())
        if request.command == CMD_CELLS:
            self.voltages = [v + random.randint(-3, 3) for v in self.voltages]
            payload = b"".join(pack_u16(v) for v in self.voltages)
            return encode_response(CMD_CELLS, RC_OK, payload)
        if request.command == CMD_HARDWARE:
            return encode_response(CMD_HARDWARE, RC_OK, HARDWARE_ID)
        if (request.command == CMD_MOSFET and request.direction == WRITE
                and len(request.payload) == 2 and request.payload[1] <= 3):
            self.mosfet = request.payload[1]
            return encode_response(CMD_MOSFET, RC_OK)
        return encode_response(request.command, RC_ERR)


def read_request(ser) -> bytes:
    """Read one request frame from *ser*, or b"" on timeout."""
    header = ser.read(HEADER_LEN)
    if len(header) < HEADER_LEN:
        return b""
    remaining = header[3] + 3
    tail = ser.read(remaining)
    if len(tail) < remaining:
        return b""
    return header + tail


def run(port: str, baudrate: int) -> None:
    """Run the simulator loop until interrupted."""
    ser = serial.Serial(port, baudrate, timeout=0.5)
    bms = SimulatedBms()

    print("simulator: listening on {}".format(port), flush=True)

    try:
        while True:
            raw = read_request(ser)
            if not raw:
                continue
            reply = bms.handle(raw)
            if reply is not None:
                ser.write(reply)
                ser.flush()
    except KeyboardInterrupt:
        pass
    finally:
        ser.close()


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("usage: simulator.py <port> <baudrate>", file=sys.stderr)
        sys.exit(1)
    run(sys.argv[1], int(sys.argv[2]))
