"""Tests for jbdbms.protocol."""

import random

import pytest

from jbdbms.errors import DeviceError, EncodingError, ProtocolError, ProtocolFault
from jbdbms.protocol import (
    CMD_CELLS,
    CMD_HARDWARE,
    CMD_MOSFET,
    CMD_STATUS,
    PROTO_MAX_PAYLOAD,
    PROTO_START,
    PROTO_STOP,
    RC_ERR,
    RC_OK,
    READ,
    WRITE,
    Response,
    check_header,
    decode_request,
    decode_response,
    encode_request,
    encode_response,
)


# -- encode_request ----------------------------------------------------------


class TestEncodeRequest:
    """Tests for the request frame encoder."""

    def test_status_request(self):
        """Status read matches the well-known frame."""
        expected = bytes([0xDD, 0xA5, 0x03, 0x00, 0xFF, 0xFD, 0x77])
        assert encode_request(READ, CMD_STATUS) == expected

    def test_cells_request(self):
        expected = bytes([0xDD, 0xA5, 0x04, 0x00, 0xFF, 0xFC, 0x77])
        assert encode_request(READ, CMD_CELLS) == expected

    def test_hardware_request(self):
        expected = bytes([0xDD, 0xA5, 0x05, 0x00, 0xFF, 0xFB, 0x77])
        assert encode_request(READ, CMD_HARDWARE) == expected

    def test_mosfet_request(self):
        """Mosfet write carries {0, mask} and WRITE direction."""
        expected = bytes([0xDD, 0x5A, 0xE1, 0x02, 0x00, 0x03, 0xFF, 0x1A, 0x77])
        assert encode_request(WRITE, CMD_MOSFET, b"\x00\x03") == expected

    def test_layout(self):
        """START, direction, command and LEN at fixed offsets."""
        frame = encode_request(WRITE, 0x42, b"\x01\x02\x03")
        assert frame[0] == PROTO_START
        assert frame[1] == WRITE
        assert frame[2] == 0x42
        assert frame[3] == 3
        assert frame[4:7] == b"\x01\x02\x03"
        assert frame[-1] == PROTO_STOP
        assert len(frame) == 7 + 3

    def test_start_not_in_checksum(self):
        """Checksum covers command, LEN and payload only."""
        frame = encode_request(READ, 0x10, b"\x20")
        assert frame[-3:-1] == (-(0x10 + 1 + 0x20) & 0xFFFF).to_bytes(2, "big")

    def test_direction_not_in_checksum(self):
        a = encode_request(READ, 0x10, b"\x20")
        b = encode_request(WRITE, 0x10, b"\x20")
        assert a[-3:] == b[-3:]

    def test_payload_too_long(self):
        """Payloads of 31 bytes or more cannot be framed."""
        with pytest.raises(EncodingError):
            encode_request(WRITE, 0x10, b"\x00" * 31)

    def test_longest_payload(self):
        frame = encode_request(WRITE, 0x10, b"\x00" * 30)
        assert frame[3] == 30


# -- decode_response ---------------------------------------------------------


class TestDecodeResponse:
    """Tests for response validation."""

    def test_empty_ok(self):
        raw = bytes.fromhex("dd e1 00 00 00 00 77")
        assert decode_response(raw) == Response(CMD_MOSFET, RC_OK, b"")

    def test_round_trip(self):
        payload = b"JBD-SP04S034"
        raw = encode_response(CMD_HARDWARE, RC_OK, payload)
        response = decode_response(raw)
        assert response.command == CMD_HARDWARE
        assert response.returncode == RC_OK
        assert response.payload == payload

    def test_round_trip_random(self):
        """Random commands and payloads under 31 bytes survive framing."""
        rng = random.Random(7)
        for _ in range(200):
            command = rng.randint(0, 255)
            payload = bytes(rng.randint(0, 255) for _ in range(rng.randint(0, 30)))
            response = decode_response(encode_response(command, RC_OK, payload))
            assert (response.command, response.payload) == (command, payload)

    def test_bad_start(self):
        raw = bytearray(encode_response(CMD_STATUS, RC_OK, b"\x01"))
        raw[0] = 0xDE
        with pytest.raises(ProtocolError) as info:
            decode_response(bytes(raw))
        assert info.value.reason is ProtocolFault.BAD_START

    def test_oversized_length(self):
        """LEN = 65 is rejected even with a matching checksum."""
        payload = b"\x00" * 65
        chk = (-(0 + 65) & 0xFFFF).to_bytes(2, "big")
        raw = bytes([0xDD, CMD_CELLS, RC_OK, 65]) + payload + chk + b"\x77"
        with pytest.raises(ProtocolError) as info:
            decode_response(raw)
        assert info.value.reason is ProtocolFault.OVERSIZED

    def test_max_length_not_oversized(self):
        """LEN = 64 passes the size check; the checksum routine refuses it."""
        raw = bytes([0xDD, CMD_CELLS, RC_OK, PROTO_MAX_PAYLOAD])
        raw += b"\x00" * PROTO_MAX_PAYLOAD + b"\x00\x00\x77"
        with pytest.raises(ProtocolError) as info:
            decode_response(raw)
        assert info.value.reason is ProtocolFault.CHECKSUM

    def test_short_payload(self):
        raw = encode_response(CMD_HARDWARE, RC_OK, b"ABCDEF")[:7]
        with pytest.raises(ProtocolError) as info:
            decode_response(raw)
        assert info.value.reason is ProtocolFault.SHORT_READ

    def test_short_header(self):
        with pytest.raises(ProtocolError) as info:
            decode_response(b"\xdd\x03")
        assert info.value.reason is ProtocolFault.SHORT_READ

    def test_missing_tail(self):
        raw = encode_response(CMD_STATUS, RC_OK, b"\x01\x02")[:-1]
        with pytest.raises(ProtocolError) as info:
            decode_response(raw)
        assert info.value.reason is ProtocolFault.SHORT_READ

    def test_checksum_mismatch(self):
        raw = bytearray(encode_response(CMD_STATUS, RC_OK, b"\x01\x02"))
        raw[-2] ^= 0x01
        with pytest.raises(ProtocolError, match="checksum mismatch") as info:
            decode_response(bytes(raw))
        assert info.value.reason is ProtocolFault.CHECKSUM

    def test_bit_flips_detected(self):
        """Any single bit flip in payload, return code or checksum fails."""
        good = encode_response(CMD_HARDWARE, RC_OK, b"JBD-123")
        covered = [2] + list(range(4, len(good) - 1))
        for index in covered:
            for bit in range(8):
                raw = bytearray(good)
                raw[index] ^= 1 << bit
                with pytest.raises(ProtocolError) as info:
                    decode_response(bytes(raw))
                assert info.value.reason is ProtocolFault.CHECKSUM

    def test_bad_stop(self):
        """Missing 0x77 is rejected even with a correct checksum."""
        raw = bytearray(encode_response(CMD_STATUS, RC_OK, b"\x01"))
        raw[-1] = 0x00
        with pytest.raises(ProtocolError) as info:
            decode_response(bytes(raw))
        assert info.value.reason is ProtocolFault.BAD_STOP

    def test_device_error(self):
        """A well-formed frame with RC_ERR raises DeviceError."""
        raw = encode_response(CMD_MOSFET, RC_ERR)
        with pytest.raises(DeviceError) as info:
            decode_response(raw)
        assert info.value.response.returncode == RC_ERR
        assert info.value.response.command == CMD_MOSFET

    def test_device_error_is_not_protocol_error(self):
        raw = encode_response(CMD_MOSFET, RC_ERR)
        with pytest.raises(DeviceError):
            try:
                decode_response(raw)
            except ProtocolError:
                pytest.fail("DeviceError must not be a ProtocolError")

    def test_protocol_error_is_value_error(self):
        with pytest.raises(ValueError):
            decode_response(b"\x00" * 7)


# -- check_header ------------------------------------------------------------


class TestCheckHeader:
    """Header-only validation used by the transport."""

    def test_returns_length(self):
        assert check_header(b"\xdd\x03\x00\x1b") == 27

    def test_zero_length(self):
        assert check_header(b"\xdd\xe1\x00\x00") == 0

    def test_bad_start(self):
        with pytest.raises(ProtocolError) as info:
            check_header(b"\x77\x03\x00\x00")
        assert info.value.reason is ProtocolFault.BAD_START

    def test_oversized(self):
        with pytest.raises(ProtocolError) as info:
            check_header(b"\xdd\x03\x00\x41")
        assert info.value.reason is ProtocolFault.OVERSIZED


# -- decode_request ----------------------------------------------------------


class TestDecodeRequest:
    """Device-side request parsing."""

    def test_round_trip(self):
        request = decode_request(encode_request(WRITE, CMD_MOSFET, b"\x00\x01"))
        assert request.direction == WRITE
        assert request.command == CMD_MOSFET
        assert request.payload == b"\x00\x01"

    def test_checksum_mismatch(self):
        raw = bytearray(encode_request(READ, CMD_STATUS))
        raw[2] = CMD_CELLS
        with pytest.raises(ProtocolError) as info:
            decode_request(bytes(raw))
        assert info.value.reason is ProtocolFault.CHECKSUM


# -- Fuzz-ish ----------------------------------------------------------------


class TestFuzz:
    """Random byte sequences must not crash decode_response."""

    def test_random_bytes_no_crash(self):
        """Only ProtocolError or DeviceError may escape."""
        rng = random.Random(42)
        for _ in range(1000):
            length = rng.randint(0, 40)
            data = bytes(rng.randint(0, 255) for _ in range(length))
            if rng.random() < 0.5 and data:
                data = b"\xdd" + data[1:]
            try:
                decode_response(data)
            except (ProtocolError, DeviceError):
                pass
