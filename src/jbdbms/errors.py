"""Exception types raised by the jbdbms driver.

Every failure of a command surfaces as a subclass of DriverError so
callers can catch one type per poll cycle.  The subclasses separate
"the bus is broken" (IoError, ProtocolError) from "the device refused"
(DeviceError) and from caller mistakes (EncodingError).

Example:
    >>> from jbdbms.errors import DriverError
    >>> try:
    ...     bms.get_status()
    ... except DriverError as exc:
    ...     log.debug("poll failed: %s", exc)
"""

import enum


class DriverError(Exception):
    """Base class for all driver failures."""


class IoError(DriverError):
    """Stream write/read count mismatch or undersized result buffer."""


class EncodingError(DriverError, ValueError):
    """Request payload cannot be framed (checksum region too long)."""


class ProtocolFault(enum.Enum):
    """Reason a response frame was rejected."""

    BAD_START = "bad start byte"
    OVERSIZED = "oversized length"
    SHORT_READ = "short read"
    CHECKSUM = "checksum mismatch"
    BAD_STOP = "bad stop byte"


class ProtocolError(DriverError, ValueError):
    """Malformed response frame: bus noise or protocol mismatch.

    Args:
        reason: The ProtocolFault that failed.
        detail: Human-readable description of the offending bytes.
    """

    def __init__(self, reason: ProtocolFault, detail: str = ""):
        self.reason = reason
        self.detail = detail
        msg = reason.value
        if detail:
            msg = "%s: %s" % (msg, detail)
        super().__init__(msg)


class DeviceError(DriverError):
    """Well-formed response frame carrying a nonzero return code.

    Args:
        response: The decoded Response (command, returncode, payload).
    """

    def __init__(self, response):
        self.response = response
        super().__init__(
            "device returned code 0x{:02X} for command 0x{:02X}".format(
                response.returncode, response.command
            )
        )
