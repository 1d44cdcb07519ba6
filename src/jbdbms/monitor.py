"""Command-line front end: one-shot queries and a polling monitor.

The monitor reads the hardware id once, then status and cell voltages
every ``interval`` seconds, logging a reading whenever it changes.
Shuts down cleanly on SIGINT or SIGTERM.

Example:
    Run from the command line::

        jbdbms jbdbms.toml status
        jbdbms jbdbms.toml mosfet both
        jbdbms jbdbms.toml monitor -v
"""

import argparse
import json
import logging
import signal
import sys
import threading

from jbdbms.config import load_config, resolve_config
from jbdbms.driver import JbdBms
from jbdbms.errors import DriverError
from jbdbms.models import MosfetMask

log = logging.getLogger(__name__)

_shutdown = threading.Event()


def _on_signal(signum: int, frame) -> None:
    """Set the module-level shutdown event on SIGINT/SIGTERM."""
    _shutdown.set()


class Monitor:
    """Polls one BMS and remembers the last reading of each kind.

    Args:
        bms: JbdBms-like object.
    """

    def __init__(self, bms):
        """Initialize with nothing read yet."""
        self._bms = bms
        self.hardware = None
        self.status = None
        self.cells = None

    def poll(self) -> bool:
        """Run one cycle.  Returns True if every command succeeded.

        Errors are logged and the previous readings are kept; the next
        cycle tries again.
        """
        ok = True

        if self.hardware is None:
            try:
                self.hardware = self._bms.get_hardware()
                log.info("hardware: %s", self.hardware.text)
            except DriverError as exc:
                log.debug("get_hardware failed: %s", exc)
                ok = False

        try:
            status = self._bms.get_status()
        except DriverError as exc:
            log.debug("get_status failed: %s", exc)
            ok = False
        else:
            if status != self.status:
                log.info("status: %s", json.dumps(status.to_dict()))
            self.status = status

        try:
            cells = self._bms.get_cells()
        except DriverError as exc:
            log.debug("get_cells failed: %s", exc)
            ok = False
        else:
            if cells != self.cells:
                count = self.status.cells if self.status else len(cells.voltages)
                log.info("cells: %s", list(cells.active(count)))
            self.cells = cells

        return ok


def run_monitor(bms, interval: int, shutdown: threading.Event) -> int:
    """Poll *bms* until *shutdown* is set.

    Returns the number of completed cycles.

    Example:
        >>> run_monitor(bms, 10, ev)
        5
    """
    monitor = Monitor(bms)
    cycles = 0

    while not shutdown.is_set():
        ok = monitor.poll()
        cycles += 1
        if not ok:
            log.info("cycle %d: some commands failed", cycles)
        if interval > 0:
            shutdown.wait(interval)

    return cycles


def run_command(bms, args) -> dict:
    """Execute one CLI sub-command and return its JSON-ready result."""
    if args.command == "status":
        return bms.get_status().to_dict()
    if args.command == "cells":
        status = bms.get_status()
        cells = bms.get_cells()
        return {"voltages": list(cells.active(status.cells))}
    if args.command == "hardware":
        return bms.get_hardware().to_dict()
    if args.command == "mosfet":
        mask = MosfetMask[args.mask.upper()]
        bms.set_mosfet_status(mask)
        return {"mosfet_status": int(mask), "message": mask.describe()}
    if args.command == "toggle-charge":
        mask = bms.toggle_charge()
        return {"mosfet_status": int(mask), "message": mask.describe()}
    raise ValueError("unknown command: %s" % args.command)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="JBD battery management system")
    parser.add_argument("config", help="path or name of TOML config file")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="print pack status")
    sub.add_parser("cells", help="print cell voltages")
    sub.add_parser("hardware", help="print hardware id")
    mosfet = sub.add_parser("mosfet", help="switch charge/discharge mosfets")
    mosfet.add_argument(
        "mask", choices=[m.name.lower() for m in MosfetMask],
        help="mosfets to enable",
    )
    sub.add_parser("toggle-charge", help="flip the charge mosfet")
    sub.add_parser("monitor", help="poll until interrupted")
    return parser


def main(argv=None) -> int:
    """CLI entry point -- parse args, load config, run the command.

    Example:
        From the shell::

            jbdbms jbdbms.toml status
            jbdbms jbdbms.toml monitor -v
    """
    _shutdown.clear()

    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=level,
    )

    cfg = load_config(resolve_config(args.config))

    with JbdBms.from_config(cfg) as bms:
        if args.command == "monitor":
            signal.signal(signal.SIGINT, _on_signal)
            signal.signal(signal.SIGTERM, _on_signal)
            log.info(
                "starting: port=%s baudrate=%d direction=%s interval=%ds",
                cfg["port"], cfg["baudrate"], cfg["direction"], cfg["interval"],
            )
            try:
                run_monitor(bms, cfg["interval"], _shutdown)
            finally:
                log.info("shutting down")
            return 0

        try:
            result = run_command(bms, args)
        except DriverError as exc:
            log.error("%s failed: %s", args.command, exc)
            return 1

    print(json.dumps(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
