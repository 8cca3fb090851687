"""
Diagnostics — the channel the rotator reports slot and cycle events into.

The default implementation writes to the ``ticket_keys.rotation`` logger.
Key material never passes through here, only slot identifiers and paths.
"""
import sys
import time
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import orjson

if TYPE_CHECKING:
    from .rotation.rotator import RotationReport
    from .rotation.slots import KeySlot

logger = logging.getLogger("ticket_keys.rotation")


class Diagnostics:
    """Logs rotation events; subclass to route them elsewhere."""

    def __init__(self, log: logging.Logger = logger) -> None:
        self.log = log

    def slot_aged(self, source: "KeySlot", target: "KeySlot") -> None:
        self.log.debug("Copied %s over %s", source, target)

    def slot_filled(
        self,
        slot: "KeySlot",
        reason: str,
        error: Optional[Exception] = None,
    ) -> None:
        # reason is "missing" on first runs, "unreadable" for a broken source slot
        if error is not None:
            self.log.warning("Source slot of %s unreadable: %s", slot, error)
        self.log.info("Generated filler key for %s (%s source slot)", slot, reason)

    def slot_generated(self, slot: "KeySlot") -> None:
        self.log.debug("Generated new encryption key %s", slot)

    def slot_failed(self, slot: "KeySlot", error: Exception) -> None:
        self.log.error("Rotation of %s failed: %s", slot, error)

    def temporaries_purged(self, paths: "list[Path]") -> None:
        self.log.warning(
            "Removed %d temporary key file(s) of an interrupted cycle: %s",
            len(paths), ", ".join(p.name for p in paths),
        )

    def purge_failed(self, error: Exception) -> None:
        self.log.error("Cannot remove temporary key file: %s", error)

    def cycle_skipped(self, reason: str) -> None:
        self.log.warning("Rotation skipped (%s), current keys left in place", reason)

    def cycle_finished(self, report: "RotationReport") -> None:
        if report.skipped:
            return
        if report.failed:
            self.log.warning(
                "Rotation finished with %d failed slot(s): %s",
                len(report.failed),
                ", ".join(f"({s}, {g})" for s, g in report.failed),
            )
        else:
            self.log.info(
                "Rotation finished: %d aged, %d filled, %d generated",
                len(report.aged), len(report.filled), len(report.generated),
            )


class JSONFormatter(logging.Formatter):
    """One JSON object per record, UTC timestamps."""

    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return orjson.dumps(entry).decode("utf-8")


def configure_logging(
    verbose: bool = False,
    silent: bool = False,
    json: bool = False,
) -> logging.Logger:
    """Attach a stderr handler to the ``ticket_keys`` logger.

    ``silent`` wins over ``verbose``: only errors are emitted.
    """
    root = logging.getLogger("ticket_keys")
    if silent:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    if json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    root.addHandler(handler)
    return root
