"""
Generation Rotator — Ages every server's key ring by one generation.

Each server owns N key files; generation 1 encrypts new tickets, generations
2..N only decrypt. One cycle, per server:

1. for generation N-1 down to 1, copy slot ``g`` into slot ``g+1``; when slot
   ``g`` is missing or unreadable, write independent random filler into
   slot ``g+1`` instead,
2. write a brand-new key into slot 1.

Walking backwards guarantees no slot is read after it was written in the same
pass. Slot failures are recorded and the cycle continues with the remaining
slots and servers.

Security Note:
    Key content stays in memory only while it is copied between two slots.
    Never log key material.
"""
import os
import fcntl
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

import orjson

from ..diagnostics import Diagnostics
from ..exceptions import (
    AgeingReadError,
    ConfigurationError,
    NoRandomSourceAvailable,
    RotationInProgress,
    WriteError,
)
from .config import RotationConfig
from .random_source import RandomSource, select_source
from .slots import KeySlot
from .writer import copy_key, purge_temporaries, read_key, write_key

logger = logging.getLogger("ticket_keys.rotation")


@dataclass
class RotationReport:
    """Outcome of one rotation cycle."""

    aged: list[KeySlot] = field(default_factory=list)
    filled: list[KeySlot] = field(default_factory=list)
    generated: list[KeySlot] = field(default_factory=list)
    failed: list[tuple[str, int]] = field(default_factory=list)
    purged: list[Path] = field(default_factory=list)
    purge_failed: list[str] = field(default_factory=list)
    skipped: bool = False
    source: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.failed and not self.purge_failed and not self.skipped

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def as_dict(self) -> dict:
        return {
            "ok": self.ok,
            "skipped": self.skipped,
            "source": self.source,
            "aged": [[s.server, s.generation] for s in self.aged],
            "filled": [[s.server, s.generation] for s in self.filled],
            "generated": [[s.server, s.generation] for s in self.generated],
            "failed": [[server, gen] for server, gen in self.failed],
            "purged": [p.name for p in self.purged],
            "purge_failed": list(self.purge_failed),
        }

    def to_json(self) -> bytes:
        return orjson.dumps(self.as_dict())


@contextmanager
def cycle_lock(path: Path) -> Iterator[None]:
    """Hold an exclusive lock on ``path`` for the duration of a cycle.

    Raises:
        RotationInProgress: If another process holds the lock.
        ConfigurationError: If the lock file cannot be opened or locked.
    """
    try:
        fd = os.open(path, os.O_CREAT | os.O_RDWR, 0o600)
    except OSError as err:
        raise ConfigurationError(f"Cannot open lock file {path}: {err}") from err
    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as err:
            raise RotationInProgress(
                f"Another rotation cycle holds {path}"
            ) from err
        except OSError as err:
            raise ConfigurationError(f"Cannot lock {path}: {err}") from err
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)


class Rotator:
    """Runs rotation cycles for an immutable configuration.

    Args:
        config: Validated rotation configuration.
        source: Random source; resolved with :func:`select_source` on the
            first cycle when omitted.
        diagnostics: Receiver of slot and cycle events.
    """

    def __init__(
        self,
        config: RotationConfig,
        source: Optional[RandomSource] = None,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        self.config = config
        self._source = source
        self.diagnostics = diagnostics or Diagnostics()

    def path(self, slot: KeySlot) -> Path:
        return self.config.slot_path(slot)

    def missing_slots(self) -> list[KeySlot]:
        return [s for s in self.config.all_slots() if not self.path(s).exists()]

    def rotate(self) -> RotationReport:
        """Run one rotation cycle across all configured servers.

        Returns:
            The cycle report; ``report.failed`` lists ``(server, generation)``
            pairs that could not be written.

        Raises:
            ConfigurationError: If the storage root is not a directory.
            NoRandomSourceAvailable: If no source exists and at least one
                slot is missing, i.e. the ring was never populated.
            RotationInProgress: If another cycle is running.
        """
        root = self.config.storage_root
        if not root.is_dir():
            raise ConfigurationError(f"Storage root {root} is not a directory")

        with cycle_lock(self.config.effective_lock_path):
            report = RotationReport()
            self._purge(root, report)
            try:
                source = self._resolve_source()
            except NoRandomSourceAvailable:
                if self.missing_slots():
                    raise
                report.skipped = True
                self.diagnostics.cycle_skipped("no random source available")
                self.diagnostics.cycle_finished(report)
                return report

            report.source = source.name
            logger.info(
                "Starting rotation of %d server(s), %d generation(s) (source=%s)",
                len(self.config.servers), self.config.generations, source.name,
            )
            for server in self.config.servers:
                self.rotate_server(server, source, report)
            self.diagnostics.cycle_finished(report)
        return report

    def rotate_server(
        self,
        server: str,
        source: RandomSource,
        report: Optional[RotationReport] = None,
    ) -> RotationReport:
        """Advance the ring of a single server; never raises on slot errors."""
        if report is None:
            report = RotationReport(source=source.name)
        slots = self.config.slots(server)
        # generations N-1 down to 1
        for slot in reversed(slots[:-1]):
            self._age(slot, source, report)
        self._generate(slots[0], source, report)
        return report

    def _purge(self, root: Path, report: RotationReport) -> None:
        try:
            report.purged = purge_temporaries(root)
        except WriteError as err:
            report.purge_failed.append(str(err.path))
            self.diagnostics.purge_failed(err)
            return
        if report.purged:
            self.diagnostics.temporaries_purged(report.purged)

    def _resolve_source(self) -> RandomSource:
        if self._source is None:
            self._source = select_source(self.config.random_device)
        return self._source

    def _age(self, slot: KeySlot, source: RandomSource, report: RotationReport) -> None:
        target = slot.older()
        source_path = self.path(slot)
        if source_path.exists():
            try:
                content = read_key(source_path, self.config.key_length)
            except AgeingReadError as err:
                self._fill(target, "unreadable", source, report, err)
                return
            try:
                copy_key(content, self.path(target))
            except WriteError as err:
                self._fail(target, err, report)
                return
            report.aged.append(target)
            self.diagnostics.slot_aged(slot, target)
        else:
            self._fill(target, "missing", source, report)

    def _fill(
        self,
        slot: KeySlot,
        reason: str,
        source: RandomSource,
        report: RotationReport,
        error: Optional[Exception] = None,
    ) -> None:
        try:
            write_key(self.path(slot), self.config.key_length, source)
        except WriteError as err:
            self._fail(slot, err, report)
            return
        report.filled.append(slot)
        self.diagnostics.slot_filled(slot, reason, error)

    def _generate(self, slot: KeySlot, source: RandomSource, report: RotationReport) -> None:
        try:
            write_key(self.path(slot), self.config.key_length, source)
        except WriteError as err:
            self._fail(slot, err, report)
            return
        report.generated.append(slot)
        self.diagnostics.slot_generated(slot)

    def _fail(self, slot: KeySlot, err: Exception, report: RotationReport) -> None:
        report.failed.append((slot.server, slot.generation))
        self.diagnostics.slot_failed(slot, err)
