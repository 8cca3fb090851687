"""Exceptions raised by the session ticket key engine.

Slot-level errors (:class:`WriteError`, :class:`AgeingReadError`) are caught
and recorded by the rotator; everything else aborts a cycle before any key
file is touched.
"""
from typing import Optional


class TicketKeyError(Exception):
    """Base class for all session ticket key errors."""


class ConfigurationError(TicketKeyError):
    """Invalid or incomplete configuration, the cycle never starts."""


class NoRandomSourceAvailable(TicketKeyError):
    """Neither the preferred utility nor the random device can be used."""


class RandomSourceError(TicketKeyError):
    """A selected random source failed to produce the requested bytes."""


class SlotError(TicketKeyError):
    """An error bound to a single key file."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class WriteError(SlotError):
    """A key file could not be written (disk full, permission denied...)."""


class AgeingReadError(SlotError):
    """An existing key file could not be read back for ageing."""


class RotationInProgress(TicketKeyError):
    """Another rotation cycle holds the lock."""


class TeardownError(TicketKeyError):
    """An uninstall step failed."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"{step}: {message}")
        self.step = step
