"""Session Ticket Keys.

Rotates TLS session ticket keys kept on volatile storage.
"""
from .version import __version__
from .exceptions import (
    TicketKeyError,
    ConfigurationError,
    NoRandomSourceAvailable,
    RandomSourceError,
    WriteError,
    AgeingReadError,
    RotationInProgress,
    TeardownError,
)
from .rotation import Rotator, RotationConfig, RotationReport, KeySlot

__all__ = [
    "__version__",
    "Rotator",
    "RotationConfig",
    "RotationReport",
    "KeySlot",
    "TicketKeyError",
    "ConfigurationError",
    "NoRandomSourceAvailable",
    "RandomSourceError",
    "WriteError",
    "AgeingReadError",
    "RotationInProgress",
    "TeardownError",
]
