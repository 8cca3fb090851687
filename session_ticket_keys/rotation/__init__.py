"""Rotation — Generational ring of session ticket keys on volatile storage.

Security Note (Threat Model):
    Keys live only on ramfs/tmpfs. Forward secrecy comes from the storage
    being cleared on unmount or reboot, not from deleting files; the engine
    only ever overwrites key files in place. With tmpfs and an active swap
    the keys might still reach persistent storage.
"""

from .config import RotationConfig, SystemPaths
from .random_source import DeviceSource, OpenSSLSource, RandomSource, select_source
from .rotator import RotationReport, Rotator, cycle_lock
from .slots import KeySlot, ring
from .writer import copy_key, purge_temporaries, read_key, write_key

__all__ = [
    "RotationConfig",
    "SystemPaths",
    "RandomSource",
    "OpenSSLSource",
    "DeviceSource",
    "select_source",
    "Rotator",
    "RotationReport",
    "cycle_lock",
    "KeySlot",
    "ring",
    "write_key",
    "copy_key",
    "read_key",
    "purge_temporaries",
]
