"""
Key Writer — Atomic creation, copy and read of key files.

A key file is never written in place: content goes to a temporary file in the
same directory which is fsynced and then renamed over the target. A reader
therefore sees either the complete old key or the complete new one.
"""
import os
import tempfile
from contextlib import suppress
from pathlib import Path
from typing import Union

from ..conf import KEY_FILE_MODE, KEY_FILE_SUFFIX
from ..exceptions import AgeingReadError, RandomSourceError, WriteError
from .random_source import RandomSource


PathLike = Union[str, Path]

# matches the mkstemp names used by _atomic_write
_TEMPORARY_PATTERN = f".*{KEY_FILE_SUFFIX}.*.tmp"


def _atomic_write(path: Path, data: bytes) -> None:
    try:
        fd, tmp = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
    except OSError as err:
        raise WriteError(
            f"Cannot create temporary file for {path}: {err}", str(path)
        ) from err
    try:
        with os.fdopen(fd, "wb") as fh:
            os.fchmod(fh.fileno(), KEY_FILE_MODE)
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException as err:
        # interrupted writes must not leave key material behind
        with suppress(OSError):
            os.unlink(tmp)
        if isinstance(err, OSError):
            raise WriteError(f"Cannot write {path}: {err}", str(path)) from err
        raise


def purge_temporaries(storage_root: PathLike) -> list[Path]:
    """Delete temporary key files left behind by an interrupted cycle.

    Must only run while the cycle lock is held, a concurrent writer's
    temporary file would match as well.

    Returns:
        The removed paths.

    Raises:
        WriteError: If a stale file exists but cannot be removed.
    """
    removed = []
    for path in sorted(Path(storage_root).glob(_TEMPORARY_PATTERN)):
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError as err:
            raise WriteError(f"Cannot remove {path}: {err}", str(path)) from err
        removed.append(path)
    return removed


def write_key(path: PathLike, length: int, source: RandomSource) -> None:
    """Write ``length`` fresh random bytes from ``source`` to ``path``.

    Raises:
        WriteError: If the source fails or the file cannot be replaced.
            The previous content of ``path`` is left untouched.
    """
    path = Path(path)
    try:
        data = source.read(length)
    except RandomSourceError as err:
        raise WriteError(f"No key material for {path}: {err}", str(path)) from err
    _atomic_write(path, data)


def copy_key(content: bytes, path: PathLike) -> None:
    """Atomically replace ``path`` with ``content`` read from a younger slot."""
    _atomic_write(Path(path), content)


def read_key(path: PathLike, length: int) -> bytes:
    """Read an existing key file for ageing.

    Raises:
        AgeingReadError: If the file cannot be read or does not hold exactly
            ``length`` bytes; the caller replaces it with filler content.
    """
    path = Path(path)
    try:
        content = path.read_bytes()
    except OSError as err:
        raise AgeingReadError(f"Cannot read {path}: {err}", str(path)) from err
    if len(content) != length:
        raise AgeingReadError(
            f"{path} holds {len(content)} bytes, expected {length}", str(path)
        )
    return content
