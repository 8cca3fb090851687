"""
Random Sources — Strong byte generators for ticket key material.

Two sources are known, in order of preference:
- ``openssl rand <n>`` when the openssl utility is installed
- the non-blocking random device (``/dev/urandom``) otherwise

The blocking device is never used: a stalled key generation at service start
is worse than marginally weaker randomness for a key that lives a few hours.

Security Note:
    Never log the bytes returned by a source.
"""
import os
import shutil
import logging
import subprocess
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from typing import Union

from ..conf import BLOCKING_RANDOM_DEVICES, DEFAULT_RANDOM_DEVICE, PREFERRED_RANDOM_UTILITY
from ..exceptions import ConfigurationError, NoRandomSourceAvailable, RandomSourceError

logger = logging.getLogger("ticket_keys.rotation")

# openssl rand returns immediately, anything slower is a hung process.
_UTILITY_TIMEOUT = 10


class RandomSource(ABC):
    """A cryptographically strong byte generator."""

    name: str = "abstract"

    @abstractmethod
    def read(self, length: int) -> bytes:
        """Return exactly ``length`` random bytes.

        Raises:
            RandomSourceError: If the source fails or returns short output.
        """

    def _check(self, data: bytes, length: int) -> bytes:
        if len(data) != length:
            raise RandomSourceError(
                f"{self.name} returned {len(data)} bytes, expected {length}"
            )
        return data

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class OpenSSLSource(RandomSource):
    """``openssl rand`` wrapper, the preferred source."""

    name = "openssl"

    def __init__(self, executable: str) -> None:
        self.executable = executable

    def read(self, length: int) -> bytes:
        try:
            result = subprocess.run(
                [self.executable, "rand", str(length)],
                capture_output=True,
                check=True,
                timeout=_UTILITY_TIMEOUT,
            )
        except (OSError, subprocess.SubprocessError) as err:
            raise RandomSourceError(f"openssl rand failed: {err}") from err
        return self._check(result.stdout, length)


class DeviceSource(RandomSource):
    """Reads from a non-blocking random device, the fallback source."""

    name = "device"

    def __init__(self, device: Union[str, Path] = DEFAULT_RANDOM_DEVICE) -> None:
        self.device = Path(device)

    def read(self, length: int) -> bytes:
        chunks = []
        remaining = length
        try:
            with open(self.device, "rb", buffering=0) as fh:
                while remaining > 0:
                    chunk = fh.read(remaining)
                    if not chunk:
                        break
                    chunks.append(chunk)
                    remaining -= len(chunk)
        except OSError as err:
            raise RandomSourceError(f"Cannot read {self.device}: {err}") from err
        return self._check(b"".join(chunks), length)

    def __repr__(self) -> str:
        return f"<DeviceSource {self.device}>"


def _device_usable(device: Path) -> bool:
    return device.exists() and os.access(device, os.R_OK)


@lru_cache(maxsize=None)
def select_source(
    device: Union[str, Path] = DEFAULT_RANDOM_DEVICE,
    utility: str = PREFERRED_RANDOM_UTILITY,
) -> RandomSource:
    """Resolve the random source once per process.

    Args:
        device: Non-blocking random device used as fallback.
        utility: Name of the preferred cryptographic utility.

    Returns:
        The preferred utility source when the executable is on PATH,
        otherwise a device source.

    Raises:
        ConfigurationError: If ``device`` is a blocking device.
        NoRandomSourceAvailable: If neither candidate exists.
    """
    device = Path(device)
    if str(device) in BLOCKING_RANDOM_DEVICES:
        raise ConfigurationError(f"{device} blocks, refusing to use it")
    executable = shutil.which(utility)
    if executable:
        logger.debug("Using %s (%s) as random source", utility, executable)
        return OpenSSLSource(executable)
    if _device_usable(device):
        logger.debug("%s not found, falling back to %s", utility, device)
        return DeviceSource(device)
    raise NoRandomSourceAvailable(
        f"Neither {utility} nor {device} is available on this host"
    )
