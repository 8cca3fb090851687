"""
Host checks — pre-flight validation for a host running ticket key rotation.

None of these touch key files; they tell an operator whether the host can
keep keys on volatile storage and whether the server understands key files.
"""
import os
import re
import shutil
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from .conf import DEFAULT_FILESYSTEMS_PATH
from .exceptions import ConfigurationError
from .rotation.config import RotationConfig, SystemPaths

logger = logging.getLogger("ticket_keys.checks")

_VERSION_OUTPUT = re.compile(r"/(\d+(?:\.\d+)*)")

# Preferred first; ntpdate is a one-shot tool and only a last resort.
TIME_DAEMONS = ("ntpd", "openntpd", "chronyd", "ntpdate")


@dataclass(frozen=True)
class CheckResult:
    name: str
    ok: bool
    detail: str
    # advisory failures are reported but do not fail the run
    advisory: bool = False


def check_filesystem(path: Union[str, Path] = DEFAULT_FILESYSTEMS_PATH) -> str:
    """Return the volatile filesystem to use, ``ramfs`` or ``tmpfs``.

    Raises:
        ConfigurationError: If the kernel supports neither.
    """
    try:
        text = Path(path).read_text()
    except OSError as err:
        raise ConfigurationError(f"Cannot read {path}: {err}") from err
    supported = {line.split()[-1] for line in text.splitlines() if line.strip()}
    if "ramfs" in supported:
        return "ramfs"
    if "tmpfs" in supported:
        logger.warning(
            "Using tmpfs, keys might hit persistent storage if the host has swap"
        )
        return "tmpfs"
    raise ConfigurationError("No support for ramfs nor tmpfs on this system")


def parse_version(text: str) -> tuple[int, ...]:
    """``'1.5.7'`` -> ``(1, 5, 7)``."""
    return tuple(int(part) for part in text.split("."))


def check_server_version(
    binary: str,
    minimum: str,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> str:
    """Verify the server can load ticket keys from files.

    nginx prints ``nginx version: nginx/1.25.3`` on stderr for ``-v``.

    Returns:
        The installed version string.

    Raises:
        ConfigurationError: If the binary cannot be run, its output cannot be
            parsed, or the version is older than ``minimum``.
    """
    try:
        result = runner([binary, "-v"], capture_output=True, text=True)
    except OSError as err:
        raise ConfigurationError(f"Cannot run {binary}: {err}") from err
    output = f"{result.stdout or ''}{result.stderr or ''}"
    match = _VERSION_OUTPUT.search(output)
    if not match:
        raise ConfigurationError(
            f"Cannot determine {binary} version from {output.strip()!r}"
        )
    installed = match.group(1)
    if parse_version(installed) < parse_version(minimum):
        raise ConfigurationError(
            f"Installed {binary} version is {installed} which does not support "
            f"ticket keys from files, at least {minimum} is required"
        )
    return installed


def check_super_user() -> bool:
    return os.geteuid() == 0


def check_time_sync(
    which: Callable[[str], Optional[str]] = shutil.which,
) -> Optional[str]:
    """Return the time synchronization tool found on the host, if any.

    Servers sharing keys must agree on when rotation happens.
    """
    for daemon in TIME_DAEMONS:
        if which(daemon):
            if daemon == "ntpdate":
                logger.warning("Found ntpdate (deprecated), prefer an ntp daemon")
            return daemon
    logger.warning(
        "Consider installing an ntp daemon so all servers rotate in sync"
    )
    return None


def server_directives(config: RotationConfig) -> dict[str, list[str]]:
    """Configuration lines the server needs, per server, generation 1 first."""
    return {
        server: [
            f"ssl_session_ticket_key {config.slot_path(slot)};"
            for slot in config.slots(server)
        ]
        for server in config.servers
    }


def run_checks(
    config: RotationConfig,
    paths: SystemPaths,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> list[CheckResult]:
    """Run every host check, collecting failures instead of raising."""
    results = []
    try:
        fs = check_filesystem(paths.filesystems_path)
        results.append(CheckResult("filesystem", True, f"using {fs}"))
    except ConfigurationError as err:
        results.append(CheckResult("filesystem", False, str(err)))

    try:
        version = check_server_version(
            config.server_binary, config.server_min_version, runner=runner
        )
        results.append(
            CheckResult("server_version", True, f"{config.server_binary} {version}")
        )
    except ConfigurationError as err:
        results.append(CheckResult("server_version", False, str(err)))

    if check_super_user():
        results.append(CheckResult("super_user", True, "root"))
    else:
        results.append(
            CheckResult("super_user", False, "must be executed as root (sudo)")
        )

    daemon = check_time_sync(which)
    results.append(
        CheckResult(
            "time_sync",
            daemon is not None,
            daemon or "no ntp daemon found",
            advisory=True,
        )
    )

    for result in results:
        if result.ok:
            logger.debug("[ok] %s: %s", result.name, result.detail)
        elif result.advisory:
            logger.warning("[warn] %s: %s", result.name, result.detail)
        else:
            logger.error("[fail] %s: %s", result.name, result.detail)
    return results
