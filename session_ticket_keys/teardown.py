"""
Teardown — Removes everything an install left on the host.

Every step treats an already-removed artifact as success. The fstab entry is
removed before the volatile filesystem is unmounted so a concurrent boot
cannot mount it again.
"""
import shutil
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .exceptions import TeardownError
from .rotation.config import SystemPaths

logger = logging.getLogger("ticket_keys.teardown")

REMOVED = "removed"
ABSENT = "absent"


@dataclass(frozen=True)
class TeardownStep:
    name: str
    status: str
    detail: str


def _rewrite(path: Path, content: str) -> None:
    """Replace ``path`` keeping a ``.bak`` copy of the previous content."""
    shutil.copy2(path, path.with_name(path.name + ".bak"))
    path.write_text(content)


class Teardown:
    """Uninstalls rotation from a host.

    Args:
        paths: Locations of the install artifacts.
        runner: ``subprocess.run`` compatible callable for external commands.
        which: ``shutil.which`` compatible lookup for optional tools.
    """

    def __init__(
        self,
        paths: SystemPaths,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        which: Callable[[str], Optional[str]] = shutil.which,
    ) -> None:
        self.paths = paths
        self.runner = runner
        self.which = which

    def run(self) -> list[TeardownStep]:
        """Run all steps in order.

        Raises:
            TeardownError: On the first step that fails; earlier steps stay done.
        """
        steps = [
            self.remove_startup_dependency,
            self.remove_startup_links,
            self.remove_init_script,
            self.remove_cron_entry,
            self.remove_fstab_entry,
            self.unmount,
            self.remove_mount_point,
        ]
        results = []
        for step in steps:
            result = step()
            logger.info("%s: %s (%s)", result.name, result.status, result.detail)
            results.append(result)
        return results

    def remove_startup_dependency(self) -> TeardownStep:
        """Drop ``$<init name>`` from the server init script's dependencies."""
        name = "startup_dependency"
        path = self.paths.server_init_path
        token = f" ${self.paths.init_name}"
        try:
            content = path.read_text()
        except FileNotFoundError:
            return TeardownStep(name, ABSENT, f"{path} does not exist")
        except OSError as err:
            raise TeardownError(name, f"cannot read {path}: {err}") from err
        if token not in content:
            return TeardownStep(name, ABSENT, f"no dependency in {path}")
        try:
            _rewrite(path, content.replace(token, ""))
        except OSError as err:
            raise TeardownError(name, f"cannot rewrite {path}: {err}") from err
        return TeardownStep(name, REMOVED, f"removed dependency in {path}")

    def remove_startup_links(self) -> TeardownStep:
        name = "startup_links"
        tool = self.which("update-rc.d")
        if not tool:
            return TeardownStep(name, ABSENT, "update-rc.d not available")
        result = self.runner(
            [tool, "-f", self.paths.init_name, "remove"],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            # no links registered
            return TeardownStep(name, ABSENT, f"no links for {self.paths.init_name}")
        return TeardownStep(name, REMOVED, f"removed links for {self.paths.init_name}")

    def remove_init_script(self) -> TeardownStep:
        return self._unlink("init_script", self.paths.init_path)

    def remove_cron_entry(self) -> TeardownStep:
        return self._unlink("cron_entry", self.paths.cron_path)

    def remove_fstab_entry(self) -> TeardownStep:
        """Remove the marker comment and the mount line following it."""
        name = "fstab_entry"
        path = self.paths.fstab_path
        try:
            lines = path.read_text().splitlines(keepends=True)
        except FileNotFoundError:
            return TeardownStep(name, ABSENT, f"{path} does not exist")
        except OSError as err:
            raise TeardownError(name, f"cannot read {path}: {err}") from err
        kept = []
        skip = 0
        for line in lines:
            if skip:
                skip -= 1
                continue
            if line.strip() == self.paths.fstab_marker:
                skip = 1
                continue
            kept.append(line)
        if len(kept) == len(lines):
            return TeardownStep(name, ABSENT, f"no entry in {path}")
        try:
            _rewrite(path, "".join(kept))
        except OSError as err:
            raise TeardownError(name, f"cannot rewrite {path}: {err}") from err
        return TeardownStep(name, REMOVED, f"removed entry from {path}")

    def is_mounted(self) -> bool:
        mount_point = str(self.paths.mount_point)
        try:
            text = self.paths.mounts_path.read_text()
        except FileNotFoundError:
            return False
        return any(
            len(fields) > 1 and fields[1] == mount_point
            for fields in (line.split() for line in text.splitlines())
        )

    def unmount(self) -> TeardownStep:
        name = "unmount"
        mount_point = self.paths.mount_point
        if not self.is_mounted():
            return TeardownStep(name, ABSENT, f"{mount_point} already unmounted")
        try:
            result = self.runner(
                ["umount", "-l", str(mount_point)],
                capture_output=True,
                text=True,
            )
        except OSError as err:
            raise TeardownError(name, f"cannot run umount: {err}") from err
        if result.returncode != 0:
            raise TeardownError(
                name, f"umount {mount_point} failed: {(result.stderr or '').strip()}"
            )
        return TeardownStep(name, REMOVED, f"unmounted {mount_point}")

    def remove_mount_point(self) -> TeardownStep:
        name = "mount_point"
        path = self.paths.mount_point
        if not path.is_dir():
            return TeardownStep(name, ABSENT, f"{path} does not exist")
        try:
            path.rmdir()
        except OSError as err:
            raise TeardownError(name, f"cannot remove {path}: {err}") from err
        return TeardownStep(name, REMOVED, f"removed directory {path}")

    def _unlink(self, name: str, path: Path) -> TeardownStep:
        try:
            path.unlink()
        except FileNotFoundError:
            return TeardownStep(name, ABSENT, f"{path} already removed")
        except OSError as err:
            raise TeardownError(name, f"cannot remove {path}: {err}") from err
        return TeardownStep(name, REMOVED, f"removed {path}")
