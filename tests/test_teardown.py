"""Tests for the uninstall teardown."""
import subprocess

import pytest

from session_ticket_keys.exceptions import TeardownError
from session_ticket_keys.rotation import SystemPaths
from session_ticket_keys.teardown import ABSENT, REMOVED, Teardown

MARKER = "# Volatile TLS session ticket key file system."


@pytest.fixture
def paths(tmp_path):
    etc = tmp_path / "etc"
    etc.mkdir()
    return SystemPaths(
        mount_point=tmp_path / "mnt" / "session_ticket_keys",
        cron_path=etc / "session_ticket_key_rotation",
        init_path=etc / "session_ticket_keys",
        server_init_path=etc / "nginx",
        fstab_path=etc / "fstab",
        mounts_path=tmp_path / "mounts",
    )


@pytest.fixture
def installed(paths):
    """Every artifact an install leaves behind."""
    paths.mount_point.mkdir(parents=True)
    paths.server_init_path.write_text(
        "# Required-Start: $remote_fs $syslog $session_ticket_keys\n"
    )
    paths.init_path.write_text("#!/bin/sh\n")
    paths.cron_path.write_text("0 0,12 * * * root session-ticket-keys rotate\n")
    paths.fstab_path.write_text(
        "UUID=abc / ext4 defaults 0 1\n"
        f"{MARKER}\n"
        f"ramfs {paths.mount_point} ramfs defaults,mode=770 0 0\n"
        "UUID=def /home ext4 defaults 0 2\n"
    )
    paths.mounts_path.write_text(
        f"ramfs {paths.mount_point} ramfs rw,relatime,mode=770 0 0\n"
    )
    return paths


class FakeRunner:
    """Records commands; umount clears the fake mount table."""

    def __init__(self, paths, returncode=0):
        self.paths = paths
        self.returncode = returncode
        self.calls = []
        self.fstab_at_umount = None

    def __call__(self, cmd, **kwargs):
        self.calls.append(cmd)
        if cmd[0] == "umount":
            self.fstab_at_umount = self.paths.fstab_path.read_text()
            if self.returncode == 0:
                self.paths.mounts_path.write_text("")
        return subprocess.CompletedProcess(cmd, self.returncode, stdout="", stderr="busy")


class TestTeardown:

    def test_removes_everything(self, installed):
        """Test every artifact is removed in order."""
        runner = FakeRunner(installed)
        steps = Teardown(installed, runner=runner, which=lambda name: None).run()
        status = {step.name: step.status for step in steps}
        assert status == {
            "startup_dependency": REMOVED,
            "startup_links": ABSENT,
            "init_script": REMOVED,
            "cron_entry": REMOVED,
            "fstab_entry": REMOVED,
            "unmount": REMOVED,
            "mount_point": REMOVED,
        }
        assert installed.server_init_path.read_text() == (
            "# Required-Start: $remote_fs $syslog\n"
        )
        assert installed.fstab_path.read_text() == (
            "UUID=abc / ext4 defaults 0 1\n"
            "UUID=def /home ext4 defaults 0 2\n"
        )
        assert (installed.fstab_path.parent / "fstab.bak").exists()
        assert not installed.init_path.exists()
        assert not installed.cron_path.exists()
        assert not installed.mount_point.exists()
        assert runner.calls == [["umount", "-l", str(installed.mount_point)]]

    def test_fstab_entry_removed_before_unmount(self, installed):
        """Test a concurrent boot cannot re-mount the key filesystem."""
        runner = FakeRunner(installed)
        Teardown(installed, runner=runner, which=lambda name: None).run()
        assert MARKER not in runner.fstab_at_umount

    def test_idempotent(self, installed):
        """Test a second run treats everything as already removed."""
        runner = FakeRunner(installed)
        teardown = Teardown(installed, runner=runner, which=lambda name: None)
        teardown.run()
        steps = teardown.run()
        assert all(step.status == ABSENT for step in steps)
        assert len(runner.calls) == 1

    def test_nothing_installed(self, paths):
        runner = FakeRunner(paths)
        steps = Teardown(paths, runner=runner, which=lambda name: None).run()
        assert all(step.status == ABSENT for step in steps)
        assert runner.calls == []

    def test_startup_links(self, paths):
        """Test update-rc.d is used when present."""
        runner = FakeRunner(paths)
        Teardown(paths, runner=runner, which=lambda name: "/usr/sbin/update-rc.d").run()
        assert runner.calls == [["/usr/sbin/update-rc.d", "-f", "session_ticket_keys", "remove"]]

    def test_unmount_failure(self, installed):
        """Test a failing umount names the step and keeps the mount point."""
        runner = FakeRunner(installed, returncode=32)
        with pytest.raises(TeardownError) as exc:
            Teardown(installed, runner=runner, which=lambda name: None).run()
        assert exc.value.step == "unmount"
        assert installed.mount_point.exists()
