"""Tests for host checks."""
import logging
import subprocess

import pytest

from session_ticket_keys.checks import (
    check_filesystem,
    check_server_version,
    check_time_sync,
    run_checks,
    server_directives,
)
from session_ticket_keys.exceptions import ConfigurationError
from session_ticket_keys.rotation import RotationConfig, SystemPaths


def nginx(version):
    def run(cmd, **kwargs):
        return subprocess.CompletedProcess(
            cmd, 0, stdout="", stderr=f"nginx version: nginx/{version}\n"
        )
    return run


@pytest.fixture
def filesystems(tmp_path):
    def _write(*names):
        path = tmp_path / "filesystems"
        path.write_text("".join(f"nodev\t{name}\n" for name in names))
        return path
    return _write


class TestFilesystem:

    def test_ramfs_preferred(self, filesystems):
        assert check_filesystem(filesystems("sysfs", "tmpfs", "ramfs")) == "ramfs"

    def test_tmpfs_warns(self, filesystems, caplog):
        """Test tmpfs is accepted with a swap warning."""
        with caplog.at_level(logging.WARNING, logger="ticket_keys.checks"):
            assert check_filesystem(filesystems("sysfs", "tmpfs")) == "tmpfs"
        assert "swap" in caplog.text

    def test_unsupported(self, filesystems):
        with pytest.raises(ConfigurationError):
            check_filesystem(filesystems("sysfs", "proc"))


class TestServerVersion:

    def test_recent_version(self):
        assert check_server_version("nginx", "1.5.7", runner=nginx("1.25.3")) == "1.25.3"

    def test_numeric_comparison(self):
        """Test 1.10 sorts after 1.5 instead of comparing strings."""
        assert check_server_version("nginx", "1.5.7", runner=nginx("1.10.0")) == "1.10.0"

    def test_too_old(self):
        with pytest.raises(ConfigurationError, match="at least 1.5.7"):
            check_server_version("nginx", "1.5.7", runner=nginx("1.4.6"))

    def test_unparsable(self):
        def run(cmd, **kwargs):
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="nope")
        with pytest.raises(ConfigurationError):
            check_server_version("nginx", "1.5.7", runner=run)

    def test_missing_binary(self):
        def run(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])
        with pytest.raises(ConfigurationError):
            check_server_version("nginx", "1.5.7", runner=run)


class TestTimeSync:

    def test_daemon_found(self):
        assert check_time_sync(lambda name: "/usr/sbin/chronyd" if name == "chronyd" else None) == "chronyd"

    def test_nothing_found(self, caplog):
        with caplog.at_level(logging.WARNING, logger="ticket_keys.checks"):
            assert check_time_sync(lambda name: None) is None
        assert "ntp daemon" in caplog.text


def test_server_directives():
    """Test one line per generation, current key first."""
    config = RotationConfig(servers=["web1", "web2"], storage_root="/keys", generations=2)
    assert server_directives(config) == {
        "web1": [
            "ssl_session_ticket_key /keys/web1.1.key;",
            "ssl_session_ticket_key /keys/web1.2.key;",
        ],
        "web2": [
            "ssl_session_ticket_key /keys/web2.1.key;",
            "ssl_session_ticket_key /keys/web2.2.key;",
        ],
    }


def test_run_checks_collects_results(filesystems):
    """Test failures are collected and time sync stays advisory."""
    config = RotationConfig(servers=["web1"])
    paths = SystemPaths(filesystems_path=filesystems("proc"))
    results = {
        r.name: r
        for r in run_checks(config, paths, runner=nginx("1.25.3"), which=lambda n: None)
    }
    assert results["filesystem"].ok is False
    assert results["server_version"].ok is True
    assert results["time_sync"].ok is False
    assert results["time_sync"].advisory is True
