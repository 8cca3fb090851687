"""Shared fixtures for session ticket key tests."""
import pytest

from session_ticket_keys.exceptions import RandomSourceError
from session_ticket_keys.rotation import RandomSource, RotationConfig, select_source


class CountingSource(RandomSource):
    """Deterministic source, every read returns a distinct pattern."""

    name = "counting"

    def __init__(self):
        self.reads = []

    def read(self, length: int) -> bytes:
        n = len(self.reads) + 1
        data = (n.to_bytes(4, "big") * (length // 4 + 1))[:length]
        self.reads.append(data)
        return data


class BrokenSource(RandomSource):
    """Source that always fails."""

    name = "broken"

    def read(self, length: int) -> bytes:
        raise RandomSourceError("entropy pool on fire")


@pytest.fixture(autouse=True)
def reset_source_cache():
    select_source.cache_clear()
    yield
    select_source.cache_clear()


@pytest.fixture
def storage_root(tmp_path):
    root = tmp_path / "session_ticket_keys"
    root.mkdir()
    return root


@pytest.fixture
def source():
    return CountingSource()


@pytest.fixture
def make_config(storage_root):
    def _make(servers=("web1",), **values):
        return RotationConfig(servers=servers, storage_root=storage_root, **values)
    return _make


@pytest.fixture
def broken_source():
    return BrokenSource()
