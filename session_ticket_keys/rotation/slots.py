"""Key slot identifiers.

A slot is addressed by ``(server, generation)``; its file lives at
``{storage_root}/{server}.{generation}.key``.
"""
from dataclasses import dataclass
from pathlib import Path

from ..conf import KEY_FILE_SUFFIX


@dataclass(frozen=True, order=True)
class KeySlot:
    """One key file of a server's ring."""

    server: str
    generation: int

    @property
    def filename(self) -> str:
        return f"{self.server}.{self.generation}{KEY_FILE_SUFFIX}"

    def path(self, storage_root: Path) -> Path:
        """Return the file path of this slot below ``storage_root``."""
        return Path(storage_root) / self.filename

    def older(self) -> "KeySlot":
        """Return the slot this slot's content ages into."""
        return KeySlot(self.server, self.generation + 1)

    def __str__(self) -> str:
        return f"{self.server}#{self.generation}"


def ring(server: str, generations: int) -> list[KeySlot]:
    """All slots of ``server`` ordered from generation 1 to ``generations``."""
    return [KeySlot(server, gen) for gen in range(1, generations + 1)]
