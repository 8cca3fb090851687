"""
Rotation Configuration — Validated, immutable settings for a rotation cycle.

Reads settings from environment variables in the format:
    TICKET_KEYS_SERVERS = <comma separated server names>
    TICKET_KEYS_GENERATIONS = <integer>
    TICKET_KEYS_PATH = <storage root on volatile storage>

The configuration is loaded once at process start and passed into the
rotator; nothing in the engine reads module-level state.

Security Note:
    Never log key material. Only log server names, generations and paths.
"""
import os
import re
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..conf import (
    BLOCKING_RANDOM_DEVICES,
    DEFAULT_CRON_PATH,
    DEFAULT_FILESYSTEMS_PATH,
    DEFAULT_FSTAB_PATH,
    DEFAULT_GENERATIONS,
    DEFAULT_INIT_PATH,
    DEFAULT_KEY_LENGTH,
    DEFAULT_KEY_PATH,
    DEFAULT_MOUNTS_PATH,
    DEFAULT_RANDOM_DEVICE,
    DEFAULT_RELOAD_SCHEDULE,
    DEFAULT_ROTATION_SCHEDULE,
    DEFAULT_SERVER_BINARY,
    DEFAULT_SERVER_INIT_PATH,
    DEFAULT_SERVER_MIN_VERSION,
    ENV_PREFIX,
    FSTAB_MARKER,
    LOCK_FILE_NAME,
    SUPPORTED_KEY_LENGTHS,
)
from ..exceptions import ConfigurationError
from .slots import KeySlot, ring

logger = logging.getLogger("ticket_keys.rotation")

_SERVER_NAME = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9._-]*$")
_VERSION = re.compile(r"^\d+(\.\d+)*$")

# Maps field name -> environment variable suffix.
_ENV_FIELDS = {
    "servers": "SERVERS",
    "generations": "GENERATIONS",
    "key_length": "LENGTH",
    "storage_root": "PATH",
    "rotation_schedule": "ROTATION",
    "reload_schedule": "RELOAD",
    "server_binary": "SERVER_BINARY",
    "server_min_version": "SERVER_MIN_VERSION",
    "random_device": "RANDOM_DEVICE",
    "lock_path": "LOCK_PATH",
}


def _read_env(fields: dict[str, str], environ=None) -> dict[str, str]:
    environ = os.environ if environ is None else environ
    values = {}
    for field, suffix in fields.items():
        raw = environ.get(f"{ENV_PREFIX}{suffix}")
        if raw is not None and raw.strip() != "":
            values[field] = raw.strip()
    return values


def _format_errors(err: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in e['loc']) or 'config'}: {e['msg']}"
        for e in err.errors()
    )


class RotationConfig(BaseModel):
    """Validated rotation configuration."""

    servers: tuple[str, ...]
    generations: int = Field(default=DEFAULT_GENERATIONS, ge=1, le=32)
    key_length: int = Field(default=DEFAULT_KEY_LENGTH)
    storage_root: Path = Field(default=Path(DEFAULT_KEY_PATH))
    rotation_schedule: str = Field(default=DEFAULT_ROTATION_SCHEDULE)
    reload_schedule: str = Field(default=DEFAULT_RELOAD_SCHEDULE)
    server_binary: str = Field(default=DEFAULT_SERVER_BINARY)
    server_min_version: str = Field(default=DEFAULT_SERVER_MIN_VERSION)
    random_device: Path = Field(default=Path(DEFAULT_RANDOM_DEVICE))
    lock_path: Optional[Path] = None

    model_config = {"frozen": True}

    @field_validator("servers", mode="before")
    @classmethod
    def split_servers(cls, v: Any) -> Any:
        """Accept a comma separated string as well as a sequence."""
        if isinstance(v, str):
            return tuple(s.strip() for s in v.split(",") if s.strip())
        return v

    @field_validator("servers")
    @classmethod
    def validate_servers(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Server names become file name components, keep them safe and unique."""
        if not v:
            raise ValueError("at least one server is required")
        for name in v:
            if not _SERVER_NAME.match(name) or ".." in name:
                raise ValueError(f"Invalid server name: {name!r}")
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate server names in {list(v)}")
        return v

    @field_validator("key_length")
    @classmethod
    def validate_key_length(cls, v: int) -> int:
        if v not in SUPPORTED_KEY_LENGTHS:
            raise ValueError(
                f"Unsupported key length {v}, expected one of {SUPPORTED_KEY_LENGTHS}"
            )
        return v

    @field_validator("rotation_schedule", "reload_schedule")
    @classmethod
    def validate_schedule(cls, v: str) -> str:
        """Schedules are five-field cron expressions."""
        v = " ".join(v.split())
        if len(v.split(" ")) != 5:
            raise ValueError(f"Expected a five-field cron expression, got {v!r}")
        return v

    @field_validator("server_min_version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        if not _VERSION.match(v):
            raise ValueError(f"Invalid version: {v!r}")
        return v

    @field_validator("random_device")
    @classmethod
    def validate_random_device(cls, v: Path) -> Path:
        """Blocking devices may stall key generation at service start."""
        if str(v) in BLOCKING_RANDOM_DEVICES:
            raise ValueError(f"{v} blocks, use a non-blocking random device")
        return v

    @model_validator(mode="after")
    def validate_schedules_differ(self) -> "RotationConfig":
        """Rotation and reload must not fire at the same time."""
        if self.rotation_schedule == self.reload_schedule:
            raise ValueError(
                "rotation_schedule and reload_schedule must differ, "
                "the reload has to observe a completed rotation"
            )
        return self

    @property
    def effective_lock_path(self) -> Path:
        return self.lock_path or self.storage_root / LOCK_FILE_NAME

    def slots(self, server: str) -> list[KeySlot]:
        """Return the ring of ``server`` ordered from generation 1 to N."""
        return ring(server, self.generations)

    def all_slots(self) -> list[KeySlot]:
        return [slot for server in self.servers for slot in self.slots(server)]

    def slot_path(self, slot: KeySlot) -> Path:
        return slot.path(self.storage_root)

    @classmethod
    def build(cls, **values: Any) -> "RotationConfig":
        """Create a RotationConfig, raising ConfigurationError when invalid."""
        try:
            return cls(**values)
        except ValidationError as err:
            raise ConfigurationError(
                f"Invalid rotation configuration: {_format_errors(err)}"
            ) from err

    @classmethod
    def from_env(cls, environ=None) -> "RotationConfig":
        """Create RotationConfig by loading values from environment.

        Returns:
            Populated RotationConfig instance.

        Raises:
            ConfigurationError: If TICKET_KEYS_SERVERS is missing or any
                value fails validation.
        """
        values = _read_env(_ENV_FIELDS, environ)
        if "servers" not in values:
            raise ConfigurationError(
                f"{ENV_PREFIX}SERVERS environment variable is not set"
            )
        config = cls.build(**values)
        logger.debug(
            "Loaded configuration: %d server(s), %d generation(s), root=%s",
            len(config.servers), config.generations, config.storage_root,
        )
        return config


class SystemPaths(BaseModel):
    """Host paths of the install artifacts, used by checks and teardown."""

    mount_point: Path = Field(default=Path(DEFAULT_KEY_PATH))
    cron_path: Path = Field(default=Path(DEFAULT_CRON_PATH))
    init_path: Path = Field(default=Path(DEFAULT_INIT_PATH))
    server_init_path: Path = Field(default=Path(DEFAULT_SERVER_INIT_PATH))
    fstab_path: Path = Field(default=Path(DEFAULT_FSTAB_PATH))
    mounts_path: Path = Field(default=Path(DEFAULT_MOUNTS_PATH))
    filesystems_path: Path = Field(default=Path(DEFAULT_FILESYSTEMS_PATH))
    fstab_marker: str = Field(default=FSTAB_MARKER)

    model_config = {"frozen": True}

    @property
    def init_name(self) -> str:
        return self.init_path.name

    @classmethod
    def from_env(cls, environ=None) -> "SystemPaths":
        """Build from ``TICKET_KEYS_*`` variables; the mount point follows TICKET_KEYS_PATH."""
        values = _read_env(
            {
                "mount_point": "PATH",
                "cron_path": "CRON_PATH",
                "init_path": "INIT_PATH",
                "server_init_path": "SERVER_INIT_PATH",
                "fstab_path": "FSTAB_PATH",
            },
            environ,
        )
        try:
            return cls(**values)
        except ValidationError as err:
            raise ConfigurationError(
                f"Invalid system paths: {_format_errors(err)}"
            ) from err
