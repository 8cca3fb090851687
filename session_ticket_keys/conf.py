"""Default settings, overridable through ``TICKET_KEYS_*`` environment variables."""

# Rotation ring
DEFAULT_GENERATIONS = 3
DEFAULT_KEY_LENGTH = 48
# nginx accepts 48 byte (AES-128) and 80 byte (AES-256) ticket keys.
SUPPORTED_KEY_LENGTHS = (48, 80)
KEY_FILE_SUFFIX = '.key'
KEY_FILE_MODE = 0o600

# Volatile storage
DEFAULT_KEY_PATH = '/mnt/session_ticket_keys'
LOCK_FILE_NAME = '.rotation.lock'

# Triggers, reload must fire after rotation.
DEFAULT_ROTATION_SCHEDULE = '0 0,12 * * *'
DEFAULT_RELOAD_SCHEDULE = '30 0,12 * * *'

# Dependent server
DEFAULT_SERVER_BINARY = 'nginx'
DEFAULT_SERVER_MIN_VERSION = '1.5.7'

# Random sources
PREFERRED_RANDOM_UTILITY = 'openssl'
DEFAULT_RANDOM_DEVICE = '/dev/urandom'
BLOCKING_RANDOM_DEVICES = frozenset({'/dev/random'})

# Install artifacts, removed on uninstall.
DEFAULT_CRON_PATH = '/etc/cron.d/session_ticket_key_rotation'
DEFAULT_INIT_PATH = '/etc/init.d/session_ticket_keys'
DEFAULT_SERVER_INIT_PATH = '/etc/init.d/nginx'
DEFAULT_FSTAB_PATH = '/etc/fstab'
DEFAULT_MOUNTS_PATH = '/proc/mounts'
DEFAULT_FILESYSTEMS_PATH = '/proc/filesystems'
FSTAB_MARKER = '# Volatile TLS session ticket key file system.'

ENV_PREFIX = 'TICKET_KEYS_'
