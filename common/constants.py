"""Project-wide constants shared by the relay and its clients."""

MIB: int = 1024 * 1024

DEFAULT_CHUNK_SIZE: int = 2 * MIB  # 2 MiB per chunk
DEFAULT_SESSION_QUOTA: int = 50 * MIB  # 50 MiB stored per session
DEFAULT_STORAGE_ROOT: str = "/tmp/chunkrelay"

DEFAULT_RELAY_HOST: str = "0.0.0.0"
DEFAULT_RELAY_PORT: int = 8080

SESSION_ID_BYTES: int = 16
API_KEY_PREFIX: str = "lft_"

REASON_INVALID_SESSION: str = "invalid_session"
REASON_TMP_FULL: str = "tmp_full"
REASON_DISK_FULL: str = "disk_full"

STREAM_PIECE_SIZE: int = 64 * 1024

MAX_INDEX_DIGITS: int = 18  # keeps chunk file names well under NAME_MAX
