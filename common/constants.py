"""Project-wide constants (chunk sizing, batch limits, token format)."""

CHUNK_SIZE_CHARS: int = 800 * 1024  # ~800 KiB of encoded text per document

MAX_BATCH_WRITES: int = 500

ACCESS_TOKEN_PREFIX: str = "KEY"
ACCESS_TOKEN_ALPHABET: str = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"  # no 0/O, 1/I/L
ACCESS_TOKEN_GROUPS: int = 3
ACCESS_TOKEN_GROUP_LENGTH: int = 4

SESSION_KEY_PREFIX: str = "pgs_"

ROLE_USER: str = "user"
ROLE_ADMIN: str = "admin"
ROLE_GUEST: str = "guest"
ROLES: tuple[str, ...] = (ROLE_USER, ROLE_ADMIN, ROLE_GUEST)

DEFAULT_SERVER_PORT: int = 8000
