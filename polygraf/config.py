"""Configuration settings for the Polygraf server."""

import os

from common.constants import CHUNK_SIZE_CHARS, DEFAULT_SERVER_PORT, MAX_BATCH_WRITES


DATABASE_PATH = os.environ.get("POLYGRAF_DATABASE_PATH", "./data/polygraf.db")

SERVER_HOST = os.environ.get("POLYGRAF_HOST", "0.0.0.0")

SERVER_PORT = int(os.environ.get("POLYGRAF_PORT", str(DEFAULT_SERVER_PORT)))

BUSY_TIMEOUT_SECONDS = float(os.environ.get("POLYGRAF_BUSY_TIMEOUT_SECONDS", "5"))

OBJECT_CHUNK_SIZE = int(os.environ.get("POLYGRAF_CHUNK_SIZE_CHARS", str(CHUNK_SIZE_CHARS)))

BATCH_WRITE_LIMIT = int(os.environ.get("POLYGRAF_MAX_BATCH_WRITES", str(MAX_BATCH_WRITES)))

# Empty string disables guest access.
GUEST_ACCESS_TOKEN = os.environ.get("POLYGRAF_GUEST_TOKEN", "").strip().upper()

BOOTSTRAP_ADMIN_TOKEN = os.environ.get("POLYGRAF_BOOTSTRAP_ADMIN_TOKEN", "").strip()

DEFAULT_LIST_LIMIT = 20

MAX_LIST_LIMIT = 100
