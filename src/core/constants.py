"""Core constants used across volimport modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

SUPPORTED_SCHEMES = ("file", "http", "https", "s3")
STREAMABLE_SCHEMES = ("http", "https")
MAX_HEADER_SIZE = 512
DEFAULT_MAX_NESTING_DEPTH = 4
DEFAULT_COPY_CHUNK_SIZE = 1024 * 1024
TEMP_NAME_RANDOM_BYTES = 8
DEFAULT_DESTINATION = Path("/data/disk.img")
DEFAULT_VERBOSITY = 1
DEBUG_VERBOSITY = 3
DEFAULT_HTTP_TIMEOUT_SECONDS = 60.0
DEFAULT_QEMU_IMG = "qemu-img"
DEFAULT_CONVERT_TIMEOUT_SECONDS = 3600.0
SOURCE_IMAGE_FORMAT = "qcow2"
TARGET_IMAGE_FORMAT = "raw"
DEFAULT_CLONER_SOCKET_ROOT = Path("/tmp/clone/socket")
DEFAULT_CLONER_IMAGE_PATH = Path("/tmp/clone/image")
CLONER_SOCKET_FILE_NAME = "clone.sock"
CLONER_DISK_FILE_NAME = "disk.img"
DEFAULT_CLONE_WAIT_SECONDS = 300.0
CLONE_POLL_INTERVAL_SECONDS = 0.5
S3_AUTH_ERROR_CODES = (
    "AccessDenied",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "403",
    "401",
)
