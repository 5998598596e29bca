"""Runtime configuration model for volimport workers.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_CLONER_IMAGE_PATH,
    DEFAULT_CLONER_SOCKET_ROOT,
    DEFAULT_CONVERT_TIMEOUT_SECONDS,
    DEFAULT_DESTINATION,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_MAX_NESTING_DEPTH,
    DEFAULT_QEMU_IMG,
    DEFAULT_VERBOSITY,
)
from core.errors import VolImportConfigError


@dataclass(frozen=True)
class ImporterConfig:
    """Validated runtime configuration.

    Attributes:
        endpoint: Endpoint URI to import from, if configured.
        access_key: Optional access key id or basic-auth user.
        secret_key: Optional secret key or basic-auth password.
        destination: Destination file or block device path.
        verbosity: Diagnostics verbosity level.
        max_nesting_depth: Maximum number of stacked decode stages.
        http_timeout: Connect and read timeout for HTTP sources, in seconds.
        s3_region: Optional region for S3 clients.
        s3_endpoint_url: Optional S3-compatible service URL.
        qemu_img: Converter binary name or path.
        convert_timeout: Converter subprocess timeout, in seconds.
        scratch_dir: Optional directory for convert-path scratch files.
        cloner_socket_root: Directory holding clone rendezvous sockets.
        cloner_image_path: Mount directory of the cloned volume.
    """

    endpoint: str | None
    access_key: str | None
    secret_key: str | None
    destination: Path
    verbosity: int
    max_nesting_depth: int
    http_timeout: float
    s3_region: str | None
    s3_endpoint_url: str | None
    qemu_img: str
    convert_timeout: float
    scratch_dir: Path | None
    cloner_socket_root: Path
    cloner_image_path: Path

    @classmethod
    def from_env(cls) -> "ImporterConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            VolImportConfigError: If environment values are invalid.
        """
        scratch_dir_value = _optional_env("IMPORTER_SCRATCH_DIR")
        return cls(
            endpoint=_optional_env("IMPORTER_ENDPOINT"),
            access_key=_optional_env("IMPORTER_ACCESS_KEY_ID"),
            secret_key=_optional_env("IMPORTER_SECRET_KEY"),
            destination=Path(os.getenv("IMPORTER_DESTINATION", str(DEFAULT_DESTINATION))),
            verbosity=_parse_int(
                "IMPORTER_VERBOSE", os.getenv("IMPORTER_VERBOSE", str(DEFAULT_VERBOSITY)), 0
            ),
            max_nesting_depth=_parse_int(
                "IMPORTER_MAX_NESTING_DEPTH",
                os.getenv("IMPORTER_MAX_NESTING_DEPTH", str(DEFAULT_MAX_NESTING_DEPTH)),
                1,
            ),
            http_timeout=_parse_seconds(
                "IMPORTER_HTTP_TIMEOUT",
                os.getenv("IMPORTER_HTTP_TIMEOUT", str(DEFAULT_HTTP_TIMEOUT_SECONDS)),
            ),
            s3_region=_optional_env("IMPORTER_S3_REGION"),
            s3_endpoint_url=_optional_env("IMPORTER_S3_ENDPOINT_URL"),
            qemu_img=os.getenv("IMPORTER_QEMU_IMG", DEFAULT_QEMU_IMG),
            convert_timeout=_parse_seconds(
                "IMPORTER_CONVERT_TIMEOUT",
                os.getenv("IMPORTER_CONVERT_TIMEOUT", str(DEFAULT_CONVERT_TIMEOUT_SECONDS)),
            ),
            scratch_dir=Path(scratch_dir_value) if scratch_dir_value else None,
            cloner_socket_root=Path(
                os.getenv("CLONER_SOCKET_ROOT", str(DEFAULT_CLONER_SOCKET_ROOT))
            ),
            cloner_image_path=Path(
                os.getenv("CLONER_IMAGE_PATH", str(DEFAULT_CLONER_IMAGE_PATH))
            ),
        )


def _optional_env(name: str) -> str | None:
    """Return an environment value, treating blank strings as unset."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value


def _parse_int(name: str, raw_value: str, minimum: int) -> int:
    """Parse a bounded integer environment value.

    Args:
        name: Environment variable name for error context.
        raw_value: Raw string from environment.
        minimum: Smallest accepted value.

    Returns:
        Parsed integer.

    Raises:
        VolImportConfigError: If value is not an integer or is below minimum.
    """
    try:
        value = int(raw_value)
    except ValueError as error:
        raise VolImportConfigError(
            f"Invalid {name} value: expected integer, got '{raw_value}'. "
            f"Set {name} to a numeric value."
        ) from error
    if value < minimum:
        raise VolImportConfigError(
            f"Invalid {name} value: expected an integer >= {minimum}, got {value}."
        )
    return value


def _parse_seconds(name: str, raw_value: str) -> float:
    """Parse a positive duration in seconds.

    Raises:
        VolImportConfigError: If value is not a positive number.
    """
    try:
        value = float(raw_value)
    except ValueError as error:
        raise VolImportConfigError(
            f"Invalid {name} value: expected seconds, got '{raw_value}'. "
            f"Set {name} to a positive number."
        ) from error
    if value <= 0:
        raise VolImportConfigError(
            f"Invalid {name} value: expected a positive number, got {raw_value}."
        )
    return value
