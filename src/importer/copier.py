"""Copy decoded image bytes to their destination.

Three paths exist: a direct copy through a randomly named temp file
that is renamed into place, a convert path through a private scratch
file, and a streaming convert that lets the converter fetch the source.
"""

from __future__ import annotations

import os
from pathlib import Path
import secrets
import stat
from typing import BinaryIO, Protocol

from core.constants import DEFAULT_COPY_CHUNK_SIZE, TARGET_IMAGE_FORMAT, TEMP_NAME_RANDOM_BYTES
from core.errors import ImageIOError
from core.logging_config import get_logger
from image.conversion import ConversionOperations

_LOGGER = get_logger(__name__)


class ByteReader(Protocol):
    """Forward-only source of decoded bytes."""

    def read(self, size: int = -1) -> bytes: ...


def random_temp_name(path: Path) -> Path:
    """Append a cryptographically random hex suffix to ``path``."""
    return path.with_name(path.name + secrets.token_hex(TEMP_NAME_RANDOM_BYTES))


def copy_direct(reader: ByteReader, destination: Path) -> int:
    """Copy a stream to ``destination`` without exposing partial content.

    Regular-file destinations are written to a random sibling name and
    renamed into place once complete. Block devices are written in place.

    Returns:
        Number of bytes written.

    Raises:
        ImageIOError: If the destination cannot be written.
    """
    if _is_block_device(destination):
        with _open_for_write(destination, "r+b") as handle:
            written = _copy_stream(reader, handle, destination)
        _LOGGER.info("copy_completed", destination=str(destination), bytes_written=written)
        return written
    temp_path = random_temp_name(destination)
    try:
        with _open_for_write(temp_path, "xb") as handle:
            written = _copy_stream(reader, handle, temp_path)
        os.replace(temp_path, destination)
    except OSError as error:
        _remove_quietly(temp_path)
        raise ImageIOError(
            f"Failed to finalize {destination}: {error}. Check destination permissions."
        ) from error
    except BaseException:
        _remove_quietly(temp_path)
        raise
    _LOGGER.info("copy_completed", destination=str(destination), bytes_written=written)
    return written


def copy_with_conversion(
    reader: ByteReader,
    destination: Path,
    operations: ConversionOperations,
    scratch_dir: Path | None = None,
) -> int:
    """Write decoded bytes to a scratch file and convert it to ``destination``.

    The scratch file is removed whether conversion succeeds or fails.

    Returns:
        Number of decoded bytes written to the scratch file.

    Raises:
        ImageIOError: If the scratch file cannot be written.
        ConvertError: If conversion fails.
        ValidateError: If the converted destination fails validation.
    """
    scratch_root = scratch_dir or destination.parent
    scratch_path = random_temp_name(scratch_root / f".{destination.name}.scratch")
    try:
        with _open_for_write(scratch_path, "xb") as handle:
            written = _copy_stream(reader, handle, scratch_path)
        _LOGGER.info("scratch_written", scratch=str(scratch_path), bytes_written=written)
        operations.convert(scratch_path, destination)
        operations.validate(destination, TARGET_IMAGE_FORMAT)
    finally:
        _remove_quietly(scratch_path)
    _LOGGER.info("convert_completed", destination=str(destination))
    return written


def copy_streaming(
    source_url: str,
    destination: Path,
    operations: ConversionOperations,
) -> None:
    """Convert a remote image directly into ``destination``.

    Raises:
        ConvertError: If conversion fails.
        ValidateError: If the converted destination fails validation.
    """
    operations.convert_stream(source_url, destination)
    operations.validate(destination, TARGET_IMAGE_FORMAT)
    _LOGGER.info("stream_convert_completed", source_url=source_url, destination=str(destination))


def _copy_stream(reader: ByteReader, handle: BinaryIO, target: Path) -> int:
    written = 0
    while True:
        chunk = reader.read(DEFAULT_COPY_CHUNK_SIZE)
        if not chunk:
            break
        try:
            count = handle.write(chunk)
        except OSError as error:
            raise ImageIOError(
                f"Failed to write {target} after {written} bytes: {error}. "
                "Check free space on the destination volume."
            ) from error
        if count != len(chunk):
            raise ImageIOError(
                f"Short write to {target}: wrote {count} of {len(chunk)} bytes."
            )
        written += count
    try:
        handle.flush()
        os.fsync(handle.fileno())
    except OSError as error:
        raise ImageIOError(f"Failed to flush {target}: {error}.") from error
    return written


def _open_for_write(path: Path, mode: str) -> BinaryIO:
    try:
        return open(path, mode)
    except OSError as error:
        raise ImageIOError(
            f"Failed to open {path} for writing: {error.strerror or error}. "
            "Check that the destination directory exists and is writable."
        ) from error


def _is_block_device(path: Path) -> bool:
    try:
        return stat.S_ISBLK(path.stat().st_mode)
    except OSError:
        return False


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as error:
        _LOGGER.warning("temp_remove_failed", path=str(path), error=str(error))
