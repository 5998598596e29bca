"""qemu-img binding for the conversion capability.

Each operation runs qemu-img as a blocking subprocess and keeps its
diagnostic output as error context.
"""

from __future__ import annotations

import json
from pathlib import Path
import subprocess
from urllib.parse import urlsplit

from core.constants import (
    DEFAULT_CONVERT_TIMEOUT_SECONDS,
    DEFAULT_QEMU_IMG,
    SOURCE_IMAGE_FORMAT,
    TARGET_IMAGE_FORMAT,
)
from core.errors import ConvertError, ValidateError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


class QemuImgOperations:
    """Stateless qemu-img runner, safe to share across imports."""

    def __init__(
        self,
        qemu_img: str = DEFAULT_QEMU_IMG,
        timeout: float = DEFAULT_CONVERT_TIMEOUT_SECONDS,
    ) -> None:
        self._qemu_img = qemu_img
        self._timeout = timeout

    def convert(self, source: Path, destination: Path) -> None:
        """Convert a local qcow2 file to a raw destination."""
        self._run_convert(str(source), destination)

    def convert_stream(self, source_url: str, destination: Path) -> None:
        """Convert a remote qcow2 image that qemu-img fetches itself."""
        self._run_convert(build_stream_source(source_url, self._timeout), destination)

    def validate(self, path: Path, expected_format: str) -> None:
        """Check that ``path`` holds a non-empty image of ``expected_format``.

        Raises:
            ValidateError: If qemu-img cannot inspect the image or the
                reported format or size does not match.
        """
        command = [self._qemu_img, "info", "--output=json", str(path)]
        try:
            completed = run_command(command, self._timeout)
        except ConvertError as error:
            raise ValidateError(f"Failed to inspect image {path}: {error}") from error
        try:
            info = json.loads(completed.stdout)
        except json.JSONDecodeError as error:
            raise ValidateError(
                f"qemu-img info returned invalid JSON for {path}: {error.msg}."
            ) from error
        actual_format = info.get("format")
        if actual_format != expected_format:
            raise ValidateError(
                f"Image {path} has format '{actual_format}', expected '{expected_format}'."
            )
        if expected_format == TARGET_IMAGE_FORMAT and not info.get("virtual-size"):
            raise ValidateError(f"Image {path} has zero virtual size.")
        _LOGGER.info(
            "image_validated",
            path=str(path),
            image_format=actual_format,
            virtual_size=info.get("virtual-size"),
        )

    def _run_convert(self, source: str, destination: Path) -> None:
        command = [
            self._qemu_img,
            "convert",
            "-p",
            "-f",
            SOURCE_IMAGE_FORMAT,
            "-O",
            TARGET_IMAGE_FORMAT,
            source,
            str(destination),
        ]
        run_command(command, self._timeout)
        _LOGGER.info("image_converted", destination=str(destination))


def build_stream_source(source_url: str, timeout: float) -> str:
    """Build a qemu-img json: source for an HTTP(S) URL."""
    scheme = urlsplit(source_url).scheme
    source = {
        "file.driver": scheme,
        "file.url": source_url,
        "file.timeout": int(timeout),
    }
    return "json:" + json.dumps(source, sort_keys=True)


def run_command(command: list[str], timeout: float) -> subprocess.CompletedProcess[str]:
    """Run a converter command and fail on any non-zero exit.

    Raises:
        ConvertError: If the command cannot start, times out, or fails.
    """
    _LOGGER.debug("converter_started", command=command)
    try:
        completed = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as error:
        raise ConvertError(f"{command[0]} {command[1]} exceeded {timeout:g}s.") from error
    except OSError as error:
        raise ConvertError(
            f"Failed to launch {command[0]}: {error}. Install qemu-img or set IMPORTER_QEMU_IMG."
        ) from error
    if completed.returncode != 0:
        stderr = completed.stderr.strip()
        raise ConvertError(
            stderr or f"{command[0]} {command[1]} exited with code {completed.returncode}."
        )
    return completed
