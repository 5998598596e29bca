"""Shared image payload builders and test doubles."""

from __future__ import annotations

from dataclasses import replace
import gzip
import io
import lzma
from pathlib import Path
import random
import shutil
import tarfile

from core.config import ImporterConfig
from core.errors import ValidateError

QCOW2_MAGIC = b"QFI\xfb"


def sample_payload(size: int = 64 * 1024, seed: int = 7) -> bytes:
    """Deterministic payload that carries no known magic signature."""
    generator = random.Random(seed)
    return b"ISO9660-PAYLOAD" + bytes(generator.getrandbits(8) for _ in range(size))


def qcow2_payload(size: int = 4096) -> bytes:
    """Bytes that sniff as a qcow2 container."""
    return QCOW2_MAGIC + b"\x00\x00\x00\x03" + b"\x00" * size


def gzip_bytes(data: bytes) -> bytes:
    return gzip.compress(data)


def xz_bytes(data: bytes) -> bytes:
    return lzma.compress(data, format=lzma.FORMAT_XZ)


def tar_bytes(entries: dict[str, bytes], directories: tuple[str, ...] = ()) -> bytes:
    """Build an uncompressed tar archive in memory."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as archive:
        for directory in directories:
            info = tarfile.TarInfo(name=directory)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            archive.addfile(info)
        for name, data in entries.items():
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def write_file(directory: Path, name: str, data: bytes) -> Path:
    path = directory / name
    path.write_bytes(data)
    return path


def file_endpoint(path: Path) -> str:
    return f"file://{path}"


def make_config(**overrides: object) -> ImporterConfig:
    """Environment config with selected fields replaced."""
    return replace(ImporterConfig.from_env(), **overrides)


class TrackingBytesIO(io.BytesIO):
    """BytesIO that records close calls, for ownership assertions."""

    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1
        super().close()


class FailingBytesIO(TrackingBytesIO):
    """Tracking reader that raises ``error`` once ``fail_after`` bytes were served."""

    def __init__(self, data: bytes, fail_after: int, error: BaseException) -> None:
        super().__init__(data)
        self.fail_after = fail_after
        self.error = error

    def read(self, size: int | None = -1) -> bytes:
        remaining = self.fail_after - self.tell()
        if remaining <= 0:
            raise self.error
        if size is None or size < 0 or size > remaining:
            size = remaining
        return super().read(size)


class FakeConversionOperations:
    """Scripted conversion double that never runs a real converter."""

    def __init__(
        self,
        convert_error: Exception | None = None,
        stream_error: Exception | None = None,
        validate_error: Exception | None = None,
    ) -> None:
        self.convert_error = convert_error
        self.stream_error = stream_error
        self.validate_error = validate_error
        self.calls: list[tuple[str, str, str]] = []
        self.scratch_existed: list[bool] = []

    def convert(self, source: Path, destination: Path) -> None:
        self.calls.append(("convert", str(source), str(destination)))
        self.scratch_existed.append(source.exists())
        if self.convert_error is not None:
            raise self.convert_error
        shutil.copyfile(source, destination)

    def convert_stream(self, source_url: str, destination: Path) -> None:
        self.calls.append(("convert_stream", source_url, str(destination)))
        if self.stream_error is not None:
            raise self.stream_error
        destination.write_bytes(b"converted")

    def validate(self, path: Path, expected_format: str) -> None:
        self.calls.append(("validate", str(path), expected_format))
        if self.validate_error is not None:
            raise self.validate_error
        if not path.exists():
            raise ValidateError(f"{path} does not exist")

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]


def all_errors_operations() -> FakeConversionOperations:
    """Double whose every operation fails, for paths that must not convert."""
    error = RuntimeError("converter must not be called on this path")
    return FakeConversionOperations(error, error, error)
