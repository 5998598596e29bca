"""Magic-signature format detection.

Signatures are checked in a fixed priority order so that an ambiguous
prefix always resolves to the earliest matching format.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO

from core.constants import MAX_HEADER_SIZE
from core.types import ImageFormat


@dataclass(frozen=True)
class MagicSignature:
    """Known byte sequence at a fixed offset."""

    image_format: ImageFormat
    magic: bytes
    offset: int = 0

    def matches(self, header: bytes) -> bool:
        """Return whether the header carries this signature."""
        end = self.offset + len(self.magic)
        return len(header) >= end and header[self.offset : end] == self.magic


# Priority order: earlier entries win.
KNOWN_SIGNATURES: tuple[MagicSignature, ...] = (
    MagicSignature("gzip", b"\x1f\x8b"),
    MagicSignature("xz", b"\xfd7zXZ\x00"),
    MagicSignature("tar", b"ustar", offset=257),
    MagicSignature("qcow2", b"QFI\xfb"),
)

_COMPRESSION_FORMATS: tuple[ImageFormat, ...] = ("gzip", "xz")
_ARCHIVE_FORMATS: tuple[ImageFormat, ...] = ("tar",)
_CONVERTIBLE_FORMATS: tuple[ImageFormat, ...] = ("qcow2",)


def sniff_format(header: bytes) -> ImageFormat:
    """Classify a header by its magic signature.

    Args:
        header: Leading bytes of a stream, at most ``MAX_HEADER_SIZE``.

    Returns:
        First matching format, or ``raw`` when nothing matches.
    """
    for signature in KNOWN_SIGNATURES:
        if signature.matches(header):
            return signature.image_format
    return "raw"


def read_header(source: BinaryIO, size: int = MAX_HEADER_SIZE) -> bytes:
    """Read up to ``size`` bytes, tolerating short reads.

    Stops early only at end of stream.
    """
    chunks: list[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = source.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def is_compression(image_format: ImageFormat) -> bool:
    """Return whether the format is a compression layer."""
    return image_format in _COMPRESSION_FORMATS


def is_archive(image_format: ImageFormat) -> bool:
    """Return whether the format is an archive layer."""
    return image_format in _ARCHIVE_FORMATS


def is_convertible(image_format: ImageFormat) -> bool:
    """Return whether the format is a disk container needing conversion."""
    return image_format in _CONVERTIBLE_FORMATS
