"""Decode chain construction for layered image payloads.

The builder runs a small state machine: sniff the current top of the
chain, append a decompress or extract stage when the header asks for
one, and sniff again until the payload is a disk image or raw content.
Every sniff interposes a fresh replay buffer, so no peeked byte is lost.
"""

from __future__ import annotations

from dataclasses import dataclass
import gzip
import io
import lzma
import tarfile
from typing import BinaryIO, Literal
import zlib

from core.constants import MAX_HEADER_SIZE
from core.errors import ImageFormatError, ImageIOError, VolImportError
from core.logging_config import get_logger
from core.types import ChainLink, ImageFormat, StageKind
from importer.format_sniffer import is_archive, is_compression, read_header, sniff_format
from importer.replay_reader import ReplayReader
from importer.resource_closer import ResourceCloser

_LOGGER = get_logger(__name__)

ChainState = Literal["sniff", "decompress", "extract", "done"]

DECODE_ERRORS: tuple[type[BaseException], ...] = (
    EOFError,
    lzma.LZMAError,
    zlib.error,
    tarfile.TarError,
    gzip.BadGzipFile,
)


@dataclass(frozen=True)
class SniffResult:
    """Outcome of the last sniff on a completed chain."""

    image_format: ImageFormat
    header: bytes
    depth: int


class ReaderChain:
    """Ordered, append-only sequence of chain links.

    The last link is the stream consumers read from. Links are closed only
    through ``close``, in the order they were appended.
    """

    def __init__(self) -> None:
        self._links: list[ChainLink] = []
        self._closer = ResourceCloser()

    @property
    def links(self) -> tuple[ChainLink, ...]:
        return tuple(self._links)

    @property
    def kinds(self) -> tuple[StageKind, ...]:
        return tuple(link.kind for link in self._links)

    @property
    def top(self) -> BinaryIO:
        if not self._links:
            raise ImageFormatError("Reader chain is empty: no source has been attached.")
        return self._links[-1].handle

    @property
    def closed(self) -> bool:
        return self._closer.closed

    def append(self, kind: StageKind, handle: BinaryIO) -> None:
        """Append a link and register its handle for teardown."""
        self._links.append(ChainLink(kind=kind, handle=handle))
        self._closer.register(handle)
        _LOGGER.debug("chain_link_added", kind=kind, position=len(self._links) - 1)

    def read(self, size: int = -1) -> bytes:
        """Read decoded bytes from the top of the chain.

        Raises:
            ImageFormatError: If a decoder hits corrupt or truncated data.
            ImageIOError: If the underlying source fails mid-read.
        """
        try:
            return self.top.read(size)
        except DECODE_ERRORS as error:
            raise ImageFormatError(
                f"Corrupt or truncated image data: {error}. Check the source image."
            ) from error
        except OSError as error:
            raise ImageIOError(
                f"Failed to read source data: {error}. Check the endpoint and retry the import."
            ) from error

    def close(self) -> Exception | None:
        """Close every link once; see ResourceCloser.close."""
        return self._closer.close()


class TarEntryReader(io.RawIOBase):
    """Forward-only reader over the single regular file of a tar stream.

    Once the entry is drained, the rest of the archive is scanned and a
    second regular file is rejected.
    """

    def __init__(self, archive: tarfile.TarFile, member: tarfile.TarInfo) -> None:
        super().__init__()
        self._archive = archive
        self._member = member
        entry = archive.extractfile(member)
        if entry is None:
            raise ImageFormatError(f"Failed to read archive entry '{member.name}'.")
        self._entry = entry
        self._drained = False

    @classmethod
    def open(cls, source: BinaryIO) -> "TarEntryReader":
        """Open a tar stream and position on its first regular file."""
        archive = tarfile.open(fileobj=source, mode="r|")
        try:
            member = _next_regular_member(archive)
            if member is None:
                raise ImageFormatError(
                    "Archive contains no regular file. Provide an archive holding one disk image."
                )
            return cls(archive, member)
        except BaseException:
            archive.close()
            raise

    @property
    def member_name(self) -> str:
        return self._member.name

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: bytearray | memoryview) -> int:  # type: ignore[override]
        target = memoryview(buffer).cast("B")
        data = self._entry.read(len(target))
        if data:
            target[: len(data)] = data
            return len(data)
        if not self._drained:
            self._drained = True
            self._reject_extra_entries()
        return 0

    def _reject_extra_entries(self) -> None:
        extra = _next_regular_member(self._archive)
        if extra is not None:
            raise ImageFormatError(
                f"Archive holds more than one file ('{self._member.name}', '{extra.name}'). "
                "Provide an archive containing a single disk image."
            )

    def close(self) -> None:
        if not self.closed:
            self._entry.close()
            self._archive.close()
        super().close()


def _next_regular_member(archive: tarfile.TarFile) -> tarfile.TarInfo | None:
    # Directories and links are not meaningful entries.
    while True:
        member = archive.next()
        if member is None:
            return None
        if member.isfile():
            return member


def build_reader_chain(source: BinaryIO, max_depth: int) -> tuple[ReaderChain, SniffResult]:
    """Wrap a raw source in every decode stage its headers call for.

    Args:
        source: Raw forward-only source; ownership moves to the chain.
        max_depth: Maximum number of decompress and extract stages.

    Returns:
        The built chain and the result of its final sniff.

    Raises:
        ImageFormatError: If a decoder cannot be constructed, a header is
            corrupt, or nesting exceeds ``max_depth``. Any failure closes
            every link built so far, including ``source``, before it propagates.
    """
    chain = ReaderChain()
    chain.append("base", source)
    try:
        result = _run_state_machine(chain, max_depth)
    except VolImportError:
        chain.close()
        raise
    except (OSError, *DECODE_ERRORS) as error:
        chain.close()
        raise ImageFormatError(
            f"Failed to decode image header: {error}. Check that the source is not corrupt."
        ) from error
    except BaseException:
        chain.close()
        raise
    _LOGGER.info(
        "reader_chain_built",
        links=list(chain.kinds),
        image_format=result.image_format,
        depth=result.depth,
    )
    return chain, result


def _run_state_machine(chain: ReaderChain, max_depth: int) -> SniffResult:
    state: ChainState = "sniff"
    depth = 0
    image_format: ImageFormat = "raw"
    header = b""
    while state != "done":
        if state == "sniff":
            header = read_header(chain.top, MAX_HEADER_SIZE)
            chain.append("replay", ReplayReader(header, chain.top))
            image_format = sniff_format(header)
            state = _next_state(image_format)
            if state != "done":
                depth += 1
                if depth > max_depth:
                    raise ImageFormatError(
                        f"Image nesting exceeds {max_depth} decode stages. "
                        "Raise IMPORTER_MAX_NESTING_DEPTH or check the source image."
                    )
        elif state == "decompress":
            chain.append(_decompressor_kind(image_format), _open_decompressor(image_format, chain.top))
            state = "sniff"
        elif state == "extract":
            chain.append("tar", TarEntryReader.open(chain.top))
            state = "sniff"
    return SniffResult(image_format=image_format, header=header, depth=depth)


def _next_state(image_format: ImageFormat) -> ChainState:
    if is_compression(image_format):
        return "decompress"
    if is_archive(image_format):
        return "extract"
    return "done"


def _decompressor_kind(image_format: ImageFormat) -> StageKind:
    return "gzip" if image_format == "gzip" else "xz"


def _open_decompressor(image_format: ImageFormat, source: BinaryIO) -> BinaryIO:
    if image_format == "gzip":
        return gzip.GzipFile(fileobj=source, mode="rb")
    return lzma.LZMAFile(source, mode="rb", format=lzma.FORMAT_XZ)
