"""Shared typed models.

This module defines immutable data models used by the endpoint,
importer, image, and clone layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Literal

from core.constants import DEFAULT_CLONE_WAIT_SECONDS

StageKind = Literal["base", "replay", "gzip", "xz", "tar"]
ImageFormat = Literal["gzip", "xz", "tar", "qcow2", "raw"]
CopyMode = Literal["direct", "convert", "stream-convert"]


@dataclass(frozen=True)
class Endpoint:
    """Parsed import source location.

    Attributes:
        scheme: One of ``file``, ``http``, ``https`` or ``s3``.
        host: Network host, or the bucket name for ``s3``.
        path: Local path, URL path, or object key for ``s3``.
        query: Raw query string without the leading ``?``.
        raw: Original endpoint string as supplied.
    """

    scheme: str
    host: str
    path: str
    query: str
    raw: str

    @property
    def url(self) -> str:
        """Rebuild a fetchable URL for network schemes."""
        if self.scheme == "file":
            return f"file://{self.path}"
        if self.scheme == "s3":
            return f"s3://{self.host}/{self.path}"
        suffix = f"?{self.query}" if self.query else ""
        return f"{self.scheme}://{self.host}{self.path}{suffix}"


@dataclass(frozen=True)
class ChainLink:
    """One stage in the ordered decode chain.

    Attributes:
        kind: Stage kind that produced this handle.
        handle: Closable binary reader for the stage output.
    """

    kind: StageKind
    handle: BinaryIO


@dataclass(frozen=True)
class ImportRequest:
    """One import attempt request.

    Attributes:
        endpoint: Endpoint URI string.
        destination: Local destination file or block device path.
        access_key: Optional access key id or basic-auth user.
        secret_key: Optional secret key or basic-auth password.
        convert: Whether detected qcow2 content is converted to raw.
    """

    endpoint: str
    destination: Path
    access_key: str | None = None
    secret_key: str | None = None
    convert: bool = True


@dataclass(frozen=True)
class ImportResult:
    """Outcome of a successful import attempt.

    Attributes:
        destination: Destination path that now holds the image.
        image_format: Innermost format detected by the sniffer.
        copy_mode: Copier path that produced the destination.
        link_kinds: Ordered stage kinds of the decode chain.
        bytes_written: Decoded bytes written, zero for converter paths.
    """

    destination: Path
    image_format: ImageFormat
    copy_mode: CopyMode
    link_kinds: tuple[StageKind, ...]
    bytes_written: int


@dataclass(frozen=True)
class CloneOptions:
    """Out-of-band clone worker options.

    Attributes:
        clone_id: Identifier shared by the source and target workers.
        image_path: Mount directory of the volume being read or written.
        socket_root: Directory holding per-clone rendezvous sockets.
        wait_seconds: Maximum time the source waits for the target socket.
    """

    clone_id: str
    image_path: Path
    socket_root: Path
    wait_seconds: float = DEFAULT_CLONE_WAIT_SECONDS
