"""Out-of-band clone data plane.

A source worker reads an existing volume and streams it as a single-entry
tar archive over a Unix socket; a target worker on the same node accepts
that connection, peels the archive, and writes the payload verbatim into
the destination volume with the import copier.
"""

from __future__ import annotations

import os
from pathlib import Path
import socket
import stat
import tarfile
import time
from typing import BinaryIO

from core.constants import (
    CLONE_POLL_INTERVAL_SECONDS,
    CLONER_DISK_FILE_NAME,
    CLONER_SOCKET_FILE_NAME,
)
from core.errors import CloneTransferError, ImageFormatError, ImageIOError
from core.logging_config import get_logger
from core.types import CloneOptions
from importer.copier import copy_direct
from importer.reader_chain import ReaderChain, TarEntryReader

_LOGGER = get_logger(__name__)


def socket_path_for(options: CloneOptions) -> Path:
    """Return the rendezvous socket path shared by both workers."""
    return options.socket_root / options.clone_id / CLONER_SOCKET_FILE_NAME


def run_clone_source(options: CloneOptions) -> int:
    """Stream the source volume image to the waiting target worker.

    Args:
        options: Clone options; ``image_path`` is the source volume mount.

    Returns:
        Number of payload bytes sent.

    Raises:
        CloneTransferError: If the target socket never appears or the
            transfer breaks.
        ImageIOError: If the source image cannot be read.
    """
    image_file = options.image_path / CLONER_DISK_FILE_NAME
    socket_path = socket_path_for(options)
    connection = _connect_when_ready(socket_path, options.wait_seconds)
    try:
        with connection.makefile("wb") as channel:
            sent = _send_image_archive(image_file, channel)
    except OSError as error:
        raise CloneTransferError(
            f"Clone {options.clone_id} transfer to {socket_path} failed: {error}."
        ) from error
    finally:
        connection.close()
    _LOGGER.info("clone_source_completed", clone_id=options.clone_id, bytes_sent=sent)
    return sent


def run_clone_target(options: CloneOptions) -> int:
    """Accept one source connection and write its payload to the target volume.

    Args:
        options: Clone options; ``image_path`` is the target volume mount.

    Returns:
        Number of payload bytes written.

    Raises:
        CloneTransferError: If the socket cannot be created or accepted.
        ImageFormatError: If the received stream is not a single-entry archive.
        ImageIOError: If the destination cannot be written.
    """
    socket_path = socket_path_for(options)
    destination = options.image_path / CLONER_DISK_FILE_NAME
    server = _listen(socket_path)
    try:
        connection = _accept(server, socket_path, options.wait_seconds)
    finally:
        server.close()
        _unlink_socket(socket_path)
    channel = connection.makefile("rb")
    connection.close()
    chain = _open_clone_chain(channel)
    try:
        written = copy_direct(chain, destination)
    finally:
        close_error = chain.close()
    if close_error is not None:
        raise ImageIOError(f"Clone {options.clone_id} teardown failed: {close_error}.")
    _LOGGER.info("clone_target_completed", clone_id=options.clone_id, bytes_written=written)
    return written


def _open_clone_chain(channel: BinaryIO) -> ReaderChain:
    # Cloned content is copied verbatim: only the transport archive is peeled.
    chain = ReaderChain()
    chain.append("base", channel)
    try:
        chain.append("tar", TarEntryReader.open(channel))
    except ImageFormatError:
        chain.close()
        raise
    except (OSError, tarfile.TarError) as error:
        chain.close()
        raise ImageFormatError(
            f"Clone stream is not a valid archive: {error}. Check the clone source worker."
        ) from error
    return chain


def _send_image_archive(image_file: Path, channel: BinaryIO) -> int:
    try:
        source = open(image_file, "rb")
    except OSError as error:
        raise ImageIOError(
            f"Failed to open clone source {image_file}: {error.strerror or error}."
        ) from error
    with source:
        info = tarfile.TarInfo(name=CLONER_DISK_FILE_NAME)
        info.size = _image_size(source)
        info.mode = 0o644
        info.mtime = int(time.time())
        with tarfile.open(fileobj=channel, mode="w|") as archive:
            archive.addfile(info, source)
    return info.size


def _image_size(source: BinaryIO) -> int:
    mode = os.fstat(source.fileno()).st_mode
    if stat.S_ISBLK(mode):
        size = source.seek(0, os.SEEK_END)
        source.seek(0)
        return size
    return os.fstat(source.fileno()).st_size


def _connect_when_ready(socket_path: Path, wait_seconds: float) -> socket.socket:
    deadline = time.monotonic() + wait_seconds
    while True:
        client = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            client.connect(str(socket_path))
            return client
        except (FileNotFoundError, ConnectionRefusedError) as error:
            client.close()
            if time.monotonic() >= deadline:
                raise CloneTransferError(
                    f"Clone target socket {socket_path} was not ready after {wait_seconds:g}s. "
                    "Check that the target worker is running on the same node."
                ) from error
            time.sleep(CLONE_POLL_INTERVAL_SECONDS)
        except OSError as error:
            client.close()
            raise CloneTransferError(
                f"Failed to connect to clone target socket {socket_path}: {error}."
            ) from error


def _listen(socket_path: Path) -> socket.socket:
    server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        socket_path.parent.mkdir(parents=True, exist_ok=True)
        _unlink_socket(socket_path)
        server.bind(str(socket_path))
        server.listen(1)
    except OSError as error:
        server.close()
        raise CloneTransferError(
            f"Failed to listen on clone socket {socket_path}: {error}."
        ) from error
    _LOGGER.info("clone_target_listening", socket=str(socket_path))
    return server


def _accept(server: socket.socket, socket_path: Path, wait_seconds: float) -> socket.socket:
    server.settimeout(wait_seconds)
    try:
        connection, _ = server.accept()
    except socket.timeout as error:
        raise CloneTransferError(
            f"No clone source connected to {socket_path} within {wait_seconds:g}s."
        ) from error
    except OSError as error:
        raise CloneTransferError(f"Failed to accept on {socket_path}: {error}.") from error
    connection.settimeout(None)
    return connection


def _unlink_socket(socket_path: Path) -> None:
    try:
        socket_path.unlink()
    except FileNotFoundError:
        pass
