"""Unit tests for the clone data plane over a Unix socket."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
import shutil
import tempfile
import threading

import pytest

from clone.transfer import run_clone_source, run_clone_target, socket_path_for
from core.errors import CloneTransferError
from core.types import CloneOptions
from tests.fixture_images import gzip_bytes, sample_payload


@pytest.fixture
def short_root() -> Iterator[Path]:
    """Short temp root that keeps socket paths under the AF_UNIX limit."""
    root = Path(tempfile.mkdtemp(prefix="vic", dir="/tmp"))
    yield root
    shutil.rmtree(root, ignore_errors=True)


def _options(root: Path, role: str, wait_seconds: float = 10.0) -> CloneOptions:
    image_path = root / role
    image_path.mkdir(exist_ok=True)
    return CloneOptions(
        clone_id="c1",
        image_path=image_path,
        socket_root=root / "sock",
        wait_seconds=wait_seconds,
    )


def _run_target(options: CloneOptions, results: list[object]) -> threading.Thread:
    def _target() -> None:
        try:
            results.append(run_clone_target(options))
        except Exception as error:
            results.append(error)

    thread = threading.Thread(target=_target)
    thread.start()
    return thread


@pytest.mark.parametrize("payload", [sample_payload(), gzip_bytes(sample_payload())])
def test_clone_copies_image_verbatim(short_root: Path, payload: bytes) -> None:
    """The target volume should receive the source bytes unchanged."""
    source_options = _options(short_root, "source")
    target_options = _options(short_root, "target")
    (source_options.image_path / "disk.img").write_bytes(payload)
    results: list[object] = []

    thread = _run_target(target_options, results)
    sent = run_clone_source(source_options)
    thread.join(timeout=30)

    assert results == [len(payload)]
    assert sent == len(payload)
    assert (target_options.image_path / "disk.img").read_bytes() == payload
    assert not socket_path_for(target_options).exists()


def test_socket_path_is_shared_by_clone_id(short_root: Path) -> None:
    """Both workers should rendezvous on the same per-clone socket."""
    source_options = _options(short_root, "source")
    target_options = _options(short_root, "target")

    assert socket_path_for(source_options) == socket_path_for(target_options)
    assert socket_path_for(source_options) == short_root / "sock" / "c1" / "clone.sock"


def test_clone_source_times_out_without_target(short_root: Path) -> None:
    """A source with no listening target should fail after its wait."""
    options = _options(short_root, "source", wait_seconds=0.2)
    (options.image_path / "disk.img").write_bytes(b"data")

    with pytest.raises(CloneTransferError, match="not ready"):
        run_clone_source(options)


def test_clone_target_times_out_without_source(short_root: Path) -> None:
    """A target with no connecting source should fail and remove its socket."""
    options = _options(short_root, "target", wait_seconds=0.2)

    with pytest.raises(CloneTransferError, match="No clone source connected"):
        run_clone_target(options)

    assert not socket_path_for(options).exists()
    assert not (options.image_path / "disk.img").exists()
