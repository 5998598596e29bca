"""End-to-end import scenarios against local files and a local HTTP server."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from functools import partial
from http.server import BaseHTTPRequestHandler, SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
import socket
import threading

import pytest

from core.errors import AuthFailureError, EndpointUnreachableError, ImageIOError
from core.types import ImportRequest
from sdk.client import VolImportClient
from tests.fixture_images import (
    FakeConversionOperations,
    all_errors_operations,
    file_endpoint,
    gzip_bytes,
    make_config,
    qcow2_payload,
    sample_payload,
    tar_bytes,
    write_file,
    xz_bytes,
)


class _QuietFileHandler(SimpleHTTPRequestHandler):
    def log_message(self, format: str, *args: object) -> None:
        return None


class _UnauthorizedHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:
        self.send_response(401)
        self.send_header("WWW-Authenticate", 'Basic realm="images"')
        self.send_header("Content-Length", "0")
        self.end_headers()

    def log_message(self, format: str, *args: object) -> None:
        return None


class _TruncatingHandler(BaseHTTPRequestHandler):
    """Promises a full image, sends a prefix, then drops the connection."""

    def do_GET(self) -> None:
        self.send_response(200)
        self.send_header("Content-Length", str(1024 * 1024))
        self.end_headers()
        self.wfile.write(sample_payload(64 * 1024))
        self.wfile.flush()
        self.close_connection = True

    def log_message(self, format: str, *args: object) -> None:
        return None


@contextmanager
def _serve(handler: object) -> Iterator[str]:
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)  # type: ignore[arg-type]
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


@pytest.fixture
def serve_dir(tmp_path: Path) -> Iterator[tuple[Path, str]]:
    """Serve a fresh directory over HTTP and yield it with its base URL."""
    root = tmp_path / "www"
    root.mkdir()
    with _serve(partial(_QuietFileHandler, directory=str(root))) as base_url:
        yield root, base_url


@pytest.fixture
def truncating_url() -> Iterator[str]:
    with _serve(_TruncatingHandler) as base_url:
        yield base_url


@pytest.fixture
def unauthorized_url() -> Iterator[str]:
    with _serve(_UnauthorizedHandler) as base_url:
        yield base_url


def _closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


def _client(operations: object) -> VolImportClient:
    return VolImportClient(make_config(http_timeout=5.0), operations)  # type: ignore[arg-type]


def test_local_qcow2_is_converted_and_validated(tmp_path: Path) -> None:
    """A local qcow2 file should be converted once and validated."""
    source = write_file(tmp_path, "cirros-qcow2.img", qcow2_payload())
    destination = tmp_path / "disk.img"
    operations = FakeConversionOperations()

    result = _client(operations).import_image(
        ImportRequest(endpoint=file_endpoint(source), destination=destination)
    )

    assert result.link_kinds == ("base", "replay")
    assert operations.call_names() == ["convert", "validate"]
    assert destination.exists()


def test_local_tar_xz_iso_is_unpacked(tmp_path: Path) -> None:
    """A tar.xz wrapped ISO should be unpacked through six links."""
    payload = sample_payload(256 * 1024)
    source = write_file(
        tmp_path, "tinyCore.iso.tar.xz", xz_bytes(tar_bytes({"tinyCore.iso": payload}))
    )
    destination = tmp_path / "disk.img"

    result = _client(all_errors_operations()).import_image(
        ImportRequest(endpoint=file_endpoint(source), destination=destination)
    )

    assert result.link_kinds == ("base", "replay", "xz", "replay", "tar", "replay")
    assert result.bytes_written == len(payload)
    assert destination.read_bytes() == payload


def test_unreachable_http_endpoint_writes_nothing(tmp_path: Path) -> None:
    """A refused connection should fail with nothing written."""
    destination = tmp_path / "disk.img"
    endpoint = f"http://127.0.0.1:{_closed_port()}/tinyCore.iso"

    with pytest.raises(EndpointUnreachableError):
        _client(all_errors_operations()).import_image(
            ImportRequest(endpoint=endpoint, destination=destination)
        )

    assert list(tmp_path.iterdir()) == []


def test_http_qcow2_uses_streaming_convert(tmp_path: Path, serve_dir: tuple[Path, str]) -> None:
    """An anonymous HTTP qcow2 should be converted from its URL."""
    root, base_url = serve_dir
    write_file(root, "cirros-qcow2.img", qcow2_payload())
    destination = tmp_path / "disk.img"
    operations = FakeConversionOperations()

    result = _client(operations).import_image(
        ImportRequest(endpoint=f"{base_url}/cirros-qcow2.img", destination=destination)
    )

    assert result.copy_mode == "stream-convert"
    assert operations.calls[0] == (
        "convert_stream",
        f"{base_url}/cirros-qcow2.img",
        str(destination),
    )
    assert operations.call_names() == ["convert_stream", "validate"]


def test_http_gzip_payload_is_decoded(tmp_path: Path, serve_dir: tuple[Path, str]) -> None:
    """A gzip file served over HTTP should be decoded by the chain."""
    root, base_url = serve_dir
    payload = sample_payload()
    write_file(root, "tinyCore.iso.gz", gzip_bytes(payload))
    destination = tmp_path / "disk.img"

    result = _client(all_errors_operations()).import_image(
        ImportRequest(endpoint=f"{base_url}/tinyCore.iso.gz", destination=destination)
    )

    assert result.link_kinds == ("base", "replay", "gzip", "replay")
    assert destination.read_bytes() == payload


def test_http_compressed_qcow2_converts_locally(
    tmp_path: Path, serve_dir: tuple[Path, str]
) -> None:
    """A compressed qcow2 over HTTP cannot be streamed to the converter."""
    root, base_url = serve_dir
    write_file(root, "cirros.qcow2.gz", gzip_bytes(qcow2_payload()))
    operations = FakeConversionOperations()

    result = _client(operations).import_image(
        ImportRequest(endpoint=f"{base_url}/cirros.qcow2.gz", destination=tmp_path / "disk.img")
    )

    assert result.copy_mode == "convert"
    assert operations.call_names() == ["convert", "validate"]


def test_http_missing_file_is_unreachable(tmp_path: Path, serve_dir: tuple[Path, str]) -> None:
    """HTTP 404 should raise EndpointUnreachableError."""
    _, base_url = serve_dir

    with pytest.raises(EndpointUnreachableError, match="HTTP 404"):
        _client(all_errors_operations()).import_image(
            ImportRequest(endpoint=f"{base_url}/missing.img", destination=tmp_path / "disk.img")
        )


def test_http_rejected_credentials_are_auth_failure(tmp_path: Path, unauthorized_url: str) -> None:
    """HTTP 401 with credentials should raise AuthFailureError."""
    request = ImportRequest(
        endpoint=f"{unauthorized_url}/private.img",
        destination=tmp_path / "disk.img",
        access_key="user",
        secret_key="wrong",
    )

    with pytest.raises(AuthFailureError, match="HTTP 401"):
        _client(all_errors_operations()).import_image(request)


def test_http_unauthorized_without_credentials_is_unreachable(
    tmp_path: Path, unauthorized_url: str
) -> None:
    """HTTP 401 without credentials should raise EndpointUnreachableError."""
    request = ImportRequest(
        endpoint=f"{unauthorized_url}/private.img", destination=tmp_path / "disk.img"
    )

    with pytest.raises(EndpointUnreachableError):
        _client(all_errors_operations()).import_image(request)


def test_http_connection_dropped_mid_transfer_is_io_error(
    tmp_path: Path, truncating_url: str
) -> None:
    """A body cut short after the headers should fail with nothing written."""
    destination = tmp_path / "disk.img"

    with pytest.raises(ImageIOError, match="dropped mid-transfer"):
        _client(all_errors_operations()).import_image(
            ImportRequest(endpoint=f"{truncating_url}/tinyCore.iso", destination=destination)
        )

    assert list(tmp_path.iterdir()) == []
