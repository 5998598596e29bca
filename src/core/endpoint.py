"""Endpoint URI parsing helpers.

This module turns an endpoint string into an immutable Endpoint model.
It keeps scheme validation consistent for import and clone entry points.
"""

from __future__ import annotations

from urllib.parse import unquote, urlsplit

from core.constants import SUPPORTED_SCHEMES
from core.errors import UnsupportedSchemeError
from core.types import Endpoint


def parse_endpoint(raw: str) -> Endpoint:
    """Parse and validate an endpoint URI.

    Args:
        raw: URI such as ``file:///images/a.img``, ``https://host/a.img``
            or ``s3://bucket/key``.

    Returns:
        Parsed endpoint.

    Raises:
        UnsupportedSchemeError: If the URI is empty, has an unknown scheme,
            or lacks the parts its scheme requires.
    """
    stripped = raw.strip()
    if not stripped:
        raise UnsupportedSchemeError(
            "Endpoint is empty. Set IMPORTER_ENDPOINT to a file://, http(s):// or s3:// URI."
        )
    parts = urlsplit(stripped)
    scheme = parts.scheme.lower()
    if scheme not in SUPPORTED_SCHEMES:
        raise UnsupportedSchemeError(
            f"Unsupported endpoint scheme '{parts.scheme}' in '{raw}'. "
            f"Supported schemes: {', '.join(SUPPORTED_SCHEMES)}."
        )
    if scheme == "file":
        return _parse_file_endpoint(stripped, parts.netloc, parts.path)
    if scheme == "s3":
        return _parse_s3_endpoint(stripped, parts.netloc, parts.path, parts.query)
    if not parts.netloc:
        raise UnsupportedSchemeError(
            f"Invalid endpoint '{raw}': expected {scheme}://host/path. Provide a host."
        )
    return Endpoint(
        scheme=scheme,
        host=parts.netloc,
        path=parts.path or "/",
        query=parts.query,
        raw=stripped,
    )


def _parse_file_endpoint(raw: str, netloc: str, path: str) -> Endpoint:
    # file://localhost/x is equivalent to file:///x
    if netloc not in ("", "localhost") or not path.startswith("/"):
        raise UnsupportedSchemeError(
            f"Invalid file endpoint '{raw}': expected file:///absolute/path."
        )
    return Endpoint(scheme="file", host="", path=unquote(path), query="", raw=raw)


def _parse_s3_endpoint(raw: str, bucket: str, path: str, query: str) -> Endpoint:
    key = path.lstrip("/")
    if not bucket or not key:
        raise UnsupportedSchemeError(
            f"Invalid S3 endpoint '{raw}': expected s3://bucket/key. "
            "Provide both bucket and key."
        )
    return Endpoint(scheme="s3", host=bucket, path=key, query=query, raw=raw)
