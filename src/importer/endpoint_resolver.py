"""Endpoint source resolution.

This module authenticates against an endpoint and opens the first raw,
sequential byte source for the decode chain. Local files are opened
directly, HTTP(S) bodies are streamed with requests, and S3 objects are
fetched with boto3.
"""

from __future__ import annotations

import io
from typing import Any, BinaryIO

import requests
import urllib3

from core.config import ImporterConfig
from core.constants import S3_AUTH_ERROR_CODES
from core.errors import (
    AuthFailureError,
    EndpointUnreachableError,
    ImageIOError,
    VolImportConfigError,
    VolImportDependencyError,
)
from core.logging_config import get_logger
from core.types import Endpoint

_LOGGER = get_logger(__name__)


def open_source(
    endpoint: Endpoint,
    access_key: str | None,
    secret_key: str | None,
    config: ImporterConfig,
) -> BinaryIO:
    """Open the raw byte source behind an endpoint.

    Args:
        endpoint: Parsed endpoint.
        access_key: Optional access key id or basic-auth user.
        secret_key: Optional secret key or basic-auth password.
        config: Runtime configuration for timeouts and S3 settings.

    Returns:
        Forward-only closable binary reader.

    Raises:
        VolImportConfigError: If only one of the two credentials is given.
        EndpointUnreachableError: If the source cannot be opened.
        AuthFailureError: If supplied credentials are rejected.
    """
    credentials = _credential_pair(access_key, secret_key)
    _LOGGER.info(
        "endpoint_opening",
        scheme=endpoint.scheme,
        endpoint=endpoint.url,
        authenticated=credentials is not None,
    )
    if endpoint.scheme == "file":
        return _open_file(endpoint)
    if endpoint.scheme == "s3":
        return _open_s3_object(endpoint, credentials, config)
    return _open_http(endpoint, credentials, config)


def _credential_pair(
    access_key: str | None,
    secret_key: str | None,
) -> tuple[str, str] | None:
    if not access_key and not secret_key:
        return None
    if not access_key or not secret_key:
        raise VolImportConfigError(
            "Incomplete endpoint credentials: both access key and secret key are required. "
            "Set both IMPORTER_ACCESS_KEY_ID and IMPORTER_SECRET_KEY or neither."
        )
    return access_key, secret_key


def _open_file(endpoint: Endpoint) -> BinaryIO:
    try:
        return open(endpoint.path, "rb")
    except OSError as error:
        raise EndpointUnreachableError(
            f"Failed to open local endpoint {endpoint.path}: {error.strerror or error}. "
            "Provide an existing, readable file."
        ) from error


def _open_http(
    endpoint: Endpoint,
    credentials: tuple[str, str] | None,
    config: ImporterConfig,
) -> BinaryIO:
    session = requests.Session()
    if credentials is not None:
        session.auth = credentials
    try:
        response = session.get(endpoint.url, stream=True, timeout=config.http_timeout)
    except requests.RequestException as error:
        session.close()
        raise EndpointUnreachableError(
            f"Failed to connect to {endpoint.url}: {error}. "
            "Check the endpoint host and network reachability."
        ) from error
    if response.status_code in (401, 403) and credentials is not None:
        status = response.status_code
        response.close()
        session.close()
        raise AuthFailureError(
            f"Endpoint {endpoint.url} rejected the supplied credentials (HTTP {status}). "
            "Check the access key and secret."
        )
    if not 200 <= response.status_code < 300:
        status = response.status_code
        response.close()
        session.close()
        raise EndpointUnreachableError(
            f"Endpoint {endpoint.url} returned HTTP {status}. "
            "Check that the image URL exists and is publicly readable."
        )
    # The payload is sniffed as-is; transport encodings must not be decoded.
    response.raw.decode_content = False
    return HttpBodyReader(response, session)


class HttpBodyReader(io.RawIOBase):
    """Forward-only reader over a streamed HTTP response body."""

    def __init__(self, response: requests.Response, session: requests.Session) -> None:
        super().__init__()
        self._response = response
        self._session = session

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: bytearray | memoryview) -> int:  # type: ignore[override]
        target = memoryview(buffer).cast("B")
        try:
            data = self._response.raw.read(len(target))
        except (urllib3.exceptions.HTTPError, OSError) as error:
            raise ImageIOError(
                f"Short read from {self._response.url}: {error}. "
                "The connection dropped mid-transfer; retry the import."
            ) from error
        if not data:
            return 0
        target[: len(data)] = data
        return len(data)

    def close(self) -> None:
        if not self.closed:
            self._response.close()
            self._session.close()
        super().close()


def _open_s3_object(
    endpoint: Endpoint,
    credentials: tuple[str, str] | None,
    config: ImporterConfig,
) -> BinaryIO:
    s3_client = create_s3_client(config, credentials)
    return fetch_s3_body(s3_client, endpoint, credentials is not None)


def create_s3_client(
    config: ImporterConfig,
    credentials: tuple[str, str] | None,
) -> Any:
    """Create a boto3 S3 client.

    Args:
        config: Runtime config containing optional region and endpoint URL.
        credentials: Access key and secret, or None for anonymous access.

    Returns:
        Boto3 S3 client.

    Raises:
        VolImportDependencyError: If boto3 is missing.
    """
    try:
        import boto3
        from botocore import UNSIGNED
        from botocore.config import Config
    except ImportError as error:
        raise VolImportDependencyError(
            "S3 support requires boto3, but it is not installed. "
            "Install boto3 to import from s3:// endpoints."
        ) from error
    session_kwargs: dict[str, str] = {}
    if config.s3_region:
        session_kwargs["region_name"] = config.s3_region
    if credentials is not None:
        session_kwargs["aws_access_key_id"] = credentials[0]
        session_kwargs["aws_secret_access_key"] = credentials[1]
    session = boto3.session.Session(**session_kwargs)
    client_kwargs: dict[str, Any] = {}
    if config.s3_endpoint_url:
        client_kwargs["endpoint_url"] = config.s3_endpoint_url
    if credentials is None:
        client_kwargs["config"] = Config(signature_version=UNSIGNED)
    return session.client("s3", **client_kwargs)


def fetch_s3_body(s3_client: Any, endpoint: Endpoint, authenticated: bool) -> BinaryIO:
    """Issue the GetObject request and return a reader over its body.

    Raises:
        AuthFailureError: If credentials were supplied and rejected.
        EndpointUnreachableError: For any other request failure.
    """
    from botocore.exceptions import BotoCoreError, ClientError

    try:
        response = s3_client.get_object(Bucket=endpoint.host, Key=endpoint.path)
    except ClientError as error:
        code = str(error.response.get("Error", {}).get("Code", ""))
        if authenticated and code in S3_AUTH_ERROR_CODES:
            raise AuthFailureError(
                f"Object store rejected credentials for {endpoint.url} ({code}). "
                "Check the access key and secret."
            ) from error
        raise EndpointUnreachableError(
            f"Failed to fetch {endpoint.url}: {code or error}. "
            "Check that the bucket and key exist and are readable."
        ) from error
    except BotoCoreError as error:
        raise EndpointUnreachableError(
            f"Failed to reach object store for {endpoint.url}: {error}. "
            "Check IMPORTER_S3_ENDPOINT_URL and network reachability."
        ) from error
    return S3BodyReader(response["Body"], endpoint.url)


class S3BodyReader(io.RawIOBase):
    """Forward-only reader over a GetObject streaming body."""

    def __init__(self, body: Any, url: str) -> None:
        from botocore.exceptions import BotoCoreError

        super().__init__()
        self._body = body
        self._url = url
        self._read_errors = (BotoCoreError, urllib3.exceptions.HTTPError, OSError)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: bytearray | memoryview) -> int:  # type: ignore[override]
        target = memoryview(buffer).cast("B")
        try:
            data = self._body.read(len(target))
        except self._read_errors as error:
            raise ImageIOError(
                f"Short read from {self._url}: {error}. "
                "The object stream dropped mid-transfer; retry the import."
            ) from error
        if not data:
            return 0
        target[: len(data)] = data
        return len(data)

    def close(self) -> None:
        if not self.closed:
            self._body.close()
        super().close()
