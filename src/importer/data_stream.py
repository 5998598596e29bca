"""DataStream aggregate for one import attempt.

A DataStream owns the parsed endpoint, the optional credentials, the
sniffed header, and the decode chain built over the endpoint's source.
It reads as a single forward-only byte source and is torn down once.
"""

from __future__ import annotations

from types import TracebackType
from typing import Any

from core.config import ImporterConfig
from core.constants import STREAMABLE_SCHEMES
from core.endpoint import parse_endpoint
from core.types import Endpoint, ImageFormat, StageKind
from importer.endpoint_resolver import open_source
from importer.format_sniffer import is_convertible
from importer.reader_chain import ReaderChain, SniffResult, build_reader_chain


class DataStream:
    """Decoded byte stream behind an endpoint."""

    def __init__(
        self,
        endpoint: Endpoint,
        chain: ReaderChain,
        sniff: SniffResult,
        access_key: str | None = None,
        secret_key: str | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.access_key = access_key
        self.secret_key = secret_key
        self._chain = chain
        self._sniff = sniff

    @classmethod
    def open(
        cls,
        endpoint: str | Endpoint,
        config: ImporterConfig,
        access_key: str | None = None,
        secret_key: str | None = None,
    ) -> "DataStream":
        """Resolve an endpoint and build its decode chain.

        Args:
            endpoint: Endpoint URI or parsed endpoint.
            config: Runtime configuration.
            access_key: Optional access key id or basic-auth user.
            secret_key: Optional secret key or basic-auth password.

        Returns:
            Ready-to-read data stream.

        Raises:
            UnsupportedSchemeError: If the endpoint cannot be parsed.
            EndpointUnreachableError: If the source cannot be opened.
            AuthFailureError: If credentials are rejected.
            ImageFormatError: If the chain cannot be built.
        """
        parsed = endpoint if isinstance(endpoint, Endpoint) else parse_endpoint(endpoint)
        source = open_source(parsed, access_key, secret_key, config)
        chain, sniff = build_reader_chain(source, config.max_nesting_depth)
        return cls(parsed, chain, sniff, access_key=access_key, secret_key=secret_key)

    @property
    def image_format(self) -> ImageFormat:
        """Innermost format detected by the last sniff."""
        return self._sniff.image_format

    @property
    def header(self) -> bytes:
        """Peek buffer captured by the last sniff."""
        return self._sniff.header

    @property
    def link_kinds(self) -> tuple[StageKind, ...]:
        return self._chain.kinds

    @property
    def needs_conversion(self) -> bool:
        return is_convertible(self.image_format)

    @property
    def is_streamable(self) -> bool:
        """Whether a converter can pull the original URL itself.

        True only for anonymous HTTP(S) sources whose payload is a disk
        container with no decode stage in front of it.
        """
        return (
            self.endpoint.scheme in STREAMABLE_SCHEMES
            and not self.access_key
            and self.needs_conversion
            and self.link_kinds == ("base", "replay")
        )

    @property
    def closed(self) -> bool:
        return self._chain.closed

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        """Read decoded payload bytes."""
        return self._chain.read(size)

    def close(self) -> Exception | None:
        """Tear down every link; repeated calls return None."""
        return self._chain.close()

    def __enter__(self) -> "DataStream":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Any:
        self.close()
        return None
