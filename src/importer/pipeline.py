"""Import orchestration for one attempt.

This module resolves the endpoint, builds the decode chain, selects the
copier path, and guarantees teardown on every exit path.
"""

from __future__ import annotations

from core.config import ImporterConfig
from core.endpoint import parse_endpoint
from core.errors import ImageIOError
from core.logging_config import get_logger
from core.types import CopyMode, ImportRequest, ImportResult
from image.conversion import ConversionOperations
from importer.copier import copy_direct, copy_streaming, copy_with_conversion
from importer.data_stream import DataStream

_LOGGER = get_logger(__name__)


class ImportPipeline:
    """Runs import attempts with an injected conversion capability.

    Holds no per-attempt state, so one instance may serve many attempts
    as long as its conversion operations are stateless.
    """

    def __init__(self, config: ImporterConfig, operations: ConversionOperations) -> None:
        self._config = config
        self._operations = operations

    def run(self, request: ImportRequest) -> ImportResult:
        """Import one image into ``request.destination``.

        Args:
            request: Import request.

        Returns:
            Result describing the completed import.

        Raises:
            UnsupportedSchemeError: If the endpoint cannot be parsed.
            EndpointUnreachableError: If the source cannot be opened.
            AuthFailureError: If credentials are rejected.
            ImageFormatError: If the payload layers cannot be decoded.
            ImageIOError: If bytes cannot be moved to the destination.
            ConvertError: If the converter fails.
            ValidateError: If the converted image is invalid.
        """
        endpoint = parse_endpoint(request.endpoint)
        _LOGGER.info(
            "import_started",
            endpoint=endpoint.url,
            destination=str(request.destination),
            convert=request.convert,
        )
        stream = DataStream.open(
            endpoint,
            self._config,
            access_key=request.access_key,
            secret_key=request.secret_key,
        )
        link_kinds = stream.link_kinds
        try:
            copy_mode, bytes_written = self._copy(stream, request)
        finally:
            close_error = stream.close()
        if close_error is not None:
            raise ImageIOError(
                f"Import into {request.destination} finished but teardown failed: {close_error}."
            ) from close_error
        result = ImportResult(
            destination=request.destination,
            image_format=stream.image_format,
            copy_mode=copy_mode,
            link_kinds=link_kinds,
            bytes_written=bytes_written,
        )
        _log_import_completion(result)
        return result

    def _copy(self, stream: DataStream, request: ImportRequest) -> tuple[CopyMode, int]:
        if request.convert and stream.is_streamable:
            # The converter opens its own connection to the source.
            close_error = stream.close()
            if close_error is not None:
                raise ImageIOError(
                    f"Failed to release {stream.endpoint.url} before conversion: {close_error}."
                ) from close_error
            copy_streaming(stream.endpoint.url, request.destination, self._operations)
            return "stream-convert", 0
        if request.convert and stream.needs_conversion:
            written = copy_with_conversion(
                stream,
                request.destination,
                self._operations,
                scratch_dir=self._config.scratch_dir,
            )
            return "convert", written
        return "direct", copy_direct(stream, request.destination)


def import_image(
    request: ImportRequest,
    config: ImporterConfig,
    operations: ConversionOperations,
) -> ImportResult:
    """Run one import attempt.

    Args:
        request: Import request.
        config: Runtime configuration.
        operations: Conversion capability used for disk containers.

    Returns:
        Result describing the completed import.
    """
    return ImportPipeline(config, operations).run(request)


def _log_import_completion(result: ImportResult) -> None:
    """Log pipeline completion with contextual metadata."""
    _LOGGER.info(
        "import_completed",
        destination=str(result.destination),
        image_format=result.image_format,
        copy_mode=result.copy_mode,
        links=list(result.link_kinds),
        bytes_written=result.bytes_written,
    )
