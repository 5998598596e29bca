"""Public SDK surface for volimport.

This module provides a stable import path for worker and library users.
It re-exports the primary client, the pipeline, and typed models.
"""

from __future__ import annotations

from core.config import ImporterConfig
from core.endpoint import parse_endpoint
from core.errors import (
    AuthFailureError,
    CloneTransferError,
    ConvertError,
    EndpointUnreachableError,
    ImageFormatError,
    ImageIOError,
    UnsupportedSchemeError,
    ValidateError,
    VolImportConfigError,
    VolImportError,
)
from core.types import CloneOptions, Endpoint, ImportRequest, ImportResult
from image.conversion import ConversionOperations
from image.qemu import QemuImgOperations
from importer.data_stream import DataStream
from importer.pipeline import ImportPipeline, import_image
from sdk.client import VolImportClient

__all__ = [
    "AuthFailureError",
    "CloneOptions",
    "CloneTransferError",
    "ConversionOperations",
    "ConvertError",
    "DataStream",
    "Endpoint",
    "EndpointUnreachableError",
    "ImageFormatError",
    "ImageIOError",
    "ImportPipeline",
    "ImportRequest",
    "ImportResult",
    "ImporterConfig",
    "QemuImgOperations",
    "UnsupportedSchemeError",
    "ValidateError",
    "VolImportClient",
    "VolImportConfigError",
    "VolImportError",
    "import_image",
    "parse_endpoint",
]
