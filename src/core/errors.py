"""volimport exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each pipeline stage raises the most specific type it can, so the
worker can surface a precise cause on its error stream.
"""

from __future__ import annotations


class VolImportError(Exception):
    """Base exception for all volimport failures."""


class VolImportConfigError(VolImportError):
    """Raised for invalid runtime configuration."""


class VolImportDependencyError(VolImportError):
    """Raised when an optional runtime dependency is missing."""


class UnsupportedSchemeError(VolImportError):
    """Raised when an endpoint cannot be parsed or uses an unknown scheme."""


class EndpointUnreachableError(VolImportError):
    """Raised when the endpoint cannot be opened, connected, or fetched."""


class AuthFailureError(VolImportError):
    """Raised when supplied credentials are rejected by the endpoint."""


class ImageFormatError(VolImportError):
    """Raised for corrupt headers, excessive nesting, or multi-entry archives."""


class ImageIOError(VolImportError):
    """Raised for short reads or writes while moving image bytes."""


class ConvertError(VolImportError):
    """Raised when the external image converter fails."""


class ValidateError(VolImportError):
    """Raised when a converted image fails its post-condition check."""


class CloneTransferError(VolImportError):
    """Raised when the clone source and target cannot exchange data."""
