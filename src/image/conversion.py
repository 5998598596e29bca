"""Conversion capability contract.

The copier depends only on this protocol, so tests can supply a
deterministic double instead of running a real converter.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class ConversionOperations(Protocol):
    """Operations required to transcode and check disk images.

    Implementations raise ConvertError or ValidateError on failure.
    """

    def convert(self, source: Path, destination: Path) -> None: ...

    def convert_stream(self, source_url: str, destination: Path) -> None: ...

    def validate(self, path: Path, expected_format: str) -> None: ...
