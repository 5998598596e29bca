"""Python SDK for import and clone operations.

This module exposes high-level APIs for worker entry points, backed by
the import pipeline and the clone data plane.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from clone.transfer import run_clone_source, run_clone_target
from core.config import ImporterConfig
from core.errors import VolImportConfigError
from core.types import CloneOptions, ImportRequest, ImportResult
from image.conversion import ConversionOperations
from image.qemu import QemuImgOperations
from importer.pipeline import ImportPipeline


class VolImportClient:
    """Primary SDK entry point for worker operations."""

    def __init__(
        self,
        config: ImporterConfig | None = None,
        operations: ConversionOperations | None = None,
    ) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration.
            operations: Optional conversion capability; defaults to qemu-img.
        """
        self._config = config or ImporterConfig.from_env()
        self._operations = operations or QemuImgOperations(
            self._config.qemu_img, self._config.convert_timeout
        )

    @property
    def config(self) -> ImporterConfig:
        return self._config

    def import_image(self, request: ImportRequest) -> ImportResult:
        """Import an endpoint image into a local destination.

        Args:
            request: Import request.

        Returns:
            Completed import summary.
        """
        return ImportPipeline(self._config, self._operations).run(request)

    def import_from_config(self, convert: bool = True) -> ImportResult:
        """Import using the endpoint, credentials and destination from config.

        Raises:
            VolImportConfigError: If no endpoint is configured.
        """
        if not self._config.endpoint:
            raise VolImportConfigError(
                "No import endpoint configured. Set IMPORTER_ENDPOINT or pass --endpoint."
            )
        request = ImportRequest(
            endpoint=self._config.endpoint,
            destination=self._config.destination,
            access_key=self._config.access_key,
            secret_key=self._config.secret_key,
            convert=convert,
        )
        return self.import_image(request)

    def clone_source(self, clone_id: str) -> int:
        """Run the source side of an out-of-band clone."""
        return run_clone_source(self._clone_options(clone_id))

    def clone_target(self, clone_id: str) -> int:
        """Run the target side of an out-of-band clone."""
        return run_clone_target(self._clone_options(clone_id))

    def with_overrides(self, **overrides: object) -> "VolImportClient":
        """Clone the client with selected config fields replaced.

        Args:
            overrides: ImporterConfig field values; None values are ignored.

        Returns:
            New SDK client sharing the conversion capability.
        """
        updates = {name: value for name, value in overrides.items() if value is not None}
        if "destination" in updates:
            updates["destination"] = Path(str(updates["destination"]))
        return VolImportClient(replace(self._config, **updates), self._operations)

    def _clone_options(self, clone_id: str) -> CloneOptions:
        if not clone_id.strip():
            raise VolImportConfigError("Clone id is empty. Pass the shared clone identifier.")
        return CloneOptions(
            clone_id=clone_id,
            image_path=self._config.cloner_image_path,
            socket_root=self._config.cloner_socket_root,
        )
