"""File-backed secret registry (JSON via pydantic)."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from lockbox.errors import RegistryError
from lockbox.models import SecretRegistry
from lockbox.storage.secrets import PUBLIC_MODE, atomic_write

logger = logging.getLogger(__name__)


class FileTrackRepository:
    """Registry stored as one JSON document; saves replace the whole file."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def get_secret_registry(self) -> SecretRegistry:
        """Load the registry. A missing file is an empty registry."""
        if not self.path.exists():
            logger.debug("No registry at %s, starting empty", self.path)
            return SecretRegistry()
        try:
            return SecretRegistry.model_validate_json(self.path.read_bytes())
        except ValidationError as e:
            raise RegistryError(f"invalid registry at {self.path}: {e}") from e
        except OSError as e:
            raise RegistryError(f"cannot read registry at {self.path}: {e}") from e

    def save_secret_registry(self, registry: SecretRegistry) -> None:
        try:
            atomic_write(
                self.path,
                registry.model_dump_json(indent=2).encode() + b"\n",
                mode=PUBLIC_MODE,
            )
        except OSError as e:
            raise RegistryError(f"cannot save registry at {self.path}: {e}") from e
        logger.debug("Saved registry with %d secrets to %s", len(registry.secrets), self.path)
