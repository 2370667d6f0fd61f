"""Lockbox data models."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import BaseModel, Field

REGISTRY_VERSION = 1


@dataclass(frozen=True)
class Secret:
    """One managed secret file.

    Built per operation and discarded afterwards; never cached.
    """

    id: str
    encrypted_data: bytes | None = None
    decrypted_data: bytes | None = None


def fingerprint(data: bytes) -> str:
    """Content fingerprint recorded in the registry (sha256 hex)."""
    return hashlib.sha256(data).hexdigest()


class TrackedSecret(BaseModel):
    """Registry entry for a tracked secret (metadata only — never the value)."""

    fingerprint: str
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class SecretRegistry(BaseModel):
    """Canonical secret id -> tracked metadata.

    Loaded once per operation from a TrackRepository and saved back only by
    encrypt/untrack workflows.
    """

    version: int = REGISTRY_VERSION
    secrets: dict[str, TrackedSecret] = {}

    def is_tracked(self, secret_id: str) -> bool:
        return secret_id in self.secrets

    def ids(self) -> list[str]:
        return sorted(self.secrets)

    def track(self, secret_id: str, plaintext: bytes) -> None:
        self.secrets[secret_id] = TrackedSecret(fingerprint=fingerprint(plaintext))

    def untrack(self, secret_id: str) -> bool:
        """Remove a secret. Returns True if it was tracked."""
        return self.secrets.pop(secret_id, None) is not None

    def changed(self, secret_id: str, plaintext: bytes) -> bool:
        """True if the plaintext differs from the last tracked fingerprint."""
        entry = self.secrets.get(secret_id)
        return entry is None or entry.fingerprint != fingerprint(plaintext)
