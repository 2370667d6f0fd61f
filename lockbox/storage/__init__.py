"""
Lockbox storage — repositories for keys, secret files and the registry.

The box services depend only on the protocols below; the file-system
implementations are the defaults wired up by the CLI.
"""

from __future__ import annotations

from typing import Protocol

from lockbox.crypto.keys import PrivateKeyList, PublicKeyList
from lockbox.models import Secret, SecretRegistry


class KeyRepository(Protocol):
    def list_public_keys(self) -> PublicKeyList: ...

    def list_private_keys(self) -> PrivateKeyList: ...


class SecretRepository(Protocol):
    def get_encrypted_secret(self, secret_id: str) -> Secret: ...

    def get_decrypted_secret(self, secret_id: str) -> Secret: ...

    def save_encrypted_secret(self, secret: Secret) -> None: ...

    def save_decrypted_secret(self, secret: Secret) -> None: ...

    def delete_encrypted_secret(self, secret_id: str) -> None: ...

    def delete_decrypted_secret(self, secret_id: str) -> None: ...

    def exists_encrypted(self, secret_id: str) -> bool: ...

    def exists_decrypted(self, secret_id: str) -> bool: ...


class TrackRepository(Protocol):
    def get_secret_registry(self) -> SecretRegistry: ...

    def save_secret_registry(self, registry: SecretRegistry) -> None: ...


from lockbox.storage.keys import FileKeyRepository  # noqa: E402
from lockbox.storage.secrets import FileSecretRepository  # noqa: E402
from lockbox.storage.track import FileTrackRepository  # noqa: E402

__all__ = [
    "KeyRepository",
    "SecretRepository",
    "TrackRepository",
    "FileKeyRepository",
    "FileSecretRepository",
    "FileTrackRepository",
]
