"""
File-backed secret repository.

A secret with ID ``app/db.env`` lives at ``<root>/app/db.env`` when decrypted
and ``<root>/app/db.env.lockbox`` when encrypted.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from pathlib import Path

from lockbox.errors import SecretNotFoundError
from lockbox.models import Secret

logger = logging.getLogger(__name__)

PUBLIC_MODE = stat.S_IRUSR | stat.S_IWUSR | stat.S_IRGRP | stat.S_IROTH  # 644


def atomic_write(path: Path, data: bytes, mode: int | None = None) -> None:
    """Write ``data`` to ``path`` via a temp file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            os.chmod(tmp, mode)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class FileSecretRepository:
    """Secrets stored as plain files beneath a box root directory."""

    def __init__(self, root: Path | str, encrypted_ext: str = ".lockbox"):
        self.root = Path(root)
        self.encrypted_ext = encrypted_ext

    def decrypted_path(self, secret_id: str) -> Path:
        return self.root / secret_id

    def encrypted_path(self, secret_id: str) -> Path:
        return self.root / f"{secret_id}{self.encrypted_ext}"

    @staticmethod
    def _read(secret_id: str, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise SecretNotFoundError(secret_id, str(path)) from None
        except IsADirectoryError:
            raise SecretNotFoundError(secret_id, str(path)) from None

    def get_encrypted_secret(self, secret_id: str) -> Secret:
        data = self._read(secret_id, self.encrypted_path(secret_id))
        return Secret(id=secret_id, encrypted_data=data)

    def get_decrypted_secret(self, secret_id: str) -> Secret:
        data = self._read(secret_id, self.decrypted_path(secret_id))
        return Secret(id=secret_id, decrypted_data=data)

    def save_encrypted_secret(self, secret: Secret) -> None:
        if secret.encrypted_data is None:
            raise ValueError(f"secret {secret.id!r} has no encrypted data")
        atomic_write(self.encrypted_path(secret.id), secret.encrypted_data, mode=PUBLIC_MODE)
        logger.debug("Wrote encrypted secret %s", secret.id)

    def save_decrypted_secret(self, secret: Secret) -> None:
        if secret.decrypted_data is None:
            raise ValueError(f"secret {secret.id!r} has no decrypted data")
        atomic_write(
            self.decrypted_path(secret.id),
            secret.decrypted_data,
            mode=stat.S_IRUSR | stat.S_IWUSR,  # 600
        )
        logger.debug("Wrote decrypted secret %s", secret.id)

    def delete_encrypted_secret(self, secret_id: str) -> None:
        path = self.encrypted_path(secret_id)
        try:
            path.unlink()
        except FileNotFoundError:
            raise SecretNotFoundError(secret_id, str(path)) from None

    def delete_decrypted_secret(self, secret_id: str) -> None:
        path = self.decrypted_path(secret_id)
        try:
            path.unlink()
        except FileNotFoundError:
            raise SecretNotFoundError(secret_id, str(path)) from None

    def exists_encrypted(self, secret_id: str) -> bool:
        return self.encrypted_path(secret_id).is_file()

    def exists_decrypted(self, secret_id: str) -> bool:
        return self.decrypted_path(secret_id).is_file()
