"""Encrypt plaintext secrets and start tracking them."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass

from lockbox.box.batch import guard, require_in_scope, resolve_ids, run_per_secret
from lockbox.config import DEFAULT_CONCURRENCY
from lockbox.crypto import Encrypter, PublicKeyList
from lockbox.errors import EncryptError, PreconditionError, SecretError, raise_for_failures
from lockbox.models import Secret
from lockbox.process import IDProcessor
from lockbox.storage import KeyRepository, SecretRepository, TrackRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncryptBoxRequest:
    secret_ids: Sequence[str] = ()


class EncryptionService:
    def __init__(
        self,
        *,
        key_repo: KeyRepository,
        secret_repo: SecretRepository,
        track_repo: TrackRepository,
        encrypter: Encrypter,
        id_processor: IDProcessor,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        self.key_repo = key_repo
        self.secret_repo = secret_repo
        self.track_repo = track_repo
        self.encrypter = encrypter
        self.id_processor = id_processor
        self.concurrency = concurrency

    async def encrypt_box(self, req: EncryptBoxRequest) -> None:
        """Encrypt the requested secrets, delete their plaintext and track them.

        Plaintext matching its tracked fingerprint keeps its existing
        encrypted file. The registry is saved once with every secret that was
        written, even when others failed.
        """
        secret_ids, failures = resolve_ids(self.id_processor, req.secret_ids)
        require_in_scope(secret_ids, failures, "encrypt")

        try:
            keys = await asyncio.to_thread(self.key_repo.list_public_keys)
        except Exception as e:
            raise PreconditionError(f"could not load public keys: {e}") from e
        if not keys:
            raise PreconditionError("no public keys to encrypt to")

        registry = await asyncio.to_thread(self.track_repo.get_secret_registry)
        lock = threading.Lock()
        encrypted: list[str] = []

        def _encrypt(secret_id: str) -> None:
            plain = guard(secret_id, "read", self.secret_repo.get_decrypted_secret, secret_id)
            if not plain.decrypted_data:
                raise SecretError(secret_id, "encrypt", EncryptError("secret is empty"))

            with lock:
                changed = registry.changed(secret_id, plain.decrypted_data)
            if changed or not guard(
                secret_id, "exists", self.secret_repo.exists_encrypted, secret_id
            ):
                self._encrypt_secret(secret_id, plain, keys)
                with lock:
                    registry.track(secret_id, plain.decrypted_data)
                    encrypted.append(secret_id)
            else:
                logger.debug("Secret %s unchanged, keeping its encrypted file", secret_id)
            guard(secret_id, "cleanup", self.secret_repo.delete_decrypted_secret, secret_id)

        failures += await run_per_secret(secret_ids, _encrypt, self.concurrency)

        if encrypted:
            await asyncio.to_thread(self.track_repo.save_secret_registry, registry)
        logger.info("Encrypted %d secrets, %d failed", len(encrypted), len(failures))
        raise_for_failures("box encryption failed", failures)

    def _encrypt_secret(self, secret_id: str, plain: Secret, keys: PublicKeyList) -> None:
        secret = guard(secret_id, "encrypt", self.encrypter.encrypt, plain, keys)
        guard(secret_id, "save", self.secret_repo.save_encrypted_secret, secret)
