"""Decrypt secrets to disk, or print a single one."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from lockbox.box.batch import guard, require_in_scope, resolve_ids, run_per_secret
from lockbox.config import DEFAULT_CONCURRENCY
from lockbox.crypto import Encrypter, PrivateKeyList
from lockbox.errors import (
    BoxValidationError,
    PreconditionError,
    RequestError,
    SecretError,
    raise_for_failures,
)
from lockbox.process import IDProcessor
from lockbox.storage import KeyRepository, SecretRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecryptBoxRequest:
    secret_ids: Sequence[str] = ()
    force: bool = False  # overwrite existing plaintext files


class DecryptionService:
    def __init__(
        self,
        *,
        key_repo: KeyRepository,
        secret_repo: SecretRepository,
        encrypter: Encrypter,
        id_processor: IDProcessor,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        self.key_repo = key_repo
        self.secret_repo = secret_repo
        self.encrypter = encrypter
        self.id_processor = id_processor
        self.concurrency = concurrency

    async def _load_keys(self) -> PrivateKeyList:
        try:
            return await asyncio.to_thread(self.key_repo.list_private_keys)
        except Exception as e:
            raise PreconditionError(f"could not load private keys: {e}") from e

    async def decrypt_box(self, req: DecryptBoxRequest) -> None:
        """Decrypt the requested secrets next to their encrypted files."""
        secret_ids, failures = resolve_ids(self.id_processor, req.secret_ids)
        require_in_scope(secret_ids, failures, "decrypt")
        keys = await self._load_keys()

        def _decrypt(secret_id: str) -> None:
            self._decrypt_secret(secret_id, keys, req.force)

        failures += await run_per_secret(secret_ids, _decrypt, self.concurrency)
        logger.info(
            "Decrypted %d secrets, %d failed",
            len(secret_ids) - sum(1 for f in failures if f.stage != "process"),
            len(failures),
        )
        raise_for_failures("box decryption failed", failures)

    def _decrypt_secret(self, secret_id: str, keys: PrivateKeyList, force: bool) -> None:
        if not force and guard(secret_id, "exists", self.secret_repo.exists_decrypted, secret_id):
            raise SecretError(
                secret_id,
                "exists",
                FileExistsError("decrypted secret already exists (use force to overwrite)"),
            )
        secret = guard(secret_id, "fetch", self.secret_repo.get_encrypted_secret, secret_id)
        secret = guard(secret_id, "decrypt", self.encrypter.decrypt, secret, keys)
        guard(secret_id, "save", self.secret_repo.save_decrypted_secret, secret)

    async def cat_secret(self, secret_id: str) -> bytes:
        """Decrypt a single secret in memory and return its plaintext."""
        secret_ids, failures = resolve_ids(self.id_processor, [secret_id])
        if failures:
            raise BoxValidationError("secret ID processing failed", failures)
        if not secret_ids:
            raise RequestError(f"secret {secret_id!r} is excluded")
        keys = await self._load_keys()

        canonical = secret_ids[0]

        def _cat() -> bytes:
            secret = guard(canonical, "fetch", self.secret_repo.get_encrypted_secret, canonical)
            return guard(canonical, "decrypt", self.encrypter.decrypt, secret, keys).decrypted_data

        try:
            return await asyncio.to_thread(_cat)
        except SecretError as e:
            raise BoxValidationError("cat failed", [e]) from None
