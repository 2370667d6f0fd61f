"""Rewrap encrypted secrets for the current set of public keys."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace

from lockbox.box.batch import guard, require_in_scope, resolve_ids, run_per_secret
from lockbox.config import DEFAULT_CONCURRENCY
from lockbox.crypto import Encrypter, PrivateKeyList, PublicKeyList
from lockbox.errors import PreconditionError, raise_for_failures
from lockbox.process import IDProcessor
from lockbox.storage import KeyRepository, SecretRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReencryptBoxRequest:
    secret_ids: Sequence[str] = ()


class ReencryptionService:
    """Decrypts and encrypts again in memory; plaintext never hits disk."""

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

    async def reencrypt_box(self, req: ReencryptBoxRequest) -> None:
        secret_ids, failures = resolve_ids(self.id_processor, req.secret_ids)
        require_in_scope(secret_ids, failures, "reencrypt")

        try:
            private_keys = await asyncio.to_thread(self.key_repo.list_private_keys)
            public_keys = await asyncio.to_thread(self.key_repo.list_public_keys)
        except Exception as e:
            raise PreconditionError(f"could not load keys: {e}") from e
        if not public_keys:
            raise PreconditionError("no public keys to encrypt to")

        def _reencrypt(secret_id: str) -> None:
            self._reencrypt_secret(secret_id, private_keys, public_keys)

        failures += await run_per_secret(secret_ids, _reencrypt, self.concurrency)
        logger.info(
            "Reencrypted %d secrets for %d recipients, %d failed",
            len(secret_ids) - sum(1 for f in failures if f.stage != "process"),
            len(public_keys),
            len(failures),
        )
        raise_for_failures("box reencryption failed", failures)

    def _reencrypt_secret(
        self,
        secret_id: str,
        private_keys: PrivateKeyList,
        public_keys: PublicKeyList,
    ) -> None:
        secret = guard(secret_id, "fetch", self.secret_repo.get_encrypted_secret, secret_id)
        secret = guard(secret_id, "decrypt", self.encrypter.decrypt, secret, private_keys)
        secret = replace(secret, encrypted_data=None)
        secret = guard(secret_id, "encrypt", self.encrypter.encrypt, secret, public_keys)
        guard(secret_id, "save", self.secret_repo.save_encrypted_secret, secret)
