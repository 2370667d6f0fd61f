"""
Box validation — checks that every requested secret is stored and,
optionally, decryptable with the available private keys.

Failure handling:
    - nothing in scope after ID processing  → RequestError (no storage access)
    - private keys cannot be loaded          → PreconditionError (no per-secret work)
    - ID processing/fetch/decrypt failures   → collected, every secret is still
                                               checked, then one BoxValidationError

Validation is read-only: it never writes secrets nor touches the registry.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from lockbox.box.batch import guard, require_in_scope, resolve_ids, run_per_secret
from lockbox.config import DEFAULT_CONCURRENCY
from lockbox.crypto import Encrypter, PrivateKeyList
from lockbox.errors import DecryptError, PreconditionError, SecretError, raise_for_failures
from lockbox.process import IDProcessor
from lockbox.storage import KeyRepository, SecretRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidateBoxRequest:
    secret_ids: Sequence[str] = ()
    decrypt: bool = False


class ValidationService:
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

    async def validate_box(self, req: ValidateBoxRequest) -> list[str]:
        """Validate the requested secrets. Returns the validated canonical IDs."""
        secret_ids, failures = resolve_ids(self.id_processor, req.secret_ids)
        require_in_scope(secret_ids, failures, "validate")

        keys: PrivateKeyList | None = None
        if req.decrypt:
            try:
                keys = await asyncio.to_thread(self.key_repo.list_private_keys)
            except Exception as e:
                raise PreconditionError(f"could not load private keys: {e}") from e

        def _validate(secret_id: str) -> None:
            self._validate_secret(secret_id, keys)

        failures += await run_per_secret(secret_ids, _validate, self.concurrency)

        logger.info(
            "Validated %d secrets (decrypt=%s): %d ok, %d failed",
            len(secret_ids),
            req.decrypt,
            len(secret_ids) - sum(1 for f in failures if f.stage != "process"),
            len(failures),
        )
        raise_for_failures("box validation failed", failures)
        return secret_ids

    def _validate_secret(self, secret_id: str, keys: PrivateKeyList | None) -> None:
        secret = guard(secret_id, "fetch", self.secret_repo.get_encrypted_secret, secret_id)
        if keys is None:
            return

        decrypted = guard(secret_id, "decrypt", self.encrypter.decrypt, secret, keys)
        if decrypted is None or not decrypted.decrypted_data:
            raise SecretError(secret_id, "decrypt", DecryptError("decryption produced no data"))
