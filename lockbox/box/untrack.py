"""Stop tracking secrets, optionally deleting their encrypted files."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from lockbox.box.batch import guard, require_in_scope, resolve_ids
from lockbox.errors import SecretError, raise_for_failures
from lockbox.process import IDProcessor
from lockbox.storage import SecretRepository, TrackRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UntrackBoxRequest:
    secret_ids: Sequence[str] = ()
    delete_files: bool = False


class UntrackService:
    def __init__(
        self,
        *,
        secret_repo: SecretRepository,
        track_repo: TrackRepository,
        id_processor: IDProcessor,
    ):
        self.secret_repo = secret_repo
        self.track_repo = track_repo
        self.id_processor = id_processor

    async def untrack_box(self, req: UntrackBoxRequest) -> None:
        secret_ids, failures = resolve_ids(self.id_processor, req.secret_ids)
        require_in_scope(secret_ids, failures, "untrack")

        registry = await asyncio.to_thread(self.track_repo.get_secret_registry)
        untracked = 0
        for secret_id in secret_ids:
            if not registry.untrack(secret_id):
                failures.append(SecretError(secret_id, "untrack", KeyError("secret is not tracked")))
                continue
            untracked += 1
            if req.delete_files:
                try:
                    await asyncio.to_thread(
                        guard, secret_id, "delete", self.secret_repo.delete_encrypted_secret, secret_id
                    )
                except SecretError as e:
                    logger.warning("Could not delete %s: %s", secret_id, e.__cause__)
                    failures.append(e)

        if untracked:
            await asyncio.to_thread(self.track_repo.save_secret_registry, registry)
        logger.info("Untracked %d secrets, %d failed", untracked, len(failures))
        raise_for_failures("box untrack failed", failures)
