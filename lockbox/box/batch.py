"""
Shared batch mechanics for box operations.

Every box operation resolves its requested IDs first, then runs one
independent unit of work per in-scope secret. Units run on worker threads,
bounded by a semaphore, and their SecretErrors are collected (never the
first one only) in request order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

from lockbox.errors import BoxValidationError, RequestError, SecretError
from lockbox.process import IDProcessor

logger = logging.getLogger(__name__)


def resolve_ids(processor: IDProcessor, raw_ids: Iterable[str]) -> tuple[list[str], list[SecretError]]:
    """Resolve raw IDs into unique canonical IDs, keeping request order.

    Returns (in_scope_ids, failures). Excluded IDs appear in neither.
    """
    in_scope: list[str] = []
    failures: list[SecretError] = []
    seen: set[str] = set()

    for raw_id in raw_ids:
        try:
            secret_id = processor.process_id(raw_id)
        except Exception as e:
            logger.warning("Could not process secret ID %r: %s", raw_id, e)
            failures.append(SecretError(raw_id, "process", e))
            continue
        if not secret_id:
            continue
        if secret_id in seen:
            continue
        seen.add(secret_id)
        in_scope.append(secret_id)

    return in_scope, failures


def require_in_scope(in_scope: list[str], failures: list[SecretError], action: str) -> None:
    """Raise RequestError when nothing survived resolution.

    Resolution failures, if any, are chained as the cause.
    """
    if in_scope:
        return
    cause = BoxValidationError("secret ID processing failed", failures) if failures else None
    raise RequestError(f"no secrets to {action}") from cause


async def run_per_secret(
    secret_ids: list[str],
    unit: Callable[[str], None],
    concurrency: int = 1,
) -> list[SecretError]:
    """Run ``unit(secret_id)`` for every ID and collect its failures.

    ``unit`` is blocking and runs via asyncio.to_thread. Anything other than
    a SecretError escaping a unit is collected as stage ``unexpected``.
    Cancellation stops units that have not started yet and propagates
    CancelledError.
    """
    sem = asyncio.Semaphore(max(1, concurrency))

    async def _run(secret_id: str) -> None:
        async with sem:
            await asyncio.to_thread(unit, secret_id)

    results = await asyncio.gather(
        *(_run(secret_id) for secret_id in secret_ids), return_exceptions=True
    )

    failures: list[SecretError] = []
    for secret_id, result in zip(secret_ids, results):
        if result is None:
            continue
        if not isinstance(result, Exception):
            raise result
        if not isinstance(result, SecretError):
            logger.error("Unexpected failure for secret %s", secret_id, exc_info=result)
            result = SecretError(secret_id, "unexpected", result)
        else:
            logger.warning(
                "Secret %s failed at %s: %s",
                result.secret_id,
                result.stage,
                result.__cause__ or result,
            )
        failures.append(result)
    return failures


def guard(secret_id: str, stage: str, fn: Callable, *args):
    """Call ``fn(*args)``, turning any failure into a SecretError for ``stage``."""
    try:
        return fn(*args)
    except SecretError:
        raise
    except Exception as e:
        raise SecretError(secret_id, stage, e) from e
