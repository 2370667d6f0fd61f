"""
Lockbox error taxonomy.

Request-level and precondition-level errors abort a box operation at once.
Per-secret failures never abort; they are collected as SecretError and
raised together as a BoxValidationError (an ExceptionGroup) at the end.

Usage:
    try:
        await svc.validate_box(req)
    except RequestError:
        ...  # nothing to validate
    except PreconditionError:
        ...  # keys could not be loaded
    except BoxValidationError as eg:
        for err in eg.exceptions:
            print(err.secret_id, err.__cause__)
"""

from __future__ import annotations

from collections.abc import Sequence


class LockboxError(Exception):
    """Base class for every error Lockbox raises deliberately."""


# Collaborator errors


class InvalidIDError(LockboxError):
    """A secret identifier could not be normalized."""


class SecretNotFoundError(LockboxError):
    """A secret file does not exist in storage."""

    def __init__(self, secret_id: str, path: str | None = None):
        self.secret_id = secret_id
        self.path = path
        super().__init__(secret_id, path)

    def __str__(self) -> str:
        return f"secret {self.secret_id!r} not found" + (f" at {self.path}" if self.path else "")


class KeyLoadError(LockboxError):
    """Key material is missing, unreadable or malformed."""


class EncryptError(LockboxError):
    """A secret could not be encrypted."""


class DecryptError(LockboxError):
    """A secret could not be decrypted with any available key."""


class RegistryError(LockboxError):
    """The secret registry could not be loaded or saved."""


# Operation errors


class RequestError(LockboxError):
    """The request has no secrets in scope after identifier resolution."""


class PreconditionError(LockboxError):
    """A batch-wide precondition (usually key loading) failed."""


class SecretError(LockboxError):
    """A failure tied to a single secret.

    The underlying exception is kept as ``__cause__``.
    """

    def __init__(self, secret_id: str, stage: str, cause: BaseException | None = None):
        self.secret_id = secret_id
        self.stage = stage
        super().__init__(secret_id, stage, cause)
        self.__cause__ = cause

    def __str__(self) -> str:
        msg = f"{self.stage} {self.secret_id!r}"
        if self.__cause__ is not None:
            msg += f": {self.__cause__}"
        return msg


class BoxValidationError(ExceptionGroup):
    """One or more secrets of a box operation failed."""

    def derive(self, excs: Sequence[Exception]) -> BoxValidationError:
        return BoxValidationError(self.message, excs)

    @property
    def failed_ids(self) -> list[str]:
        return [e.secret_id for e in self.exceptions if isinstance(e, SecretError)]


def raise_for_failures(message: str, failures: list[SecretError]) -> None:
    """Raise a BoxValidationError if any failures were collected."""
    if failures:
        raise BoxValidationError(f"{message} ({len(failures)} failed)", failures)
