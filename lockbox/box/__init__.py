"""
Lockbox box operations.

Public API:
    ValidationService.validate_box(ValidateBoxRequest)     → None or raises
    EncryptionService.encrypt_box(EncryptBoxRequest)
    DecryptionService.decrypt_box(DecryptBoxRequest)
    DecryptionService.cat_secret(secret_id)                → bytes
    ReencryptionService.reencrypt_box(ReencryptBoxRequest)
    UntrackService.untrack_box(UntrackBoxRequest)
"""

from __future__ import annotations

from lockbox.box.decrypt import DecryptBoxRequest, DecryptionService
from lockbox.box.encrypt import EncryptBoxRequest, EncryptionService
from lockbox.box.reencrypt import ReencryptBoxRequest, ReencryptionService
from lockbox.box.untrack import UntrackBoxRequest, UntrackService
from lockbox.box.validate import ValidateBoxRequest, ValidationService

__all__ = [
    "DecryptBoxRequest",
    "DecryptionService",
    "EncryptBoxRequest",
    "EncryptionService",
    "ReencryptBoxRequest",
    "ReencryptionService",
    "UntrackBoxRequest",
    "UntrackService",
    "ValidateBoxRequest",
    "ValidationService",
]
