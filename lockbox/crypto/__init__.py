"""
Lockbox crypto — X25519 keys and the hybrid secret encrypter.

Public API:
    generate_keypair()               → (PrivateKey, PublicKey)
    parse_public_key(text)           → PublicKey
    parse_private_key(text)          → PrivateKey
    X25519Encrypter().encrypt(...)   → Secret with encrypted_data
    X25519Encrypter().decrypt(...)   → Secret with decrypted_data
"""

from __future__ import annotations

from lockbox.crypto.encrypter import Encrypter, X25519Encrypter
from lockbox.crypto.keys import (
    PrivateKey,
    PrivateKeyList,
    PublicKey,
    PublicKeyList,
    generate_keypair,
    parse_private_key,
    parse_public_key,
)

__all__ = [
    "Encrypter",
    "X25519Encrypter",
    "PrivateKey",
    "PrivateKeyList",
    "PublicKey",
    "PublicKeyList",
    "generate_keypair",
    "parse_private_key",
    "parse_public_key",
]
