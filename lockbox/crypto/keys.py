"""
X25519 key material and its textual encoding.

    lockbox-pub:<urlsafe base64 of the 32-byte public key>
    LOCKBOX-SECRET-KEY:<urlsafe base64 of the 32-byte private key>
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

PUBLIC_PREFIX = "lockbox-pub:"
PRIVATE_PREFIX = "LOCKBOX-SECRET-KEY:"
KEY_SIZE = 32


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii")


def _b64decode(text: str) -> bytes:
    try:
        return base64.urlsafe_b64decode(text.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"invalid base64 key data: {e}") from None


@dataclass(frozen=True)
class PublicKey:
    """A recipient that secrets are encrypted to."""

    key: X25519PublicKey

    @property
    def raw(self) -> bytes:
        return self.key.public_bytes(Encoding.Raw, PublicFormat.Raw)

    def encode(self) -> str:
        return PUBLIC_PREFIX + _b64encode(self.raw)


@dataclass(frozen=True)
class PrivateKey:
    """An identity able to decrypt secrets encrypted to its public key."""

    key: X25519PrivateKey

    @property
    def raw(self) -> bytes:
        return self.key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.public_key())

    def encode(self) -> str:
        return PRIVATE_PREFIX + _b64encode(self.raw)

    def __repr__(self) -> str:
        return f"PrivateKey(public={self.public_key().encode()})"


class _KeyList(Sequence):
    """Immutable ordered key collection. Empty is a valid value."""

    def __init__(self, keys: Iterable = ()):
        self._keys = tuple(keys)

    def __getitem__(self, index):
        return self._keys[index]

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator:
        return iter(self._keys)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self._keys)} keys)"


class PublicKeyList(_KeyList):
    pass


class PrivateKeyList(_KeyList):
    pass


def generate_keypair() -> tuple[PrivateKey, PublicKey]:
    """Create a new random identity and its recipient."""
    private = PrivateKey(X25519PrivateKey.generate())
    return private, private.public_key()


def _parse(text: str, prefix: str) -> bytes:
    text = text.strip()
    if not text.startswith(prefix):
        raise ValueError(f"key must start with {prefix!r}")
    raw = _b64decode(text[len(prefix) :])
    if len(raw) != KEY_SIZE:
        raise ValueError(f"key must be {KEY_SIZE} bytes, got {len(raw)}")
    return raw


def parse_public_key(text: str) -> PublicKey:
    """Parse an encoded public key. Raises ValueError when malformed."""
    return PublicKey(X25519PublicKey.from_public_bytes(_parse(text, PUBLIC_PREFIX)))


def parse_private_key(text: str) -> PrivateKey:
    """Parse an encoded private key. Raises ValueError when malformed."""
    return PrivateKey(X25519PrivateKey.from_private_bytes(_parse(text, PRIVATE_PREFIX)))
