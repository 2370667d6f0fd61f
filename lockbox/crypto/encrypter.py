"""
Hybrid X25519 + ChaCha20-Poly1305 encryption for box secrets.

Each secret gets a random 32-byte file key. The file key is wrapped once per
recipient with an ephemeral X25519 exchange (HKDF-SHA256 derived wrap key)
and the body is sealed with the file key, binding the header as AAD:

    lockbox.v1
    -> X25519 <ephemeral public b64> <wrapped file key b64>
    ...
    ---
    <nonce (12 bytes)><ciphertext + tag>
"""

from __future__ import annotations

import base64
import binascii
import secrets
from dataclasses import replace
from typing import Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from lockbox.crypto.keys import PrivateKey, PrivateKeyList, PublicKey, PublicKeyList
from lockbox.errors import DecryptError, EncryptError
from lockbox.models import Secret

MAGIC = b"lockbox.v1\n"
STANZA_TAG = b"-> X25519 "
HEADER_END = b"---\n"
NONCE_SIZE = 12
FILE_KEY_SIZE = 32
WRAP_INFO = b"lockbox.v1 X25519"
_WRAP_NONCE = b"\x00" * NONCE_SIZE


class Encrypter(Protocol):
    def encrypt(self, secret: Secret, keys: PublicKeyList) -> Secret: ...

    def decrypt(self, secret: Secret, keys: PrivateKeyList) -> Secret: ...


def _wrap_key(shared: bytes, ephemeral: bytes, recipient: bytes) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=ephemeral + recipient,
        info=WRAP_INFO,
    ).derive(shared)


def _wrap(file_key: bytes, recipient: PublicKey) -> bytes:
    ephemeral = X25519PrivateKey.generate()
    eph_pub = PrivateKey(ephemeral).public_key().raw
    wrap_key = _wrap_key(ephemeral.exchange(recipient.key), eph_pub, recipient.raw)
    wrapped = ChaCha20Poly1305(wrap_key).encrypt(_WRAP_NONCE, file_key, None)
    return (
        STANZA_TAG
        + base64.b64encode(eph_pub)
        + b" "
        + base64.b64encode(wrapped)
        + b"\n"
    )


def _unwrap(stanzas: list[tuple[bytes, bytes]], keys: PrivateKeyList) -> bytes | None:
    for eph_pub, wrapped in stanzas:
        peer = X25519PublicKey.from_public_bytes(eph_pub)
        for identity in keys:
            try:
                shared = identity.key.exchange(peer)
            except ValueError:
                # Low-order ephemeral point, cannot be ours
                continue
            wrap_key = _wrap_key(shared, eph_pub, identity.public_key().raw)
            try:
                return ChaCha20Poly1305(wrap_key).decrypt(_WRAP_NONCE, wrapped, None)
            except InvalidTag:
                continue
    return None


def _parse_header(data: bytes) -> tuple[bytes, list[tuple[bytes, bytes]], bytes]:
    """Split a payload into (header, stanzas, body). Raises ValueError."""
    if not data.startswith(MAGIC):
        raise ValueError("missing lockbox.v1 header")
    end = data.find(b"\n" + HEADER_END)
    if end < 0:
        raise ValueError("unterminated header")
    header_len = end + 1 + len(HEADER_END)
    header = data[:header_len]

    stanzas = []
    for line in data[len(MAGIC) : end + 1].splitlines():
        if not line.startswith(STANZA_TAG):
            raise ValueError(f"unknown header line {line[:32]!r}")
        parts = line[len(STANZA_TAG) :].split(b" ")
        if len(parts) != 2:
            raise ValueError("malformed recipient stanza")
        try:
            eph_pub, wrapped = (base64.b64decode(p, validate=True) for p in parts)
        except binascii.Error as e:
            raise ValueError(f"malformed recipient stanza: {e}") from None
        if len(eph_pub) != 32:
            raise ValueError("malformed recipient stanza: bad ephemeral key")
        stanzas.append((eph_pub, wrapped))
    if not stanzas:
        raise ValueError("no recipients in header")
    return header, stanzas, data[header_len:]


class X25519Encrypter:
    """Encrypter backed by the ``cryptography`` primitives."""

    def encrypt(self, secret: Secret, keys: PublicKeyList) -> Secret:
        if secret.decrypted_data is None:
            raise EncryptError(f"secret {secret.id!r} has no decrypted data")
        if not keys:
            raise EncryptError("at least one public key is required")

        file_key = secrets.token_bytes(FILE_KEY_SIZE)
        header = MAGIC + b"".join(_wrap(file_key, k) for k in keys) + HEADER_END
        nonce = secrets.token_bytes(NONCE_SIZE)
        body = ChaCha20Poly1305(file_key).encrypt(nonce, secret.decrypted_data, header)
        return replace(secret, encrypted_data=header + nonce + body)

    def decrypt(self, secret: Secret, keys: PrivateKeyList) -> Secret:
        if secret.encrypted_data is None:
            raise DecryptError(f"secret {secret.id!r} has no encrypted data")
        try:
            header, stanzas, body = _parse_header(secret.encrypted_data)
        except ValueError as e:
            raise DecryptError(f"malformed encrypted secret {secret.id!r}: {e}") from e

        file_key = _unwrap(stanzas, keys)
        if file_key is None:
            raise DecryptError(f"no private key can decrypt secret {secret.id!r}")
        if len(body) < NONCE_SIZE + 16:
            raise DecryptError(f"encrypted secret {secret.id!r} is truncated")

        try:
            plaintext = ChaCha20Poly1305(file_key).decrypt(
                body[:NONCE_SIZE], body[NONCE_SIZE:], header
            )
        except InvalidTag:
            raise DecryptError(f"encrypted secret {secret.id!r} failed authentication") from None
        return replace(secret, decrypted_data=plaintext)
