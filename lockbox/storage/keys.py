"""File-backed key repository."""

from __future__ import annotations

import logging
import stat
from collections.abc import Callable
from pathlib import Path

from lockbox.crypto.keys import (
    PrivateKey,
    PrivateKeyList,
    PublicKey,
    PublicKeyList,
    generate_keypair,
    parse_private_key,
    parse_public_key,
)
from lockbox.errors import KeyLoadError

logger = logging.getLogger(__name__)


def _key_files(path: Path) -> list[Path]:
    if not path.exists():
        raise KeyLoadError(f"key location not found: {path}")
    if path.is_dir():
        return sorted(p for p in path.iterdir() if p.is_file() and not p.name.startswith("."))
    return [path]


def _load(path: Path, parse: Callable[[str], PublicKey | PrivateKey]) -> list:
    keys = []
    for key_file in _key_files(path):
        try:
            text = key_file.read_text()
        except OSError as e:
            raise KeyLoadError(f"cannot read key file {key_file}: {e}") from e
        for lineno, line in enumerate(text.splitlines(), 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                keys.append(parse(line))
            except ValueError as e:
                raise KeyLoadError(f"malformed key in {key_file}:{lineno}: {e}") from e
    return keys


class FileKeyRepository:
    """Keys stored one per line in a key file or a directory of key files."""

    def __init__(self, public_keys_path: Path | str, private_keys_path: Path | str):
        self.public_keys_path = Path(public_keys_path)
        self.private_keys_path = Path(private_keys_path)

    def list_public_keys(self) -> PublicKeyList:
        keys = PublicKeyList(_load(self.public_keys_path, parse_public_key))
        logger.debug("Loaded %d public keys from %s", len(keys), self.public_keys_path)
        return keys

    def list_private_keys(self) -> PrivateKeyList:
        keys = PrivateKeyList(_load(self.private_keys_path, parse_private_key))
        logger.debug("Loaded %d private keys from %s", len(keys), self.private_keys_path)
        return keys


def init_keypair(
    public_keys_path: Path | str,
    private_key_path: Path | str,
    name: str = "default",
) -> tuple[Path, Path]:
    """Generate a keypair into the configured locations.

    Idempotent: an existing private key file is reused and its public key
    written (again) to ``<public_keys_path>/<name>.pub``. Returns the paths.
    """
    private_path = Path(private_key_path)
    public_dir = Path(public_keys_path)

    if private_path.exists():
        existing = _load(private_path, parse_private_key)
        if not existing:
            raise KeyLoadError(f"private key file {private_path} holds no keys")
        private = existing[0]
        logger.info("Reusing private key at %s", private_path)
    else:
        private, _ = generate_keypair()
        private_path.parent.mkdir(parents=True, exist_ok=True)
        private_path.write_text(private.encode() + "\n")
        private_path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 600
        logger.info("Generated private key at %s", private_path)

    public_dir.mkdir(parents=True, exist_ok=True)
    public_path = public_dir / f"{name}.pub"
    public_path.write_text(private.public_key().encode() + "\n")
    return private_path, public_path
