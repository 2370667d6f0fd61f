"""
Centralized configuration for Lockbox.

All configuration is loaded from environment variables with sensible defaults.

Usage:
    from lockbox.config import get_config
    cfg = get_config()
    print(cfg.root)              # Path.cwd() or $LOCKBOX_ROOT
    print(cfg.keys.private_keys) # ~/.config/lockbox/private.key
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_ENCRYPTED_EXT = ".lockbox"
DEFAULT_CONCURRENCY = 8


@dataclass(frozen=True)
class KeysConfig:
    """Where public (recipient) and private (identity) keys live.

    Either path may be a single key file or a directory of key files.
    """

    public_keys: Path = field(default_factory=lambda: Path.cwd() / "keys")
    private_keys: Path = field(
        default_factory=lambda: Path.home() / ".config" / "lockbox" / "private.key"
    )


@dataclass(frozen=True)
class Config:
    """Top-level Lockbox configuration."""

    root: Path = field(default_factory=Path.cwd)
    keys: KeysConfig = field(default_factory=KeysConfig)
    registry: Path = field(default_factory=lambda: Path.cwd() / ".lockbox.json")
    ignore_file: Path = field(default_factory=lambda: Path.cwd() / ".lockboxignore")
    encrypted_ext: str = DEFAULT_ENCRYPTED_EXT

    # Per-secret units run in parallel up to this limit (1 = sequential)
    concurrency: int = DEFAULT_CONCURRENCY


# Singleton
_config: Config | None = None


def get_config() -> Config:
    """Get or create the singleton config from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = _load_from_env()
    return _config


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    return max(value, minimum)


def _load_from_env() -> Config:
    """Load configuration from environment variables."""
    root = Path(os.environ.get("LOCKBOX_ROOT", Path.cwd()))

    keys = KeysConfig(
        public_keys=Path(os.environ.get("LOCKBOX_PUBLIC_KEYS", root / "keys")),
        private_keys=Path(
            os.environ.get(
                "LOCKBOX_PRIVATE_KEYS",
                Path.home() / ".config" / "lockbox" / "private.key",
            )
        ),
    )

    ext = os.environ.get("LOCKBOX_ENCRYPTED_EXT", DEFAULT_ENCRYPTED_EXT)
    if not ext.startswith("."):
        ext = "." + ext

    return Config(
        root=root,
        keys=keys,
        registry=Path(os.environ.get("LOCKBOX_REGISTRY", root / ".lockbox.json")),
        ignore_file=Path(os.environ.get("LOCKBOX_IGNORE_FILE", root / ".lockboxignore")),
        encrypted_ext=ext,
        concurrency=_env_int("LOCKBOX_CONCURRENCY", DEFAULT_CONCURRENCY),
    )


def reset_config() -> None:
    """Reset the singleton config (for testing)."""
    global _config
    _config = None
