"""
Root-level shared test fixtures.

Inherited by the lockbox subpackage test suites and tests/.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from lockbox.config import reset_config


@pytest.fixture
def clean_env(monkeypatch):
    """Remove Lockbox env vars that leak between tests."""
    for key in [
        "LOCKBOX_ROOT",
        "LOCKBOX_PUBLIC_KEYS",
        "LOCKBOX_PRIVATE_KEYS",
        "LOCKBOX_REGISTRY",
        "LOCKBOX_IGNORE_FILE",
        "LOCKBOX_ENCRYPTED_EXT",
        "LOCKBOX_CONCURRENCY",
    ]:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def box(tmp_path: Path, monkeypatch, clean_env) -> Path:
    """An empty box rooted in a temp dir, with config pointing at it."""
    root = tmp_path / "box"
    root.mkdir()
    monkeypatch.setenv("LOCKBOX_ROOT", str(root))
    monkeypatch.setenv("LOCKBOX_PRIVATE_KEYS", str(tmp_path / "home" / "private.key"))
    reset_config()
    yield root
    reset_config()
