"""
Secret ID processing — turns raw requested IDs into canonical box IDs.

A processor returns the canonical ID, "" when the ID is deliberately
excluded (ignored, wrong tracked state), or raises InvalidIDError when the
ID cannot be resolved at all. Excluded is never an error.

Usage:
    from lockbox.process import default_chain
    processor = default_chain(cfg, registry)
    processor.process_id("./app/db.env.lockbox")   # "app/db.env"
"""

from __future__ import annotations

import fnmatch
import logging
import posixpath
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Protocol

from lockbox.errors import InvalidIDError

if TYPE_CHECKING:
    from lockbox.config import Config
    from lockbox.models import SecretRegistry

logger = logging.getLogger(__name__)


class IDProcessor(Protocol):
    def process_id(self, secret_id: str) -> str: ...


class PathSanitizer:
    """Normalize a path-like ID relative to the box root.

    Strips the encrypted extension so that ``a.env`` and ``a.env.lockbox``
    name the same secret.
    """

    def __init__(self, encrypted_ext: str = ".lockbox"):
        self.encrypted_ext = encrypted_ext

    def process_id(self, secret_id: str) -> str:
        raw = secret_id.strip().replace("\\", "/")
        if not raw:
            raise InvalidIDError("secret ID cannot be empty")
        if PurePosixPath(raw).is_absolute():
            raise InvalidIDError(f"secret ID must be relative to the box root: {secret_id!r}")

        clean = posixpath.normpath(raw)
        if clean == ".." or clean.startswith("../"):
            raise InvalidIDError(f"secret ID escapes the box root: {secret_id!r}")

        if self.encrypted_ext and clean.endswith(self.encrypted_ext):
            clean = clean[: -len(self.encrypted_ext)]
        if clean in ("", "."):
            raise InvalidIDError(f"secret ID has no name: {secret_id!r}")
        return clean


class IgnoreProcessor:
    """Exclude IDs matching any fnmatch pattern (full path or basename)."""

    def __init__(self, patterns: Iterable[str] = ()):
        self.patterns = [p.rstrip("/") for p in patterns if p.strip()]

    def is_ignored(self, secret_id: str) -> bool:
        name = posixpath.basename(secret_id)
        for pattern in self.patterns:
            if fnmatch.fnmatch(secret_id, pattern) or fnmatch.fnmatch(name, pattern):
                return True
            # A pattern naming a directory ignores everything below it
            if secret_id.startswith(pattern + "/"):
                return True
        return False

    def process_id(self, secret_id: str) -> str:
        if self.is_ignored(secret_id):
            logger.debug("Ignoring secret %s", secret_id)
            return ""
        return secret_id


class TrackedStateProcessor:
    """Keep only IDs whose tracked state matches ``tracked``."""

    def __init__(self, registry: SecretRegistry, tracked: bool = True):
        self.registry = registry
        self.tracked = tracked

    def process_id(self, secret_id: str) -> str:
        if self.registry.is_tracked(secret_id) != self.tracked:
            logger.debug(
                "Skipping secret %s (tracked=%s, want %s)",
                secret_id,
                not self.tracked,
                self.tracked,
            )
            return ""
        return secret_id


class IDProcessorChain:
    """Run processors in order; the first exclusion stops the chain."""

    def __init__(self, processors: Iterable[IDProcessor]):
        self.processors = list(processors)

    def process_id(self, secret_id: str) -> str:
        for processor in self.processors:
            secret_id = processor.process_id(secret_id)
            if not secret_id:
                return ""
        return secret_id


def load_ignore_patterns(path: Path | str) -> list[str]:
    """Read an ignore file. A missing file means no patterns."""
    path = Path(path)
    if not path.exists():
        return []
    patterns = []
    for line in path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            patterns.append(line)
    return patterns


def default_chain(
    cfg: Config,
    registry: SecretRegistry | None = None,
    *,
    tracked: bool | None = None,
) -> IDProcessorChain:
    """Sanitize, apply the ignore file and optionally filter by tracked state."""
    processors: list[IDProcessor] = [
        PathSanitizer(cfg.encrypted_ext),
        IgnoreProcessor(load_ignore_patterns(cfg.ignore_file)),
    ]
    if registry is not None and tracked is not None:
        processors.append(TrackedStateProcessor(registry, tracked=tracked))
    return IDProcessorChain(processors)
