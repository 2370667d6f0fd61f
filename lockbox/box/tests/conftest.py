"""
Test fixtures for box operations.

Collaborators are MagicMocks so every call can be asserted; no files or
real cryptography are involved.
"""

from __future__ import annotations

from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

from lockbox.crypto.keys import PrivateKeyList, PublicKeyList
from lockbox.models import SecretRegistry


@dataclass
class Mocks:
    key_repo: MagicMock
    secret_repo: MagicMock
    track_repo: MagicMock
    encrypter: MagicMock
    id_processor: MagicMock


@pytest.fixture
def mocks() -> Mocks:
    m = Mocks(
        key_repo=MagicMock(),
        secret_repo=MagicMock(),
        track_repo=MagicMock(),
        encrypter=MagicMock(),
        id_processor=MagicMock(),
    )
    # Identity resolution unless a test says otherwise
    m.id_processor.process_id.side_effect = lambda secret_id: secret_id
    m.key_repo.list_private_keys.return_value = PrivateKeyList()
    m.key_repo.list_public_keys.return_value = PublicKeyList(["recipient"])
    m.track_repo.get_secret_registry.return_value = SecretRegistry()
    return m

