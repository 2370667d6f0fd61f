"""Tests for lockbox.box.validate — box validation engine."""

from __future__ import annotations

import asyncio
import threading
import time
from unittest.mock import call

import pytest

from lockbox.box.validate import ValidateBoxRequest, ValidationService
from lockbox.errors import (
    BoxValidationError,
    InvalidIDError,
    KeyLoadError,
    PreconditionError,
    RequestError,
    SecretError,
    SecretNotFoundError,
)
from lockbox.models import Secret


def _service(m, concurrency: int = 4) -> ValidationService:
    return ValidationService(
        key_repo=m.key_repo,
        secret_repo=m.secret_repo,
        encrypter=m.encrypter,
        id_processor=m.id_processor,
        concurrency=concurrency,
    )


def _store(m, data: dict[str, bytes]) -> None:
    def _get(secret_id: str) -> Secret:
        if secret_id not in data:
            raise SecretNotFoundError(secret_id)
        return Secret(id=secret_id, encrypted_data=data[secret_id])

    m.secret_repo.get_encrypted_secret.side_effect = _get


def _decrypt_same(secret: Secret, keys) -> Secret:
    return Secret(id=secret.id, decrypted_data=secret.encrypted_data)


class TestRequestErrors:
    @pytest.mark.asyncio
    async def test_no_secrets_fails(self, mocks):
        with pytest.raises(RequestError):
            await _service(mocks).validate_box(ValidateBoxRequest(decrypt=True))

        mocks.key_repo.list_private_keys.assert_not_called()
        mocks.secret_repo.get_encrypted_secret.assert_not_called()
        mocks.encrypter.decrypt.assert_not_called()

    @pytest.mark.asyncio
    async def test_all_excluded_fails(self, mocks):
        mocks.id_processor.process_id.side_effect = lambda secret_id: ""

        with pytest.raises(RequestError):
            await _service(mocks).validate_box(
                ValidateBoxRequest(secret_ids=["a", "b"], decrypt=True)
            )

        assert mocks.id_processor.process_id.call_count == 2
        mocks.key_repo.list_private_keys.assert_not_called()
        mocks.secret_repo.get_encrypted_secret.assert_not_called()

    @pytest.mark.asyncio
    async def test_processing_error_fails(self, mocks):
        mocks.id_processor.process_id.side_effect = InvalidIDError("something")

        with pytest.raises(RequestError) as exc_info:
            await _service(mocks).validate_box(ValidateBoxRequest(secret_ids=["secret1"]))

        # The processing failure is kept as the cause
        cause = exc_info.value.__cause__
        assert isinstance(cause, BoxValidationError)
        assert cause.failed_ids == ["secret1"]
        mocks.secret_repo.get_encrypted_secret.assert_not_called()


class TestKeyLoading:
    @pytest.mark.asyncio
    async def test_key_error_aborts(self, mocks):
        mocks.key_repo.list_private_keys.side_effect = KeyLoadError("something")

        with pytest.raises(PreconditionError) as exc_info:
            await _service(mocks).validate_box(
                ValidateBoxRequest(secret_ids=["secret1", "secret2"], decrypt=True)
            )

        assert isinstance(exc_info.value.__cause__, KeyLoadError)
        mocks.secret_repo.get_encrypted_secret.assert_not_called()
        mocks.encrypter.decrypt.assert_not_called()

    @pytest.mark.asyncio
    async def test_keys_loaded_once(self, mocks):
        _store(mocks, {"a": b"1", "b": b"2", "c": b"3"})
        mocks.encrypter.decrypt.side_effect = _decrypt_same

        await _service(mocks).validate_box(
            ValidateBoxRequest(secret_ids=["a", "b", "c"], decrypt=True)
        )

        mocks.key_repo.list_private_keys.assert_called_once_with()


class TestValidate:
    @pytest.mark.asyncio
    async def test_validates_with_decrypt(self, mocks):
        secret = Secret(id="secret1", encrypted_data=b"test1")
        mocks.secret_repo.get_encrypted_secret.return_value = secret
        mocks.encrypter.decrypt.return_value = Secret(id="secret1", decrypted_data=b"test1")

        await _service(mocks).validate_box(
            ValidateBoxRequest(secret_ids=["secret1"], decrypt=True)
        )

        mocks.id_processor.process_id.assert_called_once_with("secret1")
        mocks.secret_repo.get_encrypted_secret.assert_called_once_with("secret1")
        mocks.encrypter.decrypt.assert_called_once_with(
            secret, mocks.key_repo.list_private_keys.return_value
        )

    @pytest.mark.asyncio
    async def test_validates_without_decrypt(self, mocks):
        _store(mocks, {"secret1": b"test1"})

        await _service(mocks).validate_box(
            ValidateBoxRequest(secret_ids=["secret1"], decrypt=False)
        )

        mocks.secret_repo.get_encrypted_secret.assert_called_once_with("secret1")
        mocks.key_repo.list_private_keys.assert_not_called()
        mocks.encrypter.decrypt.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_secret_fails_without_decrypt(self, mocks):
        _store(mocks, {})

        with pytest.raises(BoxValidationError) as exc_info:
            await _service(mocks).validate_box(ValidateBoxRequest(secret_ids=["secret1"]))

        assert exc_info.value.failed_ids == ["secret1"]
        mocks.key_repo.list_private_keys.assert_not_called()

    @pytest.mark.asyncio
    async def test_ignored_secrets_are_not_used(self, mocks):
        mocks.id_processor.process_id.side_effect = lambda s: "" if s == "ignored" else s
        _store(mocks, {"secret1": b"test1", "ignored": b"nope"})
        mocks.encrypter.decrypt.side_effect = _decrypt_same

        await _service(mocks).validate_box(
            ValidateBoxRequest(secret_ids=["secret1", "ignored"], decrypt=True)
        )

        mocks.secret_repo.get_encrypted_secret.assert_called_once_with("secret1")
        assert mocks.encrypter.decrypt.call_count == 1

    @pytest.mark.asyncio
    async def test_canonical_duplicates_checked_once(self, mocks):
        mocks.id_processor.process_id.side_effect = lambda s: s.removesuffix(".lockbox")
        _store(mocks, {"a": b"1"})

        await _service(mocks).validate_box(ValidateBoxRequest(secret_ids=["a", "a.lockbox"]))

        mocks.secret_repo.get_encrypted_secret.assert_called_once_with("a")

    @pytest.mark.asyncio
    async def test_returns_validated_ids(self, mocks):
        mocks.id_processor.process_id.side_effect = lambda s: "" if s.startswith("untracked") else s
        _store(mocks, {"a": b"1", "b": b"2"})

        validated = await _service(mocks).validate_box(
            ValidateBoxRequest(secret_ids=["b", "untracked-1", "a", "untracked-2"])
        )

        assert validated == ["b", "a"]


class TestPartialFailures:
    @pytest.mark.asyncio
    async def test_failing_secret_does_not_stop_others(self, mocks):
        _store(mocks, {"secret1": b"test1", "secret2": b"test2"})
        mocks.encrypter.decrypt.side_effect = _decrypt_same

        with pytest.raises(BoxValidationError) as exc_info:
            await _service(mocks).validate_box(
                ValidateBoxRequest(secret_ids=["secret1", "wrongsecret1", "secret2"], decrypt=True)
            )

        eg = exc_info.value
        assert eg.failed_ids == ["wrongsecret1"]
        assert eg.exceptions[0].stage == "fetch"
        assert isinstance(eg.exceptions[0].__cause__, SecretNotFoundError)

        assert mocks.secret_repo.get_encrypted_secret.call_count == 3
        decrypted_ids = sorted(c.args[0].id for c in mocks.encrypter.decrypt.call_args_list)
        assert decrypted_ids == ["secret1", "secret2"]

    @pytest.mark.asyncio
    async def test_fetch_error_fails(self, mocks):
        mocks.secret_repo.get_encrypted_secret.side_effect = OSError("something")

        with pytest.raises(BoxValidationError) as exc_info:
            await _service(mocks).validate_box(
                ValidateBoxRequest(secret_ids=["secret1"], decrypt=True)
            )

        assert exc_info.value.failed_ids == ["secret1"]
        mocks.encrypter.decrypt.assert_not_called()

    @pytest.mark.asyncio
    async def test_decrypt_error_fails(self, mocks):
        mocks.secret_repo.get_encrypted_secret.return_value = Secret(id="secret1")
        mocks.encrypter.decrypt.side_effect = ValueError("something")

        with pytest.raises(BoxValidationError) as exc_info:
            await _service(mocks).validate_box(
                ValidateBoxRequest(secret_ids=["secret1"], decrypt=True)
            )

        err = exc_info.value.exceptions[0]
        assert err.secret_id == "secret1"
        assert err.stage == "decrypt"

    @pytest.mark.asyncio
    async def test_empty_decryption_fails(self, mocks):
        _store(mocks, {"secret1": b"x"})
        mocks.encrypter.decrypt.return_value = Secret(id="secret1", decrypted_data=b"")

        with pytest.raises(BoxValidationError):
            await _service(mocks).validate_box(
                ValidateBoxRequest(secret_ids=["secret1"], decrypt=True)
            )

    @pytest.mark.asyncio
    async def test_every_failure_is_reported(self, mocks):
        def _process(secret_id):
            if secret_id == "bad-id":
                raise InvalidIDError("malformed")
            return secret_id

        mocks.id_processor.process_id.side_effect = _process
        _store(mocks, {"ok": b"1", "broken": b"2"})

        def _decrypt(secret, keys):
            if secret.id == "broken":
                raise ValueError("no identity matched")
            return _decrypt_same(secret, keys)

        mocks.encrypter.decrypt.side_effect = _decrypt

        with pytest.raises(BoxValidationError) as exc_info:
            await _service(mocks).validate_box(
                ValidateBoxRequest(
                    secret_ids=["bad-id", "ok", "missing", "broken"], decrypt=True
                )
            )

        stages = {e.secret_id: e.stage for e in exc_info.value.exceptions}
        assert stages == {"bad-id": "process", "missing": "fetch", "broken": "decrypt"}

    @pytest.mark.asyncio
    async def test_group_can_be_split_by_stage(self, mocks):
        _store(mocks, {"a": b"1"})
        mocks.encrypter.decrypt.side_effect = ValueError("bad")

        with pytest.raises(BoxValidationError) as exc_info:
            await _service(mocks).validate_box(
                ValidateBoxRequest(secret_ids=["a", "b"], decrypt=True)
            )

        fetch_errors, rest = exc_info.value.split(
            lambda e: isinstance(e, SecretError) and e.stage == "fetch"
        )
        assert isinstance(fetch_errors, BoxValidationError)
        assert fetch_errors.failed_ids == ["b"]
        assert rest.failed_ids == ["a"]

    @pytest.mark.asyncio
    async def test_decrypt_returning_nothing_keeps_other_failures(self, mocks):
        _store(mocks, {"weird": b"x"})
        mocks.encrypter.decrypt.return_value = None

        with pytest.raises(BoxValidationError) as exc_info:
            await _service(mocks).validate_box(
                ValidateBoxRequest(secret_ids=["missing", "weird"], decrypt=True)
            )

        eg = exc_info.value
        assert eg.failed_ids == ["missing", "weird"]
        assert [e.stage for e in eg.exceptions] == ["fetch", "decrypt"]


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_sequential_and_parallel_agree(self, mocks):
        ids = [f"s{i}" for i in range(20)]
        _store(mocks, {i: b"x" for i in ids if int(i[1:]) % 3})

        results = []
        for concurrency in (1, 8):
            with pytest.raises(BoxValidationError) as exc_info:
                await _service(mocks, concurrency).validate_box(ValidateBoxRequest(secret_ids=ids))
            results.append(exc_info.value.failed_ids)

        assert results[0] == results[1] == ["s0", "s3", "s6", "s9", "s12", "s15", "s18"]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, mocks):
        active = 0
        peak = 0
        lock = threading.Lock()

        def _get(secret_id):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with lock:
                active -= 1
            return Secret(id=secret_id, encrypted_data=b"x")

        mocks.secret_repo.get_encrypted_secret.side_effect = _get

        await _service(mocks, concurrency=2).validate_box(
            ValidateBoxRequest(secret_ids=[f"s{i}" for i in range(10)])
        )

        assert peak <= 2
        assert mocks.secret_repo.get_encrypted_secret.call_count == 10

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, mocks):
        started = threading.Event()
        release = threading.Event()

        def _get(secret_id):
            started.set()
            release.wait(2)
            return Secret(id=secret_id, encrypted_data=b"x")

        mocks.secret_repo.get_encrypted_secret.side_effect = _get

        task = asyncio.create_task(
            _service(mocks, concurrency=1).validate_box(
                ValidateBoxRequest(secret_ids=["a", "b", "c"])
            )
        )
        await asyncio.to_thread(started.wait, 2)
        task.cancel()
        release.set()

        with pytest.raises(asyncio.CancelledError):
            await task
        # Units queued behind the semaphore never started
        assert mocks.secret_repo.get_encrypted_secret.call_args_list == [call("a")]
