"""Unit tests for KeyStore."""

import pytest

from accounts.config import KeySettings
from accounts.domain.error import (
    CredentialError,
    KeyGenerationError,
    KeyNotFoundError,
)
from accounts.domain.model import KeyOptions, KeyRing
from accounts.domain.service import CredentialCodec, KeyStore
from accounts.domain.value import KeyKind
from accounts.persistence.repository.inmemory import InMemoryFileStore

PUBLIC = "var/public/accounts/users/abc"
PRIVATE = "var/private/accounts/users/abc"

ROTATE = KeyOptions(name="RSASSA-PKCS1-v1_5", uses=["sign", "verify"], rotate=True)


class FailingFileStore(InMemoryFileStore):
    """File store that refuses to write files whose name contains a marker."""

    def __init__(self, marker: str) -> None:
        super().__init__()
        self.marker = marker

    async def write_file(self, path: str, content: str) -> None:
        if self.marker in path:
            raise PermissionError(path)
        await super().write_file(path, content)


def make_store(
    files: InMemoryFileStore | None = None,
    public: str | None = PUBLIC,
    private: str | None = PRIVATE,
) -> KeyStore:
    return KeyStore(
        ring=KeyRing(),
        files=files or InMemoryFileStore(),
        codec=CredentialCodec(),
        settings=KeySettings(),
        public_location=public,
        private_location=private,
        owner="abc",
    )


class TestGenerateKeyPair:
    """Tests for generate_key_pair."""

    @pytest.mark.asyncio
    async def test_generation_writes_artifacts_and_prepends_record(self):
        files = InMemoryFileStore()
        store = make_store(files)

        result = await store.generate_key_pair(KeyKind.SIGNING)

        assert result.status == "success"
        assert store.records(KeyKind.SIGNING) == (result.record,)
        assert result.record.public_key_ref == "rs256-pub-0.pem"
        assert result.record.jwk_ref == "rs256-0.jwk"
        assert result.record.private_key_ref == "rs256-pri-0.pem"
        assert result.record.modulus_bits == 2048
        assert f"{PUBLIC}/rs256-pub-0.pem" in files.files
        assert f"{PUBLIC}/rs256-0.jwk" in files.files
        assert f"{PRIVATE}/rs256-pri-0.pem" in files.files
        assert "PRIVATE KEY" not in files.files[f"{PUBLIC}/rs256-pub-0.pem"]

    @pytest.mark.asyncio
    async def test_encrypting_artifact_names(self):
        files = InMemoryFileStore()
        store = make_store(files)

        result = await store.generate_key_pair(KeyKind.ENCRYPTING)

        assert result.record.algorithm_name == "RSA-OAEP"
        assert f"{PUBLIC}/rsa-oaep-pub-0.pem" in files.files
        assert f"{PRIVATE}/rsa-oaep-pri-0.pem" in files.files
        assert store.records(KeyKind.SIGNING) == ()

    @pytest.mark.asyncio
    async def test_second_generation_is_a_no_op(self):
        store = make_store()
        await store.generate_key_pair(KeyKind.SIGNING)

        again = await store.generate_key_pair(KeyKind.SIGNING)

        assert again.status is None
        assert again.record is None
        assert len(store.records(KeyKind.SIGNING)) == 1

    @pytest.mark.asyncio
    async def test_existing_artifact_is_never_overwritten(self):
        files = InMemoryFileStore()
        await files.write_file(f"{PUBLIC}/rs256-pub-0.pem", "left over")
        store = make_store(files)

        result = await store.generate_key_pair(KeyKind.SIGNING, ROTATE)

        assert result.status is None
        assert store.records(KeyKind.SIGNING) == ()
        assert files.files[f"{PUBLIC}/rs256-pub-0.pem"] == "left over"

    @pytest.mark.asyncio
    async def test_rotation_orders_newest_first(self):
        store = make_store()

        generated = []
        for _ in range(3):
            result = await store.generate_key_pair(KeyKind.SIGNING, ROTATE)
            generated.append(result.record)

        records = store.records(KeyKind.SIGNING)
        assert records[0] == generated[-1]
        assert records[-1] == generated[0]
        assert [r.public_key_ref for r in records] == [
            "rs256-pub-2.pem",
            "rs256-pub-1.pem",
            "rs256-pub-0.pem",
        ]
        assert len({r.kid for r in records}) == 3

    @pytest.mark.asyncio
    async def test_failed_public_write_leaves_nothing_behind(self):
        files = FailingFileStore(marker="rs256-pub-")
        store = make_store(files)

        with pytest.raises(KeyGenerationError):
            await store.generate_key_pair(KeyKind.SIGNING)

        assert store.records(KeyKind.SIGNING) == ()
        assert files.files == {}

    @pytest.mark.asyncio
    async def test_failed_private_write_adds_no_record(self):
        files = FailingFileStore(marker="-pri-")
        store = make_store(files)

        with pytest.raises(KeyGenerationError):
            await store.generate_key_pair(KeyKind.ENCRYPTING)

        assert store.ring == KeyRing()
        assert files.files == {}

    @pytest.mark.asyncio
    async def test_non_extractable_keys_are_rejected(self):
        store = make_store()
        options = KeyOptions(name="RSA-OAEP", uses=["encrypt"], extractable=False)

        with pytest.raises(KeyGenerationError):
            await store.generate_key_pair(KeyKind.ENCRYPTING, options)

    @pytest.mark.asyncio
    async def test_options_must_fit_the_kind(self):
        store = make_store()
        options = KeyOptions(name="RSA-OAEP", uses=["encrypt", "decrypt"])

        with pytest.raises(KeyGenerationError):
            await store.generate_key_pair(KeyKind.SIGNING, options)

    @pytest.mark.asyncio
    async def test_directories_are_required(self):
        store = make_store(public=None)

        with pytest.raises(KeyGenerationError):
            await store.generate_key_pair(KeyKind.SIGNING)


class TestLookup:
    """Tests for record lookup and artifact loading."""

    @pytest.mark.asyncio
    async def test_record_out_of_range(self):
        store = make_store()
        await store.generate_key_pair(KeyKind.SIGNING)

        with pytest.raises(KeyNotFoundError):
            store.record(KeyKind.SIGNING, 1)
        with pytest.raises(KeyNotFoundError):
            await store.import_public_key(KeyKind.ENCRYPTING, 0)

    @pytest.mark.asyncio
    async def test_find_by_kid_scans_both_kinds(self):
        store = make_store()
        signing = (await store.generate_key_pair(KeyKind.SIGNING)).record
        encrypting = (await store.generate_key_pair(KeyKind.ENCRYPTING)).record

        assert store.find_by_kid(signing.kid) == signing
        assert store.find_by_kid(encrypting.kid) == encrypting
        assert store.locate(encrypting.kid) == (KeyKind.ENCRYPTING, 0)
        assert store.find_by_kid("unknown") is None

    @pytest.mark.asyncio
    async def test_read_jwk_matches_record(self):
        store = make_store()
        record = (await store.generate_key_pair(KeyKind.SIGNING)).record

        jwk = await store.read_jwk(KeyKind.SIGNING)

        assert jwk["kid"] == record.kid
        assert jwk["use"] == "sig"
        assert jwk["alg"] == "RS256"

    @pytest.mark.asyncio
    async def test_missing_artifact_is_key_not_found(self):
        files = InMemoryFileStore()
        store = make_store(files)
        await store.generate_key_pair(KeyKind.SIGNING)
        await files.remove(f"{PRIVATE}/rs256-pri-0.pem")

        with pytest.raises(KeyNotFoundError):
            await store.import_private_key(KeyKind.SIGNING)


class TestCrypto:
    """Tests for sign/verify and encrypt/decrypt."""

    @pytest.mark.asyncio
    async def test_sign_and_verify(self):
        store = make_store()
        await store.generate_key_pair(KeyKind.SIGNING)

        signature = await store.sign("hello")

        assert await store.verify(signature, "hello")
        assert await store.verify(signature, b"hello")
        assert not await store.verify(signature, "goodbye")

    @pytest.mark.asyncio
    async def test_pss_signatures(self):
        store = make_store()
        options = KeyOptions(name="RSA-PSS", hash="SHA-384", uses=["sign", "verify"])
        await store.generate_key_pair(KeyKind.SIGNING, options)

        signature = await store.sign(b"payload")

        assert store.record(KeyKind.SIGNING).jose_algorithm == "PS384"
        assert await store.verify(signature, b"payload")

    @pytest.mark.asyncio
    async def test_older_key_still_verifies_its_signatures(self):
        store = make_store()
        await store.generate_key_pair(KeyKind.SIGNING)
        old_signature = await store.sign("data")
        await store.generate_key_pair(KeyKind.SIGNING, ROTATE)

        assert not await store.verify(old_signature, "data", 0)
        assert await store.verify(old_signature, "data", 1)

    @pytest.mark.asyncio
    async def test_encrypt_and_decrypt(self):
        store = make_store()
        await store.generate_key_pair(KeyKind.ENCRYPTING)

        ciphertext = await store.encrypt("secret message")

        assert ciphertext != b"secret message"
        assert await store.decrypt(ciphertext) == b"secret message"

    @pytest.mark.asyncio
    async def test_decrypt_garbage_raises(self):
        store = make_store()
        await store.generate_key_pair(KeyKind.ENCRYPTING)

        with pytest.raises(CredentialError):
            await store.decrypt(b"\x00" * 256)
