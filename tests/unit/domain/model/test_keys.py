"""Unit tests for key metadata models."""

import pydantic
import pytest

from accounts.domain.error import ValidationError
from accounts.domain.model import KeyOptions, KeyRecord, KeyRing, KeySummary
from accounts.domain.model.keys import KeyGenerationResult, jose_algorithm
from accounts.domain.value import KeyKind


def record(kid: str) -> KeyRecord:
    return KeyRecord(
        algorithm_name="RSASSA-PKCS1-v1_5",
        hash="SHA-256",
        modulus_bits=2048,
        kid=kid,
        public_key_ref="rs256-pub-0.pem",
        private_key_ref="rs256-pri-0.pem",
        jwk_ref="rs256-0.jwk",
        created_on=1700000000000,
    )


class TestKeyOptions:
    """Tests for generation options."""

    def test_rejects_unknown_algorithm(self):
        with pytest.raises(pydantic.ValidationError):
            KeyOptions(name="ECDSA")

    def test_rejects_unknown_hash(self):
        with pytest.raises(pydantic.ValidationError):
            KeyOptions(name="RSA-OAEP", hash="MD5")

    def test_rejects_small_modulus(self):
        with pytest.raises(pydantic.ValidationError):
            KeyOptions(name="RSA-OAEP", modulus_length=512)

    def test_check_kind(self):
        KeyOptions(name="RSA-PSS", uses=["sign"]).check_kind(KeyKind.SIGNING)

        with pytest.raises(ValidationError):
            KeyOptions(name="RSA-OAEP").check_kind(KeyKind.SIGNING)
        with pytest.raises(ValidationError) as exc_info:
            KeyOptions(name="RSA-OAEP", uses=["encrypt", "sign"]).check_kind(KeyKind.ENCRYPTING)
        assert exc_info.value.fields == ["uses"]

    @pytest.mark.parametrize(
        "name,hash_name,expected",
        [
            ("RSASSA-PKCS1-v1_5", "SHA-256", "RS256"),
            ("RSA-PSS", "SHA-384", "PS384"),
            ("RSA-OAEP", "SHA-512", "RSA-OAEP-512"),
        ],
    )
    def test_jose_algorithm(self, name: str, hash_name: str, expected: str):
        assert jose_algorithm(name, hash_name) == expected
        assert KeyOptions(name=name, hash=hash_name).jose_algorithm == expected


class TestKeyRing:
    """Tests for the per-kind key lists."""

    def test_new_record_becomes_current(self):
        ring = KeyRing().with_record(KeyKind.SIGNING, record("a"))
        ring = ring.with_record(KeyKind.SIGNING, record("b"))

        assert [r.kid for r in ring.signing] == ["b", "a"]
        assert ring.encrypting == ()

    def test_locate(self):
        ring = (
            KeyRing()
            .with_record(KeyKind.SIGNING, record("a"))
            .with_record(KeyKind.SIGNING, record("b"))
            .with_record(KeyKind.ENCRYPTING, record("c"))
        )

        assert ring.locate("a") == (KeyKind.SIGNING, 1)
        assert ring.locate("c") == (KeyKind.ENCRYPTING, 0)
        assert ring.locate("z") is None

    def test_document_uses_camel_case(self):
        ring = KeyRing().with_record(KeyKind.SIGNING, record("a"))

        document = ring.to_document()

        assert document["encrypting"] == []
        assert document["signing"][0]["publicKeyRef"] == "rs256-pub-0.pem"
        assert document["signing"][0]["algorithmName"] == "RSASSA-PKCS1-v1_5"
        assert KeyRecord.model_validate(document["signing"][0]) == record("a")


class TestKeySummary:
    """Tests for combining per-kind outcomes."""

    @pytest.mark.parametrize(
        "statuses,expected",
        [
            (["success", "success"], "success"),
            (["success", "failed"], "partial"),
            (["failed", "failed"], "failed"),
            (["success", None], "success"),
            ([None, None], None),
        ],
    )
    def test_overall_status(self, statuses, expected):
        results = {
            kind: KeyGenerationResult(kind=kind, status=status)
            for kind, status in zip(KeyKind, statuses)
        }

        assert KeySummary.from_results(results).status == expected
