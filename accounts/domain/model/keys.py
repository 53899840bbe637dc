"""Asymmetric key metadata.

A user's keys are kept in a ``KeyRing``: one list per key kind, newest
first, so index 0 is always the current key. Rings are immutable; adding
a key produces a new ring with the record in front.
"""

import time
from typing import Literal

from pydantic import ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from accounts.domain.error import ValidationError
from accounts.domain.model.common import DomainModel
from accounts.domain.value import KeyKind, Kid

SIGNING_ALGORITHMS = frozenset({"RSASSA-PKCS1-v1_5", "RSA-PSS"})
ENCRYPTING_ALGORITHMS = frozenset({"RSA-OAEP"})
HASH_ALGORITHMS = ("SHA-256", "SHA-384", "SHA-512")

# File name prefix for the artifacts of each kind
ARTIFACT_PREFIXES = {
    KeyKind.SIGNING: "rs256",
    KeyKind.ENCRYPTING: "rsa-oaep",
}

_JWS_PREFIXES = {"RSASSA-PKCS1-v1_5": "RS", "RSA-PSS": "PS"}


def jose_algorithm(name: str, hash_name: str) -> str:
    """Map an algorithm name and hash to its JOSE ``alg`` value.

    >>> jose_algorithm("RSASSA-PKCS1-v1_5", "SHA-256")
    'RS256'
    >>> jose_algorithm("RSA-OAEP", "SHA-256")
    'RSA-OAEP-256'
    """
    bits = hash_name.split("-")[-1]
    if name in _JWS_PREFIXES:
        return f"{_JWS_PREFIXES[name]}{bits}"
    if name == "RSA-OAEP":
        return f"RSA-OAEP-{bits}"
    raise ValueError(f"Unsupported algorithm: {name}")


class KeyOptions(DomainModel):
    """Key generation options.

    ``rotate`` asks for a new current key even when one already exists;
    without it generation is a no-op for a user who already has a key of
    that kind.
    """

    name: str
    modulus_length: int = Field(default=2048, ge=1024)
    public_exponent: int = 65537
    hash: str = "SHA-256"
    extractable: bool = True
    uses: list[str] = Field(default_factory=list)
    rotate: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate the algorithm is one we can generate."""
        if v not in SIGNING_ALGORITHMS | ENCRYPTING_ALGORITHMS:
            raise ValueError(f"Unsupported key algorithm: {v}")
        return v

    @field_validator("hash")
    @classmethod
    def validate_hash(cls, v: str) -> str:
        """Validate the hash algorithm name."""
        if v not in HASH_ALGORITHMS:
            raise ValueError(f"Hash must be one of {', '.join(HASH_ALGORITHMS)}")
        return v

    def check_kind(self, kind: KeyKind) -> None:
        """Ensure these options can produce a key of ``kind``.

        Raises:
            ValidationError: If algorithm or uses do not fit the kind
        """
        allowed = SIGNING_ALGORITHMS if kind == KeyKind.SIGNING else ENCRYPTING_ALGORITHMS
        if self.name not in allowed:
            raise ValidationError(
                f"{self.name} cannot be used for {kind.value} keys", fields=["name"]
            )
        valid_uses = {"sign", "verify"} if kind == KeyKind.SIGNING else {"encrypt", "decrypt"}
        stray = set(self.uses) - valid_uses
        if stray:
            raise ValidationError(
                f"Invalid uses for {kind.value} keys: {', '.join(sorted(stray))}",
                fields=["uses"],
            )

    @property
    def jose_algorithm(self) -> str:
        return jose_algorithm(self.name, self.hash)


class KeyRecord(DomainModel):
    """Metadata and storage references for one generated keypair.

    The ``*_ref`` fields are opaque handles resolved by the file store.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    algorithm_name: str
    hash: str
    modulus_bits: int
    kid: Kid
    public_key_ref: str
    private_key_ref: str
    jwk_ref: str
    created_on: int = Field(default_factory=lambda: int(time.time() * 1000))

    @property
    def jose_algorithm(self) -> str:
        return jose_algorithm(self.algorithm_name, self.hash)


class KeyRing(DomainModel):
    """Signing and encrypting key records, each newest first."""

    signing: tuple[KeyRecord, ...] = ()
    encrypting: tuple[KeyRecord, ...] = ()

    def records(self, kind: KeyKind) -> tuple[KeyRecord, ...]:
        """All records of a kind, newest first."""
        return self.signing if kind == KeyKind.SIGNING else self.encrypting

    def with_record(self, kind: KeyKind, record: KeyRecord) -> "KeyRing":
        """Return a new ring with ``record`` as the current key of ``kind``."""
        updated = (record, *self.records(kind))
        return self.model_copy(update={kind.value: updated})

    def locate(self, kid: str) -> tuple[KeyKind, int] | None:
        """Find the kind and index of a key by its kid."""
        for kind in KeyKind:
            for index, record in enumerate(self.records(kind)):
                if record.kid == kid:
                    return kind, index
        return None

    def to_document(self) -> dict[str, list[dict]]:
        """Serialize with wire field names."""
        return {
            kind.value: [r.model_dump(by_alias=True, mode="json") for r in self.records(kind)]
            for kind in KeyKind
        }


class KeyGenerationResult(DomainModel):
    """Outcome of generating one keypair.

    ``status`` is None when generation was skipped because the key
    already exists.
    """

    kind: KeyKind
    status: Literal["success", "failed"] | None = None
    record: KeyRecord | None = None
    error: str | None = None


class KeySummary(DomainModel):
    """Outcome of generating one or more keypairs for a user."""

    status: Literal["success", "partial", "failed"] | None = None
    results: dict[KeyKind, KeyGenerationResult] = Field(default_factory=dict)

    @classmethod
    def from_results(cls, results: dict[KeyKind, KeyGenerationResult]) -> "KeySummary":
        """Derive the overall status from per-kind results."""
        succeeded = any(r.status == "success" for r in results.values())
        failed = any(r.status == "failed" for r in results.values())
        if succeeded and failed:
            status = "partial"
        elif failed:
            status = "failed"
        elif succeeded:
            status = "success"
        else:
            status = None
        return cls(status=status, results=results)
