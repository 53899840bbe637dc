"""Per-user asymmetric key lifecycle."""

import asyncio
from pathlib import PurePosixPath
from typing import Any

import logfire
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from accounts.config import KeySettings
from accounts.domain.error import (
    CredentialError,
    EncodingError,
    KeyGenerationError,
    KeyNotFoundError,
    ValidationError,
)
from accounts.domain.model.keys import (
    ARTIFACT_PREFIXES,
    KeyGenerationResult,
    KeyOptions,
    KeyRecord,
    KeyRing,
)
from accounts.domain.repository import FileStore
from accounts.domain.value import KeyKind, new_kid

from .base import Service
from .credential_codec import CredentialCodec

_HASHES = {
    "SHA-256": hashes.SHA256,
    "SHA-384": hashes.SHA384,
    "SHA-512": hashes.SHA512,
}


def artifact_names(kind: KeyKind, index: int) -> dict[str, str]:
    """File names of the public PEM, JWK and private PEM for a key index.

    >>> artifact_names(KeyKind.SIGNING, 0)["public"]
    'rs256-pub-0.pem'
    """
    prefix = ARTIFACT_PREFIXES[kind]
    return {
        "public": f"{prefix}-pub-{index}.pem",
        "jwk": f"{prefix}-{index}.jwk",
        "private": f"{prefix}-pri-{index}.pem",
    }


def _as_bytes(data: bytes | str) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else data


class KeyStore(Service):
    """Keys of one user, with their PEM and JWK artifacts.

    Public artifacts (PEM and JWK) are written to the user's public
    directory and private PEMs to the private directory. Record
    references are file names relative to those directories, so records
    stay valid when the directories move.

    The store owns a ``KeyRing``; after generation the owner copies
    ``ring`` back onto the entity.
    """

    def __init__(
        self,
        ring: KeyRing,
        files: FileStore,
        codec: CredentialCodec,
        settings: KeySettings,
        public_location: str | None,
        private_location: str | None,
        owner: str | None = None,
    ) -> None:
        """Initialize key store.

        Args:
            ring: Existing key records
            files: File store for artifacts
            codec: PEM/JWK codec
            settings: Default generation options
            public_location: Absolute public directory, None if not assigned yet
            private_location: Absolute private directory, None if not assigned yet
            owner: Owner id, for logging
        """
        self._ring = ring
        self.files = files
        self.codec = codec
        self.settings = settings
        self.public_location = public_location
        self.private_location = private_location
        self.owner = owner

    @property
    def ring(self) -> KeyRing:
        return self._ring

    def records(self, kind: KeyKind) -> tuple[KeyRecord, ...]:
        return self._ring.records(kind)

    def record(self, kind: KeyKind, index: int = 0) -> KeyRecord:
        """Key record at ``index`` (0 is the current key).

        Raises:
            KeyNotFoundError: If there is no key at ``index``
        """
        records = self._ring.records(kind)
        if index < 0 or index >= len(records):
            raise KeyNotFoundError(kind.value, index)
        return records[index]

    def find_by_kid(self, kid: str) -> KeyRecord | None:
        location = self._ring.locate(kid)
        if location is None:
            return None
        kind, index = location
        return self._ring.records(kind)[index]

    def locate(self, kid: str) -> tuple[KeyKind, int] | None:
        """Kind and index of the key with ``kid``."""
        return self._ring.locate(kid)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_key_pair(
        self, kind: KeyKind, options: KeyOptions | None = None
    ) -> KeyGenerationResult:
        """Generate a keypair and make it the current key of ``kind``.

        Generation is skipped, with a result whose status is None, when the
        user already has a current key and ``options.rotate`` is off, or
        when a public artifact already exists for the next index.

        Raises:
            KeyGenerationError: If the options are unusable, directories are
                not assigned, or an artifact cannot be written. No record is
                added in that case.
        """
        options = options or self.settings.options_for(kind)
        try:
            options.check_kind(kind)
        except ValidationError as e:
            raise KeyGenerationError(str(e)) from e
        if not options.extractable:
            raise KeyGenerationError("Non-extractable keys cannot be exported to storage")
        if not self.public_location or not self.private_location:
            raise KeyGenerationError(
                "Public and private directories must be assigned before generating keys"
            )

        records = self._ring.records(kind)
        if records and not options.rotate:
            logfire.info("Current key kept", owner=self.owner, kind=kind.value, kid=records[0].kid)
            return KeyGenerationResult(kind=kind)

        index = len(records)
        names = artifact_names(kind, index)
        public_path = self._public_path(names["public"])
        if await self.files.exists(public_path):
            logfire.warn("Key artifact already exists", owner=self.owner, kind=kind.value, path=public_path)
            return KeyGenerationResult(kind=kind)

        with logfire.span(
            "key_store.generate_key_pair",
            owner=self.owner,
            kind=kind.value,
            algorithm=options.name,
            modulus_length=options.modulus_length,
        ):
            try:
                private_key = await asyncio.to_thread(
                    rsa.generate_private_key,
                    public_exponent=options.public_exponent,
                    key_size=options.modulus_length,
                )
            except ValueError as e:
                raise KeyGenerationError(f"Key generation failed: {e}") from e

            public_der = private_key.public_key().public_bytes(
                serialization.Encoding.DER,
                serialization.PublicFormat.SubjectPublicKeyInfo,
            )
            private_der = private_key.private_bytes(
                serialization.Encoding.DER,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            )
            kid = new_kid()
            jwk_value = self.codec.to_jwk(
                public_der, kind.jwk_use, kid, alg=options.jose_algorithm
            )

            # The public PEM goes last; its presence marks a complete key
            artifacts = [
                (self._private_path(names["private"]), self.codec.export_to_pem(private_der, "private")),
                (self._public_path(names["jwk"]), self.codec.serialize_jwk(jwk_value)),
                (public_path, self.codec.export_to_pem(public_der, "public")),
            ]
            written: list[str] = []
            try:
                for path, content in artifacts:
                    await self.files.write_file(path, content)
                    written.append(path)
            except OSError as e:
                logfire.error(
                    "Key artifact write failed",
                    owner=self.owner,
                    kind=kind.value,
                    kid=kid,
                    error=str(e),
                )
                await self._remove_artifacts(written)
                raise KeyGenerationError(f"Failed to store {kind.value} key: {e}") from e

            record = KeyRecord(
                algorithm_name=options.name,
                hash=options.hash,
                modulus_bits=options.modulus_length,
                kid=kid,
                public_key_ref=names["public"],
                private_key_ref=names["private"],
                jwk_ref=names["jwk"],
            )
            self._ring = self._ring.with_record(kind, record)
            logfire.info("Key generated", owner=self.owner, kind=kind.value, kid=kid, index=index)
            return KeyGenerationResult(kind=kind, status="success", record=record)

    async def _remove_artifacts(self, paths: list[str]) -> None:
        for path in reversed(paths):
            try:
                await self.files.remove(path)
                logfire.warn("Removed partial key artifact", owner=self.owner, path=path)
            except OSError as e:
                logfire.error("Could not remove partial key artifact", path=path, error=str(e))

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def _public_path(self, name: str) -> str:
        if not self.public_location:
            raise KeyGenerationError("Public directory is not assigned")
        return str(PurePosixPath(self.public_location) / name)

    def _private_path(self, name: str) -> str:
        if not self.private_location:
            raise KeyGenerationError("Private directory is not assigned")
        return str(PurePosixPath(self.private_location) / name)

    async def _read(self, kind: KeyKind, index: int, path: str) -> str:
        try:
            return await self.files.read_file(path)
        except OSError as e:
            logfire.warn("Key artifact missing", owner=self.owner, kind=kind.value, path=path, error=str(e))
            raise KeyNotFoundError(kind.value, index) from e

    async def read_public_pem(self, kind: KeyKind, index: int = 0) -> str:
        record = self.record(kind, index)
        return await self._read(kind, index, self._public_path(record.public_key_ref))

    async def read_jwk(self, kind: KeyKind, index: int = 0) -> dict[str, Any]:
        record = self.record(kind, index)
        text = await self._read(kind, index, self._public_path(record.jwk_ref))
        return self.codec.parse_jwk(text)

    async def import_public_key(self, kind: KeyKind, index: int = 0) -> rsa.RSAPublicKey:
        """Load the public key at ``index`` for verification or encryption.

        Raises:
            KeyNotFoundError: If there is no key or artifact at ``index``
            EncodingError: If the stored PEM is malformed
        """
        der = self.codec.import_from_pem(await self.read_public_pem(kind, index), "public")
        try:
            return serialization.load_der_public_key(der)
        except ValueError as e:
            raise EncodingError(f"Invalid public key: {e}") from e

    async def import_private_key(self, kind: KeyKind, index: int = 0) -> rsa.RSAPrivateKey:
        """Load the private key at ``index`` for signing or decryption.

        Raises:
            KeyNotFoundError: If there is no key or artifact at ``index``
            EncodingError: If the stored PEM is malformed
        """
        record = self.record(kind, index)
        pem = await self._read(kind, index, self._private_path(record.private_key_ref))
        der = self.codec.import_from_pem(pem, "private")
        try:
            return serialization.load_der_private_key(der, password=None)
        except (ValueError, TypeError) as e:
            raise EncodingError(f"Invalid private key: {e}") from e

    # ------------------------------------------------------------------
    # Crypto operations
    # ------------------------------------------------------------------

    @staticmethod
    def _signature_padding(record: KeyRecord) -> padding.AsymmetricPadding:
        if record.algorithm_name == "RSA-PSS":
            return padding.PSS(
                mgf=padding.MGF1(_HASHES[record.hash]()),
                salt_length=padding.PSS.DIGEST_LENGTH,
            )
        return padding.PKCS1v15()

    @staticmethod
    def _oaep(record: KeyRecord) -> padding.OAEP:
        algorithm = _HASHES[record.hash]()
        return padding.OAEP(mgf=padding.MGF1(algorithm), algorithm=algorithm, label=None)

    async def sign(self, data: bytes | str, index: int = 0) -> bytes:
        record = self.record(KeyKind.SIGNING, index)
        key = await self.import_private_key(KeyKind.SIGNING, index)
        return key.sign(_as_bytes(data), self._signature_padding(record), _HASHES[record.hash]())

    async def verify(self, signature: bytes, data: bytes | str, index: int = 0) -> bool:
        """Check a signature; a mismatch returns False."""
        record = self.record(KeyKind.SIGNING, index)
        key = await self.import_public_key(KeyKind.SIGNING, index)
        try:
            key.verify(
                signature,
                _as_bytes(data),
                self._signature_padding(record),
                _HASHES[record.hash](),
            )
        except InvalidSignature:
            return False
        return True

    async def encrypt(self, data: bytes | str, index: int = 0) -> bytes:
        record = self.record(KeyKind.ENCRYPTING, index)
        key = await self.import_public_key(KeyKind.ENCRYPTING, index)
        return key.encrypt(_as_bytes(data), self._oaep(record))

    async def decrypt(self, ciphertext: bytes, index: int = 0) -> bytes:
        """Decrypt with the private encrypting key at ``index``.

        Raises:
            CredentialError: If the ciphertext was not produced for this key
        """
        record = self.record(KeyKind.ENCRYPTING, index)
        key = await self.import_private_key(KeyKind.ENCRYPTING, index)
        try:
            return key.decrypt(ciphertext, self._oaep(record))
        except ValueError as e:
            logfire.warn("Decryption failed", owner=self.owner, kid=record.kid)
            raise CredentialError("Decryption failed") from e
