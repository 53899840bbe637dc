"""PEM and JWK encoding domain service."""

import base64
import binascii
import json
import re
import textwrap
from typing import Any, Literal

import logfire
from cryptography.hazmat.primitives.serialization import load_der_public_key
from jwcrypto import jwk
from jwcrypto.common import JWException

from accounts.domain.error import EncodingError

from .base import Service

PemKind = Literal["public", "private"]

_LABELS: dict[str, str] = {"public": "PUBLIC KEY", "private": "PRIVATE KEY"}
_LINE_LENGTH = 64


class CredentialCodec(Service):
    """Stateless conversions between raw DER key bytes, PEM text and JWKs.

    Public keys are SubjectPublicKeyInfo DER and private keys PKCS#8 DER.
    """

    def export_to_pem(self, raw: bytes, key_kind: PemKind) -> str:
        """Base64-encode DER bytes, wrapped at 64 columns between PEM markers."""
        label = self._label(key_kind)
        body = "\n".join(textwrap.wrap(base64.b64encode(raw).decode("ascii"), _LINE_LENGTH))
        return f"-----BEGIN {label}-----\n{body}\n-----END {label}-----\n"

    def import_from_pem(self, pem: str, key_kind: PemKind) -> bytes:
        """Strip PEM markers and whitespace and decode the payload.

        Raises:
            EncodingError: On missing or mismatched markers, or a payload
                that is not base64
        """
        label = self._label(key_kind)
        header = f"-----BEGIN {label}-----"
        footer = f"-----END {label}-----"
        text = (pem or "").strip()
        if not text.startswith(header) or not text.endswith(footer):
            raise EncodingError(f"Malformed PEM: expected {label} markers")

        body = re.sub(r"\s+", "", text[len(header) : -len(footer)])
        if not body:
            raise EncodingError("Malformed PEM: empty payload")
        try:
            return base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncodingError(f"Malformed PEM payload: {e}") from e

    def to_jwk(
        self,
        raw_public_key: bytes,
        use: Literal["sig", "enc"],
        kid: str,
        alg: str | None = None,
    ) -> dict[str, Any]:
        """Export a DER public key as a JWK with ``kid`` and ``use`` attached."""
        try:
            public_key = load_der_public_key(raw_public_key)
        except ValueError as e:
            raise EncodingError(f"Invalid public key: {e}") from e

        exported = jwk.JWK.from_pyca(public_key).export_public(as_dict=True)
        exported["kid"] = kid
        exported["use"] = use
        if alg:
            exported["alg"] = alg
        return exported

    def parse_jwk(self, text: str) -> dict[str, Any]:
        """Parse stored JWK text.

        Raises:
            EncodingError: If the text is not a JSON object with a ``kty``
        """
        try:
            value = json.loads(text)
        except json.JSONDecodeError as e:
            raise EncodingError(f"Invalid JWK: {e}") from e
        if not isinstance(value, dict) or "kty" not in value:
            raise EncodingError("Invalid JWK: missing key type")
        return value

    def serialize_jwk(self, value: dict[str, Any]) -> str:
        """Compact JSON text, as stored and served."""
        return json.dumps(value, separators=(",", ":"), sort_keys=True)

    @staticmethod
    def format_jwk(value: dict[str, Any]) -> str:
        """Pretty-print a JWK for human display."""
        return json.dumps(value, indent=2, sort_keys=True)

    def thumbprint(self, value: dict[str, Any]) -> str:
        """RFC 7638 SHA-256 thumbprint of a JWK.

        Raises:
            EncodingError: If the JWK cannot be loaded
        """
        try:
            return jwk.JWK(**value).thumbprint()
        except (JWException, ValueError, TypeError) as e:
            logfire.warn("JWK thumbprint failed", kid=value.get("kid"), error=str(e))
            raise EncodingError(f"Cannot compute JWK thumbprint: {e}") from e

    @staticmethod
    def _label(key_kind: str) -> str:
        try:
            return _LABELS[key_kind]
        except KeyError:
            raise EncodingError(f"Unknown PEM key kind: {key_kind}") from None
