"""JWT token domain service."""

import time
from datetime import timedelta
from typing import Any, Literal
from uuid import uuid4

import logfire
from pydantic import ValidationError as PydanticValidationError

from accounts.config import AuthSettings
from accounts.domain.error import CredentialError, EncodingError, KeyNotFoundError
from accounts.domain.value import (
    KeyKind,
    SignedToken,
    TokenClaims,
    VerificationFailure,
    VerificationFailureReason,
)
from accounts.util.jwt import (
    JWTError,
    TokenClaimsError,
    TokenExpiredError,
    TokenSignatureError,
    create_token,
    read_header,
    verify_token,
)

from .base import Service
from .credential_codec import CredentialCodec

TokenUse = Literal["access", "refresh"]


class TokenService(Service):
    """Issue and verify RS/PS-signed JWTs with a user's signing keys."""

    def __init__(self, auth_settings: AuthSettings, codec: CredentialCodec) -> None:
        """Initialize token service.

        Args:
            auth_settings: Issuer, audience and expiry settings
            codec: Codec used for JWK thumbprints
        """
        self.auth_settings = auth_settings
        self.codec = codec

    def lifetime(self, token_use: TokenUse) -> timedelta:
        """Default validity window for a kind of token."""
        if token_use == "refresh":
            return timedelta(days=self.auth_settings.refresh_token_expiry_days)
        return timedelta(minutes=self.auth_settings.access_token_expiry_minutes)

    async def issue(
        self,
        user: Any,
        key_index: int = 0,
        expires_in: timedelta | None = None,
        token_use: TokenUse = "access",
    ) -> SignedToken:
        """Sign a token for ``user`` with its signing key at ``key_index``.

        Args:
            user: Bound user entity
            key_index: Signing key to use, 0 is the current key
            expires_in: Validity window, defaults to the configured one
            token_use: "access" or "refresh"

        Raises:
            KeyNotFoundError: If the user has no signing key at ``key_index``
        """
        store = user.key_store
        subject = user.username or str(user.id)
        with logfire.span(
            "token_service.issue", user_id=user.id, key_index=key_index, token_use=token_use
        ):
            record = store.record(KeyKind.SIGNING, key_index)
            private_key = await store.import_private_key(KeyKind.SIGNING, key_index)

            headers: dict[str, Any] = {
                "kid": record.kid,
                "jku": self.auth_settings.jku_for(subject),
            }
            try:
                headers["x5t"] = self.codec.thumbprint(
                    await store.read_jwk(KeyKind.SIGNING, key_index)
                )
            except (EncodingError, KeyNotFoundError) as e:
                logfire.warn("Thumbprint omitted from token header", kid=record.kid, error=str(e))

            issued_at = int(time.time())
            window = expires_in if expires_in is not None else self.lifetime(token_use)
            claims = TokenClaims(
                iss=self.auth_settings.issuer,
                aud=self.auth_settings.audience,
                sub=subject,
                email=user.primary_email,
                jti=str(uuid4()),
                token_use=token_use,
                iat=issued_at,
                exp=issued_at + int(window.total_seconds()),
            )
            algorithm = record.jose_algorithm
            token = create_token(
                claims.model_dump(exclude_none=True), private_key, algorithm, headers
            )
            logfire.info(
                "JWT token issued", user_id=user.id, kid=record.kid, token_use=token_use
            )
            return SignedToken(
                token=token,
                kid=record.kid,
                header={"alg": algorithm, "typ": "JWT", **headers},
                claims=claims,
            )

    async def verify(
        self, user: Any, token: str, key_index: int = 0
    ) -> TokenClaims | VerificationFailure:
        """Verify a token against ``user``'s signing keys.

        The key is found by the ``kid`` in the token header, falling back to
        ``key_index`` when the header has none. Routine failures are
        returned as ``VerificationFailure``, including a corrupted header.

        Raises:
            CredentialError: If the token is not a three-segment JWT
        """
        with logfire.span("token_service.verify", user_id=user.id):
            if not isinstance(token, str) or token.count(".") != 2:
                logfire.warn("Malformed token", user_id=user.id)
                raise CredentialError("Token must have three dot-separated segments")
            try:
                header = read_header(token)
            except JWTError as e:
                return self._failure(user, VerificationFailureReason.BAD_SIGNATURE, str(e))

            store = user.key_store
            kid = header.get("kid")
            if kid:
                location = store.locate(kid)
                if location is None or location[0] != KeyKind.SIGNING:
                    return self._failure(user, VerificationFailureReason.KEY_NOT_FOUND, f"Unknown kid {kid}")
                key_index = location[1]

            try:
                record = store.record(KeyKind.SIGNING, key_index)
                public_key = await store.import_public_key(KeyKind.SIGNING, key_index)
            except KeyNotFoundError as e:
                return self._failure(user, VerificationFailureReason.KEY_NOT_FOUND, str(e))

            try:
                payload = verify_token(
                    token,
                    public_key,
                    record.jose_algorithm,
                    issuer=self.auth_settings.issuer,
                    audience=self.auth_settings.audience,
                )
            except TokenExpiredError as e:
                return self._failure(user, VerificationFailureReason.EXPIRED, str(e))
            except TokenSignatureError as e:
                return self._failure(user, VerificationFailureReason.BAD_SIGNATURE, str(e))
            except TokenClaimsError as e:
                return self._failure(user, VerificationFailureReason.INVALID_CLAIMS, str(e))

            try:
                claims = TokenClaims.model_validate(payload)
            except PydanticValidationError as e:
                return self._failure(user, VerificationFailureReason.INVALID_CLAIMS, str(e))

            logfire.info("JWT token verified", user_id=user.id, kid=record.kid)
            return claims

    @staticmethod
    def _failure(user: Any, reason: VerificationFailureReason, detail: str) -> VerificationFailure:
        logfire.warn("JWT token verification failed", user_id=user.id, reason=reason.value)
        return VerificationFailure(reason=reason, detail=detail)
