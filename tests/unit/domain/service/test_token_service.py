"""Unit tests for TokenService."""

from datetime import timedelta

from dishka import AsyncContainer
import jwt
import pytest

from accounts.config import Settings
from accounts.domain.error import CredentialError, KeyNotFoundError
from accounts.domain.model import KeyOptions
from accounts.domain.repository import FileStore
from accounts.domain.service import TokenService, UserDirectory
from accounts.domain.value import (
    KeyKind,
    TokenClaims,
    VerificationFailure,
    VerificationFailureReason,
)
from tests.harness import create_env_fixture, saved_user

# Unit test fixture - everything mocked, no docker needed
unit_env = create_env_fixture()


async def user_with_signing_key(env: AsyncContainer, **fields):
    directory = await env.get(UserDirectory)
    user = await saved_user(directory, **fields)
    await user.generate_keys(kinds=[KeyKind.SIGNING])
    return user


def tamper(token: str, segment: int = 2, position: int | None = None) -> str:
    """Change one character of a token segment (the middle one by default)."""
    parts = token.split(".")
    target = parts[segment]
    if position is None:
        position = len(target) // 2
    original = target[position]
    replacement = "f" if original == "e" else ("A" if original != "A" else "B")
    parts[segment] = target[:position] + replacement + target[position + 1 :]
    return ".".join(parts)


class TestIssue:
    """Tests for issue."""

    @pytest.mark.asyncio
    async def test_header_and_claims(self, unit_env: AsyncContainer):
        tokens = await unit_env.get(TokenService)
        settings = await unit_env.get(Settings)
        user = await user_with_signing_key(unit_env)

        signed = await tokens.issue(user)

        header = jwt.get_unverified_header(signed.token)
        assert header["alg"] == "RS256"
        assert header["typ"] == "JWT"
        assert header["kid"] == user.keys.signing[0].kid
        assert header["jku"] == f"{settings.auth.issuer}/@adalovelace/jwks.json"
        assert header["x5t"]
        assert signed.kid == header["kid"]
        assert signed.claims.sub == "adalovelace"
        assert signed.claims.email == "ada@example.com"
        assert signed.claims.iss == settings.auth.issuer
        assert signed.claims.aud == settings.auth.audience
        assert signed.claims.exp - signed.claims.iat == 120 * 60

    @pytest.mark.asyncio
    async def test_unique_token_ids(self, unit_env: AsyncContainer):
        tokens = await unit_env.get(TokenService)
        user = await user_with_signing_key(unit_env)

        first = await tokens.issue(user)
        second = await tokens.issue(user)

        assert first.claims.jti != second.claims.jti

    @pytest.mark.asyncio
    async def test_refresh_tokens_use_the_refresh_window(self, unit_env: AsyncContainer):
        tokens = await unit_env.get(TokenService)
        user = await user_with_signing_key(unit_env)

        signed = await tokens.issue(user, token_use="refresh")

        assert signed.claims.token_use == "refresh"
        assert signed.claims.exp - signed.claims.iat == 30 * 24 * 3600

    @pytest.mark.asyncio
    async def test_issue_without_signing_key(self, unit_env: AsyncContainer):
        tokens = await unit_env.get(TokenService)
        directory = await unit_env.get(UserDirectory)
        user = await saved_user(directory)

        with pytest.raises(KeyNotFoundError):
            await tokens.issue(user)

    @pytest.mark.asyncio
    async def test_thumbprint_failure_is_not_fatal(self, unit_env: AsyncContainer):
        tokens = await unit_env.get(TokenService)
        files = await unit_env.get(FileStore)
        settings = await unit_env.get(Settings)
        user = await user_with_signing_key(unit_env)
        jwk_path = f"{settings.storage.public_root}/{user.public_dir}/rs256-0.jwk"
        await files.remove(jwk_path)

        signed = await tokens.issue(user)

        assert "x5t" not in jwt.get_unverified_header(signed.token)
        assert isinstance(await tokens.verify(user, signed.token), TokenClaims)


class TestVerify:
    """Tests for verify."""

    @pytest.mark.asyncio
    async def test_round_trip_returns_issued_claims(self, unit_env: AsyncContainer):
        tokens = await unit_env.get(TokenService)
        user = await user_with_signing_key(unit_env)
        signed = await tokens.issue(user)

        claims = await tokens.verify(user, signed.token)

        assert claims == signed.claims

    @pytest.mark.asyncio
    async def test_expired_token(self, unit_env: AsyncContainer):
        tokens = await unit_env.get(TokenService)
        user = await user_with_signing_key(unit_env)
        signed = await tokens.issue(user, expires_in=timedelta(seconds=-60))

        result = await tokens.verify(user, signed.token)

        assert isinstance(result, VerificationFailure)
        assert result.reason == VerificationFailureReason.EXPIRED
        assert not result

    @pytest.mark.asyncio
    async def test_tampered_signature(self, unit_env: AsyncContainer):
        tokens = await unit_env.get(TokenService)
        user = await user_with_signing_key(unit_env)
        signed = await tokens.issue(user)

        result = await tokens.verify(user, tamper(signed.token))

        assert isinstance(result, VerificationFailure)
        assert result.reason == VerificationFailureReason.BAD_SIGNATURE

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "segment,position",
        [(0, 0), (1, 0), (1, None)],
        ids=["header", "payload-start", "payload-middle"],
    )
    async def test_tampered_header_or_payload(
        self, unit_env: AsyncContainer, segment: int, position: int | None
    ):
        tokens = await unit_env.get(TokenService)
        user = await user_with_signing_key(unit_env)
        signed = await tokens.issue(user)

        result = await tokens.verify(user, tamper(signed.token, segment, position))

        assert isinstance(result, VerificationFailure)
        assert result.reason == VerificationFailureReason.BAD_SIGNATURE

    @pytest.mark.asyncio
    async def test_unknown_kid(self, unit_env: AsyncContainer):
        tokens = await unit_env.get(TokenService)
        ada = await user_with_signing_key(unit_env)
        grace = await user_with_signing_key(
            unit_env, first="Grace", last="Hopper", email="grace@example.com"
        )
        signed = await tokens.issue(grace)

        result = await tokens.verify(ada, signed.token)

        assert isinstance(result, VerificationFailure)
        assert result.reason == VerificationFailureReason.KEY_NOT_FOUND

    @pytest.mark.asyncio
    async def test_kid_selects_rotated_key(self, unit_env: AsyncContainer):
        tokens = await unit_env.get(TokenService)
        user = await user_with_signing_key(unit_env)
        old = await tokens.issue(user)
        rotate = KeyOptions(name="RSASSA-PKCS1-v1_5", uses=["sign", "verify"], rotate=True)
        await user.generate_keys(kinds=[KeyKind.SIGNING], options={KeyKind.SIGNING: rotate})

        result = await tokens.verify(user, old.token, key_index=0)

        assert result == old.claims

    @pytest.mark.asyncio
    async def test_missing_kid_falls_back_to_index(self, unit_env: AsyncContainer):
        tokens = await unit_env.get(TokenService)
        settings = await unit_env.get(Settings)
        user = await user_with_signing_key(unit_env)
        signed = await tokens.issue(user)
        private_key = await user.key_store.import_private_key(KeyKind.SIGNING)
        unkeyed = jwt.encode(signed.claims.model_dump(exclude_none=True), private_key, algorithm="RS256")

        assert await tokens.verify(user, unkeyed, key_index=0) == signed.claims
        missing = await tokens.verify(user, unkeyed, key_index=3)
        assert missing.reason == VerificationFailureReason.KEY_NOT_FOUND
        assert settings.auth.issuer == signed.claims.iss

    @pytest.mark.asyncio
    async def test_wrong_audience(self, unit_env: AsyncContainer):
        tokens = await unit_env.get(TokenService)
        user = await user_with_signing_key(unit_env)
        signed = await tokens.issue(user)
        private_key = await user.key_store.import_private_key(KeyKind.SIGNING)
        claims = {**signed.claims.model_dump(exclude_none=True), "aud": "someone-else"}
        foreign = jwt.encode(claims, private_key, algorithm="RS256", headers={"kid": signed.kid})

        result = await tokens.verify(user, foreign)

        assert result.reason == VerificationFailureReason.INVALID_CLAIMS

    @pytest.mark.asyncio
    async def test_undecodable_token_raises(self, unit_env: AsyncContainer):
        tokens = await unit_env.get(TokenService)
        user = await user_with_signing_key(unit_env)

        with pytest.raises(CredentialError):
            await tokens.verify(user, "not-a-token")
        with pytest.raises(CredentialError):
            await tokens.verify(user, "a.b")
