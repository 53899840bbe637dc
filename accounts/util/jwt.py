"""JWT token utilities.

Thin wrappers around PyJWT that translate its exception hierarchy into a
few categories callers branch on.
"""

from typing import Any

import jwt


class JWTError(Exception):
    """JWT-related error."""

    pass


class TokenExpiredError(JWTError):
    """The token's expiry has passed."""

    pass


class TokenSignatureError(JWTError):
    """The token is malformed or its signature does not match."""

    pass


class TokenClaimsError(JWTError):
    """Issuer, audience or another required claim is missing or wrong."""

    pass


# Claims every issued token carries
REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud", "sub", "jti"]


def create_token(
    claims: dict[str, Any],
    private_key: Any,
    algorithm: str,
    headers: dict[str, Any] | None = None,
) -> str:
    """Sign a set of claims.

    Args:
        claims: JWT claims
        private_key: Private key object or PEM
        algorithm: JWS algorithm (RS256, PS256, ...)
        headers: Extra header fields (kid, jku, x5t)

    Returns:
        Encoded JWT token
    """
    return jwt.encode(claims, private_key, algorithm=algorithm, headers=headers)


def read_header(token: str) -> dict[str, Any]:
    """Decode the header of a token without verifying it.

    Raises:
        JWTError: If the header cannot be decoded
    """
    try:
        return jwt.get_unverified_header(token)
    except jwt.InvalidTokenError as e:
        raise JWTError(f"Invalid token header: {e}") from e


def verify_token(
    token: str,
    public_key: Any,
    algorithm: str,
    issuer: str,
    audience: str,
) -> dict[str, Any]:
    """Verify signature and standard claims of a token.

    Returns:
        The token's claims

    Raises:
        TokenExpiredError: If the token has expired
        TokenSignatureError: If the token is malformed or the signature is wrong
        TokenClaimsError: If issuer, audience or required claims do not check out
    """
    try:
        return jwt.decode(
            token,
            public_key,
            algorithms=[algorithm],
            issuer=issuer,
            audience=audience,
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpiredError("Token has expired") from e
    except jwt.DecodeError as e:
        raise TokenSignatureError(f"Invalid token signature: {e}") from e
    except jwt.InvalidTokenError as e:
        raise TokenClaimsError(f"Invalid token claims: {e}") from e
