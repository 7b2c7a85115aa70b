"""Test helpers for authentication and common test operations.

Provides:
- Token minting for test authentication
- Header generation for test requests
"""

import time
from uuid import UUID

import jwt

from zeal.auth.verifier import HmacTokenVerifier

# Default test token settings
TEST_SECRET = "zeal-test-secret"
DEFAULT_ISSUER = "test-issuer"
DEFAULT_AUDIENCE = "test-audience"
DEFAULT_EXPIRES_IN = 3600  # 1 hour


def make_test_verifier() -> HmacTokenVerifier:
    """Verifier accepting tokens from mint_test_token()."""
    return HmacTokenVerifier(secret=TEST_SECRET, issuer=DEFAULT_ISSUER, audience=DEFAULT_AUDIENCE)


def mint_test_token(
    user_id: UUID | str,
    expires_in: int = DEFAULT_EXPIRES_IN,
    issuer: str = DEFAULT_ISSUER,
    audience: str = DEFAULT_AUDIENCE,
    secret: str = TEST_SECRET,
    **extra_claims,
) -> str:
    """Mint a signed HS256 test token.

    Args:
        user_id: The user ID to set as the `sub` claim.
        expires_in: Token validity in seconds from now (negative for expired).
        issuer: The `iss` claim value.
        audience: The `aud` claim value.
        secret: Signing secret; pass another value to forge a bad signature.
        **extra_claims: Additional claims to include in the token.
    """
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iss": issuer,
        "aud": audience,
        "iat": now,
        "exp": now + expires_in,
        **extra_claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(user_id: UUID | str, **kwargs) -> dict[str, str]:
    """Authorization header for a test user."""
    return {"Authorization": f"Bearer {mint_test_token(user_id, **kwargs)}"}
