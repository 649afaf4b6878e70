"""
Access token verification for the identity_access bounded context.

Why: Keep cryptographic validation of Supabase access tokens outside the web
adapter so we can unit test it independently.

Security: Supabase signs access tokens with the project's JWT secret (HS256)
and audience `authenticated`. Only HS256 is accepted; expiry is checked with a
small clock-skew allowance.
"""
from __future__ import annotations

from typing import Dict
import time

from jose import jwt
from jose.exceptions import JOSEError

ACCESS_TOKEN_AUDIENCE = "authenticated"
MAX_CLOCK_SKEW_SECONDS = 5  # Allow minimal skew between servers


class AccessTokenError(Exception):
    """Raised when the access token fails verification."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


def verify_access_token(token: str, secret: str, *, audience: str = ACCESS_TOKEN_AUDIENCE) -> Dict[str, object]:
    """Validate a Supabase access token and return its claims.

    Raises
    ------
    AccessTokenError:
        `missing_token`, `verifier_not_configured`, `invalid_token` (signature,
        audience, expiry) or `missing_sub`.
    """
    if not token:
        raise AccessTokenError("missing_token")
    if not secret:
        raise AccessTokenError("verifier_not_configured")
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=audience,
            options={"verify_exp": False},
        )
    except JOSEError as exc:
        raise AccessTokenError("invalid_token") from exc

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or exp + MAX_CLOCK_SKEW_SECONDS < time.time():
        raise AccessTokenError("invalid_token")
    if not claims.get("sub"):
        raise AccessTokenError("missing_sub")
    return claims


__all__ = ["AccessTokenError", "verify_access_token"]
