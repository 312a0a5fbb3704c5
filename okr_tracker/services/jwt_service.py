"""
JWT Service — bearer token verification.

Tokens are issued by the external identity provider; this service only
verifies them and extracts the user identity.

Algorithm: HS256, secret JWT_SECRET_KEY (falls back to SECRET_KEY)

Identity claim, first present wins:
    email → preferred_username → sub
"""

import jwt
from flask import current_app


ALGORITHM = "HS256"
IDENTITY_CLAIMS = ("email", "preferred_username", "sub")


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT token.

    Returns the payload dict on success.
    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, etc.)
    """
    return jwt.decode(
        token,
        _get_secret(),
        algorithms=[ALGORITHM],
        options={"verify_aud": False},
    )


def identity_from_claims(payload: dict) -> str | None:
    """Return the user identifier carried by a decoded token, or None."""
    for claim in IDENTITY_CLAIMS:
        value = payload.get(claim)
        if value:
            return str(value)
    return None
