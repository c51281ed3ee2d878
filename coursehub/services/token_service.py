"""JWT access token creation and validation (ES256).

Centralizes token logic so the auth endpoints (issuance) and
api/dependencies.py (validation) share the same key and claims schema.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

from coursehub.core.config import SETTINGS
from coursehub.models.principal import Role

# Dev/test: ephemeral EC key pair generated on import.  Tokens do not
# survive a restart.
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "coursehub"
AUDIENCE = "coursehub-api"


def create_access_token(
    *,
    sub: UUID | str,
    role: Role | str = Role.STUDENT,
    ttl: timedelta | None = None,
) -> str:
    """Build and sign an access token carrying the subject id and role."""
    now = datetime.now(UTC)
    if ttl is None:
        ttl = timedelta(minutes=SETTINGS.access_token_ttl_min)
    payload = {
        "sub": str(sub),
        "role": str(role),
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + ttl,
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256 and validates exp, iss and aud.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "role", "exp", "iat", "jti"]},
    )
