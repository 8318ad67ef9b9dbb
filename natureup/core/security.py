import os
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

# Tokens are issued by the identity provider; this service only verifies them.
# Verification is off while IDENTITY_JWT_SECRET is unset.
IDENTITY_JWT_SECRET = os.getenv("IDENTITY_JWT_SECRET", "")
IDENTITY_JWT_AUDIENCE = os.getenv("IDENTITY_JWT_AUDIENCE", "authenticated")
ALGORITHM = "HS256"


def verification_enabled() -> bool:
    return bool(IDENTITY_JWT_SECRET)


def decode_identity_token(token: str) -> str:
    options = {"verify_aud": bool(IDENTITY_JWT_AUDIENCE)}
    payload = jwt.decode(
        token,
        IDENTITY_JWT_SECRET,
        algorithms=[ALGORITHM],
        audience=IDENTITY_JWT_AUDIENCE or None,
        options=options,
    )
    subject = payload.get("sub")
    if not subject:
        raise JWTError("Missing subject")
    return str(subject)


def create_identity_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """Mint a token the way the identity provider does; used by local tooling and tests."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    claims: dict[str, Any] = {"sub": subject, "exp": expire}
    if IDENTITY_JWT_AUDIENCE:
        claims["aud"] = IDENTITY_JWT_AUDIENCE
    return jwt.encode(claims, IDENTITY_JWT_SECRET, algorithm=ALGORITHM)
