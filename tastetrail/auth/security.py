from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from tastetrail.models import ROLES, TokenClaims
from tastetrail.util.time import utcnow


# Fixed work factor; every hash in the users table is produced with these rounds.
PASSWORD_HASH_ROUNDS = 29000

_pwd = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__default_rounds=PASSWORD_HASH_ROUNDS,
)
_JWT_ALG = "HS256"
_REQUIRED_CLAIMS = ["email", "role", "iat", "exp"]


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except ValueError:
        # Unrecognized / corrupt hash string.
        return False


def create_access_token(
    *,
    secret: str,
    email: str,
    role: str,
    expires_minutes: int,
    now: Optional[datetime] = None,
) -> str:
    """Sign a `{email, role, iat, exp}` assertion.

    `now` is only for callers that need a fixed clock (tests, backdated tokens).
    """
    if not secret:
        raise ValueError("jwt_secret_blank")
    if role not in ROLES:
        raise ValueError("invalid_role")

    issued = now or utcnow()
    exp = issued + timedelta(minutes=max(1, int(expires_minutes)))

    payload: Dict[str, Any] = {
        "email": email,
        "role": role,
        "iat": int(issued.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def verify_access_token(*, token: str, secret: str) -> TokenClaims:
    """Check signature and expiry and return the claims.

    Raises jwt.InvalidTokenError for every kind of rejection (bad signature, wrong
    secret, expired, malformed, missing claims). Callers are not told which.
    """
    if not secret:
        raise ValueError("jwt_secret_blank")
    if not token:
        raise jwt.InvalidTokenError("token_blank")

    payload = jwt.decode(
        token,
        secret,
        algorithms=[_JWT_ALG],
        options={"require": _REQUIRED_CLAIMS},
    )

    email = payload.get("email")
    role = payload.get("role")
    if not isinstance(email, str) or not email:
        raise jwt.InvalidTokenError("token_missing_email")
    if role not in ROLES:
        raise jwt.InvalidTokenError("token_bad_role")

    return TokenClaims(
        email=email,
        role=str(role),
        issued_at=int(payload["iat"]),
        expires_at=int(payload["exp"]),
    )
