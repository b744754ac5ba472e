from __future__ import annotations

from dataclasses import dataclass

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


@dataclass(frozen=True)
class TokenClaims:
    """What a verified bearer token asserts about its holder."""

    email: str
    role: str
    issued_at: int
    expires_at: int
