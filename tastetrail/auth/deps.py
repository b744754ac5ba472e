from __future__ import annotations

from typing import Callable, Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tastetrail.config import Config
from tastetrail.db import connect
from tastetrail.models import ROLE_ADMIN, TokenClaims

from .crud import get_user_role
from .security import verify_access_token


_bearer = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return cfg


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    cfg: Config = Depends(get_config),
) -> TokenClaims:
    """Authenticate a request from its `Authorization: Bearer <jwt>` header.

    "missing_token" (nothing presented) and "token_invalid" (presented but
    expired/tampered/malformed) are kept apart so clients can tell "not logged in"
    from "session no longer valid".

    The role in the returned claims is what the token says, not what the database
    says; use require_role() for any privilege decision.
    """

    if credentials is None or not credentials.credentials:
        raise _unauthorized("missing_token")

    try:
        claims = verify_access_token(token=credentials.credentials, secret=cfg.AUTH_JWT_SECRET)
    except jwt.InvalidTokenError:
        raise _unauthorized("token_invalid")

    request.state.auth = claims
    return claims


def require_role(role: str) -> Callable[..., TokenClaims]:
    """Build a dependency that admits only callers whose *stored* role is `role`.

    Tokens live for days and cannot be revoked, so the role is re-read from the
    users table on every call: a demotion applies to the very next request.
    """
    detail = f"{role}_required" if role == ROLE_ADMIN else "role_required"

    def _dep(
        claims: TokenClaims = Depends(get_current_user),
        cfg: Config = Depends(get_config),
    ) -> TokenClaims:
        with connect(cfg.DB_DSN) as conn:
            current = get_user_role(conn, claims.email)
        if current != role:
            raise HTTPException(status_code=403, detail=detail)
        return claims

    return _dep


require_admin = require_role(ROLE_ADMIN)
