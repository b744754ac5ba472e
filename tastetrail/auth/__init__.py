"""Authentication / authorization helpers.

Auth is intentionally lightweight:

- Users table (email / password hash + role)
- Stateless JWT access tokens, sent as `Authorization: Bearer <token>`

Two gates are exposed as FastAPI dependencies:

- `get_current_user` proves identity from the token alone.
- `require_admin` additionally checks the role currently stored for that identity,
  so demoting a user takes effect even while their old token is still valid.
"""

from .deps import get_config, get_current_user, require_admin, require_role
from .crud import bootstrap_admin_if_needed, create_user

__all__ = [
    "get_config",
    "get_current_user",
    "require_admin",
    "require_role",
    "bootstrap_admin_if_needed",
    "create_user",
]
