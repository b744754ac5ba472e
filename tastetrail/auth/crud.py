from __future__ import annotations

from typing import Any, Dict, List, Optional

from tastetrail.config import Config
from tastetrail.db import connect
from tastetrail.models import ROLE_ADMIN, ROLE_USER, ROLES
from tastetrail.util.time import utcnow_iso

from .security import hash_password, verify_password


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    """Client-facing view of a user row. The password hash never leaves this module."""
    d = dict(row)
    return {
        "id": d.get("user_id"),
        "fullName": d.get("full_name") or "",
        "email": d.get("email"),
        "photo": d.get("photo"),
        "role": d.get("role"),
        "createdAt": d.get("created_at"),
        "updatedAt": d.get("updated_at"),
    }


def get_user_by_email(conn: Any, email: str) -> Optional[Any]:
    e = normalize_email(email)
    if not e:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE email=?",
        (e,),
    ).fetchone()


def get_user_by_id(conn: Any, user_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM users WHERE user_id=?",
        (int(user_id),),
    ).fetchone()


def list_users(conn: Any) -> List[Dict[str, Any]]:
    rows = conn.execute("SELECT * FROM users ORDER BY user_id").fetchall()
    return [public_user(r) for r in rows]


def get_user_role(conn: Any, email: str) -> Optional[str]:
    """Current stored role, or None when no such user exists."""
    row = get_user_by_email(conn, email)
    if row is None:
        return None
    return str(row["role"])


def verify_user_credentials(conn: Any, email: str, password: str) -> Any:
    """Return the user row for a matching email/password.

    Raises ValueError("user_not_found") or ValueError("wrong_password").
    """
    row = get_user_by_email(conn, email)
    if row is None:
        raise ValueError("user_not_found")
    if not verify_password(password, str(row["password_hash"])):
        raise ValueError("wrong_password")
    return row


def create_user(
    conn: Any,
    *,
    email: str,
    password: str,
    full_name: str = "",
    photo: str | None = None,
    role: str = ROLE_USER,
) -> Dict[str, Any]:
    """Insert a user and return its public view.

    Raises ValueError with one of: email_blank, email_invalid, password_blank,
    invalid_role, email_exists.
    """
    e = normalize_email(email)
    if not e:
        raise ValueError("email_blank")
    if "@" not in e:
        raise ValueError("email_invalid")
    if role not in ROLES:
        raise ValueError("invalid_role")

    password_hash = hash_password(password)
    now = utcnow_iso()

    # The UNIQUE(email) index decides races: of two concurrent inserts only one
    # gets a row back, the other hits the conflict and inserts nothing.
    inserted = conn.execute(
        """
        INSERT INTO users (email, full_name, password_hash, photo, role, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?)
        ON CONFLICT(email) DO NOTHING
        RETURNING user_id
        """,
        (e, (full_name or "").strip(), password_hash, photo, role, now, now),
    ).fetchone()
    if inserted is None:
        raise ValueError("email_exists")

    row = get_user_by_id(conn, int(inserted["user_id"]))
    assert row is not None
    return public_user(row)


def set_user_role(conn: Any, *, email: str, role: str) -> Dict[str, Any]:
    """Change a user's role. Takes effect on the next admin-gated request."""
    if role not in ROLES:
        raise ValueError("invalid_role")
    e = normalize_email(email)
    cur = conn.execute(
        "UPDATE users SET role=?, updated_at=? WHERE email=?",
        (role, utcnow_iso(), e),
    )
    if not cur.rowcount:
        raise ValueError("user_not_found")
    row = get_user_by_email(conn, e)
    assert row is not None
    return public_user(row)


def bootstrap_admin_if_needed(cfg: Config) -> Optional[Dict[str, Any]]:
    """Create the first admin user if the users table is empty.

    No endpoint grants the admin role, so a fresh deployment needs this (or
    scripts/create_user.py) to get its first admin.

    - AUTH_BOOTSTRAP_ADMIN_EMAIL
    - AUTH_BOOTSTRAP_ADMIN_PASSWORD

    Only runs when both are set and there are 0 rows in `users`.
    """
    email = normalize_email(cfg.AUTH_BOOTSTRAP_ADMIN_EMAIL)
    password = cfg.AUTH_BOOTSTRAP_ADMIN_PASSWORD
    if not email or not password:
        return None

    with connect(cfg.DB_DSN) as conn:
        n = conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"]
        if int(n) > 0:
            return None

        u = create_user(
            conn,
            email=email,
            password=password,
            full_name="Administrator",
            photo=cfg.DEFAULT_PHOTO_URL,
            role=ROLE_ADMIN,
        )
        return u
