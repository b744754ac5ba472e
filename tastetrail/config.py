import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load a local .env file if present.
load_dotenv()


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.

    A Config is built once at process start and handed to the app
    (`create_app(cfg)`); nothing reads these values from globals afterwards.
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set TASTETRAIL_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: TASTETRAIL_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("TASTETRAIL_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("TASTETRAIL_DB_PATH", "./tastetrail.sqlite")
    )

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set AUTH_JWT_SECRET to a strong random value.
    AUTH_JWT_SECRET: str = (
        os.environ.get("AUTH_JWT_SECRET")
        or os.environ.get("JWT_SECRET")
        or "dev_change_me"
    )
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "10080"))  # 7 days

    # Bootstrap first admin user if users table is empty.
    # Both must be set; leaving either blank disables the bootstrap.
    AUTH_BOOTSTRAP_ADMIN_EMAIL: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_EMAIL", "")
    AUTH_BOOTSTRAP_ADMIN_PASSWORD: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_PASSWORD", "")

    # -----------------
    # Profiles
    # -----------------
    DEFAULT_PHOTO_URL: str = os.environ.get(
        "DEFAULT_PHOTO_URL",
        "https://i.ibb.co/2kR1Y0F/default-avatar.png",
    )

    # -----------------
    # CORS
    # -----------------
    # Comma separated. "*" allows any origin (the SPA sends bearer headers, not cookies).
    CORS_ALLOW_ORIGINS: str = os.environ.get("CORS_ALLOW_ORIGINS", "*")
    CORS_ALLOW_CREDENTIALS: bool = _env_bool("CORS_ALLOW_CREDENTIALS", False) is True


def load_config() -> Config:
    return Config()
