from __future__ import annotations

import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence
from urllib.parse import urlparse

from tastetrail.schema import get_schema_sql


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite'.

    Anything that is not a postgres(ql):// URL is treated as a SQLite path
    (plain path or sqlite:///path).
    """
    try:
        scheme = urlparse((dsn or "").strip()).scheme.lower()
    except ValueError:
        scheme = ""
    if scheme in ("postgres", "postgresql"):
        return "postgres"
    return "sqlite"


# Single/double quoted literals (with doubled-quote escapes) or a bare '?'.
_QMARK_TOKENS = re.compile(r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|\?")


def _qmark_to_pct(sql: str) -> str:
    """Rewrite SQLite '?' placeholders as psycopg2 '%s', leaving quoted literals alone."""
    return _QMARK_TOKENS.sub(lambda m: "%s" if m.group(0) == "?" else m.group(0), sql)


class PGConnection:
    """Makes a psycopg2 connection answer the subset of the sqlite3 API this app uses.

    Rows come back as dicts (RealDictCursor), so `row["email"]` works on both engines.
    """

    dialect = "postgres"

    def __init__(self, raw: Any):
        self._raw = raw

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        cur = self._raw.cursor()
        cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return cur

    def commit(self) -> None:
        self._raw.commit()

    def rollback(self) -> None:
        self._raw.rollback()

    def close(self) -> None:
        self._raw.close()


def _open_postgres(dsn: str) -> PGConnection:
    try:
        import psycopg2
        import psycopg2.extras
    except ImportError as e:
        raise RuntimeError(
            "Postgres selected but psycopg2 is not installed. "
            "Install tastetrail[postgres] and try again."
        ) from e
    raw = psycopg2.connect(dsn, cursor_factory=psycopg2.extras.RealDictCursor)
    return PGConnection(raw)


def _open_sqlite(dsn: str) -> sqlite3.Connection:
    if dsn.lower().startswith("sqlite:///"):
        dsn = dsn[len("sqlite:///") :]
    Path(dsn).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(dsn, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    # API requests run on a thread pool, each with its own connection.
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


@contextmanager
def connect(db_dsn: str) -> Iterator[Any]:
    """Open a connection for one unit of work.

    Commits when the block exits cleanly, rolls back when it raises, and always closes.
    """
    dsn = (db_dsn or "").strip()
    if detect_dialect(dsn) == "postgres":
        conn: Any = _open_postgres(dsn)
    else:
        conn = _open_sqlite(dsn)

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def conn_dialect(conn: Any) -> str:
    """Dialect of an open connection ('postgres' or 'sqlite')."""
    return str(getattr(conn, "dialect", "sqlite") or "sqlite").lower()


def init_db(db_dsn: str) -> None:
    """Create all tables (idempotent)."""
    dialect = detect_dialect(db_dsn)
    _debug(f"Initializing DB ({dialect})")
    with connect(db_dsn) as conn:
        ddl = get_schema_sql(dialect)
        if dialect == "sqlite":
            # DDL takes SQLite's exclusive lock on its own.
            conn.executescript(ddl)
            return

        # Serialize schema creation across API processes.
        conn.execute("SELECT pg_advisory_lock(2147483647);")
        try:
            for stmt in (s.strip() for s in ddl.split(";")):
                if stmt:
                    conn.execute(stmt)
        finally:
            conn.execute("SELECT pg_advisory_unlock(2147483647);")
