"""Recipe / category document storage.

Recipes and categories carry whatever fields the admin UI sends, so they are stored as
JSON documents. The server owns three keys on every document:

- `id`        assigned by the database on insert, used to address updates/deletes
- `createdAt` stamped once, on insert
- `updatedAt` stamped on insert and on every update

Updates are partial: only the submitted top-level fields change. The merge runs inside a
single UPDATE statement (`json_set` on SQLite, `jsonb ||` on Postgres) so two concurrent
partial updates to different fields cannot overwrite each other.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

from tastetrail.db import conn_dialect
from tastetrail.util.time import utcnow_iso


RECIPES = "recipes"
CATEGORIES = "categories"
COLLECTIONS = (RECIPES, CATEGORIES)

# Keys the server controls; clients cannot set them through a body.
RESERVED_FIELDS = ("id", "_id", "createdAt", "updatedAt")

# Keeps each json_set() call at 121 arguments or fewer.
_JSON_SET_MAX_PAIRS = 60

# Ids are signed 64-bit integers on both engines.
MAX_DOC_ID = 2**63 - 1


def _table(collection: str) -> str:
    # Table names cannot be bound as parameters; only known collections are ever interpolated.
    if collection not in COLLECTIONS:
        raise ValueError(f"unknown_collection: {collection}")
    return collection


def clean_fields(fields: Dict[str, Any] | None) -> Dict[str, Any]:
    """Drop server-owned keys and reject field names the storage layer cannot address."""
    out: Dict[str, Any] = {}
    for k, v in (fields or {}).items():
        if k in RESERVED_FIELDS:
            continue
        if not isinstance(k, str) or not k.strip() or '"' in k:
            raise ValueError("invalid_field_name")
        out[k] = v
    return out


def _doc_from_row(row: Any) -> Dict[str, Any]:
    d = dict(row)
    try:
        doc = json.loads(d.get("doc_json") or "{}")
    except json.JSONDecodeError:
        doc = {}
    if not isinstance(doc, dict):
        doc = {}
    doc["id"] = d.get("id")
    doc["createdAt"] = d.get("created_at")
    doc["updatedAt"] = d.get("updated_at")
    return doc


def insert_document(conn: Any, collection: str, fields: Dict[str, Any]) -> int:
    """Insert a document and return its storage-assigned id."""
    table = _table(collection)
    body = clean_fields(fields)
    now = utcnow_iso()
    row = conn.execute(
        f"""
        INSERT INTO {table} (doc_json, created_at, updated_at)
        VALUES (?,?,?)
        RETURNING id
        """,
        (json.dumps(body, ensure_ascii=False), now, now),
    ).fetchone()
    return int(row["id"])


def get_document(conn: Any, collection: str, doc_id: int) -> Optional[Dict[str, Any]]:
    table = _table(collection)
    row = conn.execute(f"SELECT * FROM {table} WHERE id=?", (int(doc_id),)).fetchone()
    if row is None:
        return None
    return _doc_from_row(row)


def list_documents(conn: Any, collection: str) -> List[Dict[str, Any]]:
    table = _table(collection)
    rows = conn.execute(f"SELECT * FROM {table} ORDER BY id").fetchall()
    return [_doc_from_row(r) for r in rows]


def _merge_sql(dialect: str, body: Dict[str, Any]) -> Tuple[str, List[Any]]:
    """SQL expression (and params) for `doc_json` with `body` merged over it."""
    if dialect == "postgres":
        return "(doc_json::jsonb || ?::jsonb)::text", [json.dumps(body, ensure_ascii=False)]

    # SQLite: json_set() with a (path, value) pair per field. SQLite caps function
    # arguments (127 before 3.48), so wide updates nest one json_set per chunk.
    expr = "doc_json"
    params: List[Any] = []
    items = list(body.items())
    for start in range(0, len(items), _JSON_SET_MAX_PAIRS):
        chunk = items[start : start + _JSON_SET_MAX_PAIRS]
        placeholders = ", ".join(["?, json(?)"] * len(chunk))
        expr = f"json_set({expr}, {placeholders})"
        for k, v in chunk:
            params.append(f'$."{k}"')
            params.append(json.dumps(v, ensure_ascii=False))
    return expr, params


def update_document(conn: Any, collection: str, doc_id: int, fields: Dict[str, Any]) -> bool:
    """Merge `fields` into a document and stamp updatedAt.

    Returns False when no document has that id. createdAt is never touched.
    """
    table = _table(collection)
    body = clean_fields(fields)
    now = utcnow_iso()

    if body:
        expr, params = _merge_sql(conn_dialect(conn), body)
        cur = conn.execute(
            f"UPDATE {table} SET doc_json={expr}, updated_at=? WHERE id=?",
            (*params, now, int(doc_id)),
        )
    else:
        cur = conn.execute(
            f"UPDATE {table} SET updated_at=? WHERE id=?",
            (now, int(doc_id)),
        )
    return bool(cur.rowcount)


def delete_document(conn: Any, collection: str, doc_id: int) -> bool:
    """Delete by id. Returns False when nothing was deleted."""
    table = _table(collection)
    cur = conn.execute(f"DELETE FROM {table} WHERE id=?", (int(doc_id),))
    return bool(cur.rowcount)
