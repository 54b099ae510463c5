"""SQLite storage adapter.

Implements the core StoragePort as a small document store on top of SQLite.
Conditions, sort specs and paging are translated into SQL over the JSON body
(json_extract / json_each) so a page only reads the rows it returns. Anything
the translation does not cover is evaluated with core.query after the fetch.
"""

from __future__ import annotations

import json
import re
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from core.errors import QueryError
from core.models import format_timestamp
from core.query import apply_mutation, matches, page, sort_records

_PATH_PART = re.compile(r"^[A-Za-z0-9_]+$")
_SCALARS = (str, int, float, bool)
_RANGE_OPS = {"$gt": ">", "$gte": ">=", "$lt": "<", "$lte": "<="}


class _Untranslatable(Exception):
    """A condition that has to be evaluated in Python."""


def _json_path(path: str) -> str:
    # Paths are inlined as literals so expression indexes can be used.
    parts = path.split(".")
    if not all(_PATH_PART.match(part) for part in parts):
        raise _Untranslatable(path)
    return "'$." + ".".join(parts) + "'"


def _operand(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if value is None or not isinstance(value, _SCALARS):
        raise _Untranslatable(value)
    return value


def _elements(json_path: str, predicate: str) -> str:
    # json_each yields the scalar itself or each element of an array, which
    # mirrors "equal, or contained in the list" in core.query. Objects never
    # match a scalar there, so their members are not searched.
    return (
        f"EXISTS (SELECT 1 FROM json_each(body, {json_path}) AS e "
        f"WHERE json_type(body, {json_path}) <> 'object' AND {predicate})"
    )


def _eq_sql(json_path: str, value: Any) -> tuple[str, list]:
    value = _operand(value)
    return _elements(json_path, "e.type NOT IN ('array', 'object') AND e.value = ?"), [value]


def _type_guard(value: Any) -> str:
    if isinstance(value, str):
        return "e.type = 'text'"
    return "e.type IN ('integer', 'real', 'true', 'false')"


def _field_sql(path: str, spec: Any) -> tuple[str, list]:
    json_path = _json_path(path)
    if not (isinstance(spec, Mapping) and spec and all(str(k).startswith("$") for k in spec)):
        return _eq_sql(json_path, spec)

    clauses: list[str] = []
    params: list = []
    for op, operand in spec.items():
        if op == "$eq":
            sql, args = _eq_sql(json_path, operand)
        elif op == "$ne":
            sql, args = _eq_sql(json_path, operand)
            sql = f"NOT {sql}"
        elif op in {"$in", "$nin"}:
            if not isinstance(operand, (list, tuple, set)):
                raise _Untranslatable(operand)
            # One JSON array parameter keeps large id sets under SQLite's variable limit.
            sql = _elements(
                json_path,
                "e.type NOT IN ('array', 'object') AND e.value IN (SELECT value FROM json_each(?))",
            )
            args = [json.dumps([_operand(item) for item in operand])]
            if op == "$nin":
                sql = f"NOT {sql}"
        elif op in _RANGE_OPS:
            value = _operand(operand)
            sql = _elements(json_path, f"{_type_guard(value)} AND e.value {_RANGE_OPS[op]} ?")
            args = [value]
        elif op == "$exists":
            sql = f"json_type(body, {json_path}) IS {'NOT ' if operand else ''}NULL"
            args = []
        else:
            raise QueryError(f"Unsupported query operator: {op}")
        clauses.append(sql)
        params.extend(args)
    return " AND ".join(clauses), params


def _where(collection: str, conditions: Optional[Mapping[str, Any]]) -> tuple[str, list, dict]:
    """Return (where clause, params, residual conditions for core.query)."""

    clauses = ["collection = ?"]
    params: list = [collection]
    residual: dict = {}
    for path, spec in (conditions or {}).items():
        try:
            sql, args = _field_sql(path, spec)
        except _Untranslatable:
            residual[path] = spec
            continue
        clauses.append(sql)
        params.extend(args)
    return " AND ".join(clauses), params, residual


def _order_by(sort: Optional[Mapping[str, str]]) -> str:
    terms = []
    for path, direction in (sort or {}).items():
        direction = str(direction).lower()
        if direction not in {"asc", "desc"}:
            raise QueryError(f"Unsupported sort direction for {path}: {direction}")
        terms.append(f"json_extract(body, {_json_path(path)}) {direction.upper()}")
    # Insertion order breaks ties, matching the stable sort in core.query.
    terms.append("seq ASC")
    return "ORDER BY " + ", ".join(terms)


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the StoragePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - documents: one row per record, keyed by (collection, id)
        """

        with self._connect() as conn:
            # documents keeps every collection in one table; the body is the
            # full JSON record so the core decides the schema, not SQLite.
            # Fields:
            # - seq: insertion order, used as the tie-breaker for equal sort keys
            # - collection: collection name (User, Article, BreakingNewsQueuedItem)
            # - id: record id, unique within a collection
            # - body: JSON document
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    body TEXT NOT NULL,
                    UNIQUE (collection, id)
                )
                """
            )
            # Sort keys used by the queue drain and the article lookup.
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS documents_added_date
                ON documents (collection, json_extract(body, '$.added_date'))
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS documents_article_date
                ON documents (collection, json_extract(body, '$.article_date'))
                """
            )

    def get(
        self,
        collection: str,
        conditions: Mapping[str, Any],
        *,
        sort: Optional[Mapping[str, str]] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Return matching records, sorted and sliced."""

        where, params, residual = _where(collection, conditions)
        try:
            order_by = _order_by(sort)
        except _Untranslatable:
            order_by = "ORDER BY seq ASC"
            python_sort = True
        else:
            python_sort = False

        query = f"SELECT body FROM documents WHERE {where} {order_by}"
        if not residual and not python_sort:
            query += " LIMIT ? OFFSET ?"
            params = [*params, -1 if limit is None else max(limit, 0), max(skip, 0)]

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        records = [json.loads(row["body"]) for row in rows]
        if not residual and not python_sort:
            return records

        selected = [record for record in records if matches(record, residual)]
        if python_sort:
            selected = sort_records(selected, sort)
        return page(selected, skip, limit)

    def insert(self, collection: str, record: Mapping[str, Any]) -> dict:
        """Insert a record, assigning an id and added_date when absent."""

        document = dict(record)
        document.setdefault("id", uuid.uuid4().hex)
        document.setdefault("added_date", format_timestamp(datetime.now(timezone.utc)))
        document["id"] = str(document["id"])
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO documents (collection, id, body) VALUES (?, ?, ?)",
                (collection, document["id"], json.dumps(document)),
            )
        return document

    def upsert(self, collection: str, record: Mapping[str, Any], *, keep: Iterable[str] = ()) -> dict:
        """Insert or replace a record by id (used for seeding users/articles).

        Fields named in ``keep`` must hold JSON arrays or objects; they retain
        their stored value when the record already exists. The merge happens
        inside the single upsert statement.
        """

        document = dict(record)
        document["id"] = str(document["id"])
        document.setdefault("added_date", format_timestamp(datetime.now(timezone.utc)))

        body = "excluded.body"
        for path in keep:
            json_path = _json_path(path)
            body = (
                f"CASE WHEN json_type(documents.body, {json_path}) IS NULL THEN {body} "
                f"ELSE json_set({body}, {json_path}, json(json_extract(documents.body, {json_path}))) END"
            )
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO documents (collection, id, body) VALUES (?, ?, ?)
                ON CONFLICT(collection, id) DO UPDATE SET body = {body}
                """,
                (collection, document["id"], json.dumps(document)),
            )
        return document

    def update(
        self,
        collection: str,
        record: Mapping[str, Any],
        mutation: Mapping[str, Mapping[str, Any]],
    ) -> None:
        """Apply a mutation to the stored record with the same id.

        The read-modify-write runs inside an immediate transaction so that a
        concurrent $addToSet cannot be lost. A missing record is a no-op.
        """

        record_id = str(record["id"])
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT body FROM documents WHERE collection = ? AND id = ?",
                (collection, record_id),
            ).fetchone()
            if row is not None:
                updated = apply_mutation(json.loads(row["body"]), mutation)
                conn.execute(
                    "UPDATE documents SET body = ? WHERE collection = ? AND id = ?",
                    (json.dumps(updated), collection, record_id),
                )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def delete_where(self, collection: str, conditions: Mapping[str, Any]) -> int:
        """Delete matching records and return the number removed."""

        where, params, residual = _where(collection, conditions)
        with self._connect() as conn:
            if not residual:
                cur = conn.execute(f"DELETE FROM documents WHERE {where}", params)
                return cur.rowcount
            rows = conn.execute(f"SELECT id, body FROM documents WHERE {where}", params).fetchall()
            ids = [row["id"] for row in rows if matches(json.loads(row["body"]), residual)]
            conn.executemany(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                [(collection, record_id) for record_id in ids],
            )
        return len(ids)

    def count(self, collection: str) -> int:
        """Return the number of records in a collection."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM documents WHERE collection = ?",
                (collection,),
            ).fetchone()
        return int(row["total"])
